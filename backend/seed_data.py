#!/usr/bin/env python3
"""Seed script to wipe the database and populate it with sample data.

    python seed_data.py            # wipe and import
    python seed_data.py --delete   # wipe only
"""

import sys
from datetime import datetime, timezone

from natours.core.database import Base, SessionLocal, engine
from natours.models import Review, Tour, User
from natours.services.review_repository import ReviewRepository
from natours.services.tour_repository import TourRepository
from natours.services.user_repository import UserRepository

SAMPLE_PASSWORD = "test1234"

SAMPLE_USERS = [
    {"name": "Jonas Admin", "email": "admin@natours.io", "role": "admin"},
    {"name": "Lourdes Browning", "email": "loulou@example.com", "role": "lead-guide"},
    {"name": "Steve Thompson", "email": "steve@example.com", "role": "guide"},
    {"name": "Leo Gillespie", "email": "leo@example.com", "role": "user"},
    {"name": "Jennifer Hardy", "email": "jennifer@example.com", "role": "user"},
]


def _date(year, month, day):
    return datetime(year, month, day, 9, 0, tzinfo=timezone.utc)


SAMPLE_TOURS = [
    {
        "name": "The Forest Hiker",
        "duration": 5,
        "max_group_size": 25,
        "difficulty": "easy",
        "price": 397,
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "description": "Lorem ipsum dolor sit amet, consectetur adipisicing elit, sed do eiusmod tempor.",
        "image_cover": "tour-1-cover.jpg",
        "images": ["tour-1-1.jpg", "tour-1-2.jpg", "tour-1-3.jpg"],
        "start_dates": [_date(2025, 4, 25), _date(2025, 7, 20), _date(2025, 10, 5)],
        "start_location": {
            "type": "Point",
            "coordinates": [-115.570154, 51.178456],
            "address": "224 Banff Ave, Banff, AB, Canada",
            "description": "Banff, CAN",
        },
        "locations": [
            {
                "type": "Point",
                "coordinates": [-116.214531, 51.417611],
                "description": "Banff National Park",
                "day": 1,
            },
        ],
    },
    {
        "name": "The Sea Explorer",
        "duration": 7,
        "max_group_size": 15,
        "difficulty": "medium",
        "price": 497,
        "price_discount": 397,
        "summary": "Exploring the jaw dropping US east coast by foot and by boat",
        "description": "Consectetur adipisicing elit, sed do eiusmod tempor incididunt ut labore.",
        "image_cover": "tour-2-cover.jpg",
        "images": ["tour-2-1.jpg", "tour-2-2.jpg"],
        "start_dates": [_date(2025, 6, 19), _date(2025, 7, 20), _date(2025, 8, 18)],
    },
    {
        "name": "The Snow Adventurer",
        "duration": 4,
        "max_group_size": 10,
        "difficulty": "difficult",
        "price": 997,
        "summary": "Exciting adventure in the snow with snowboarding and skiing",
        "description": "Sed do eiusmod tempor incididunt ut labore et dolore magna aliqua.",
        "image_cover": "tour-3-cover.jpg",
        "start_dates": [_date(2026, 1, 5), _date(2026, 2, 12)],
    },
    {
        "name": "The City Wanderer",
        "duration": 9,
        "max_group_size": 20,
        "difficulty": "easy",
        "price": 1197,
        "summary": "Living the life of Wanderlust in the US most beatiful cities",
        "image_cover": "tour-4-cover.jpg",
        "start_dates": [_date(2025, 3, 11), _date(2025, 5, 2)],
    },
    {
        "name": "The Secret Garden",
        "duration": 3,
        "max_group_size": 8,
        "difficulty": "medium",
        "price": 2997,
        "summary": "A hidden tour for invited guests only",
        "image_cover": "tour-5-cover.jpg",
        "secret_tour": True,
    },
]

SAMPLE_REVIEWS = [
    ("leo@example.com", "The Forest Hiker", "Amazing views and a great guide!", 5),
    ("jennifer@example.com", "The Forest Hiker", "Good tour, a bit crowded.", 4),
    ("leo@example.com", "The Sea Explorer", "Loved the boat trip.", 4),
    ("jennifer@example.com", "The Snow Adventurer", "Cold but worth every minute.", 5),
]


def delete_data(db):
    """Remove every review, tour and user."""
    db.query(Review).delete()
    for tour in db.query(Tour).all():
        db.delete(tour)
    db.query(User).delete()
    db.commit()
    print("Data successfully deleted!")


def import_data(db):
    """Create sample users, tours and reviews through the repositories."""
    users = UserRepository(db)
    tours = TourRepository(db)
    reviews = ReviewRepository(db)

    created_users = {}
    for data in SAMPLE_USERS:
        user = users.create(
            {**data, "password": SAMPLE_PASSWORD, "password_confirm": SAMPLE_PASSWORD}
        )
        created_users[user.email] = user

    guide_ids = [
        user.id for user in created_users.values() if user.role in ("guide", "lead-guide")
    ]
    created_tours = {}
    for data in SAMPLE_TOURS:
        tour = tours.create({**data, "guides": guide_ids})
        created_tours[tour.name] = tour

    for email, tour_name, text, rating in SAMPLE_REVIEWS:
        reviews.create({
            "review": text,
            "rating": rating,
            "user_id": created_users[email].id,
            "tour_id": created_tours[tour_name].id,
        })

    print("Sample data created successfully!")
    print(f"Created {len(created_users)} users (password: {SAMPLE_PASSWORD})")
    print(f"Created {len(created_tours)} tours")
    print(f"Created {len(SAMPLE_REVIEWS)} reviews")


def main(argv):
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        delete_data(db)
        if "--delete" not in argv:
            import_data(db)
    except Exception as e:
        print(f"Error seeding data: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main(sys.argv[1:])
