import os

# Must be set before the settings module is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "development"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "10"

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from natours.auth.jwt_manager import jwt_manager  # noqa: E402
from natours.auth.rate_limiter import rate_limiter  # noqa: E402
from natours.core.database import Base, SessionLocal, engine  # noqa: E402
from natours.main import app  # noqa: E402
from natours.services.email_service import email_service  # noqa: E402
from natours.services.review_repository import ReviewRepository  # noqa: E402
from natours.services.tour_repository import TourRepository  # noqa: E402
from natours.services.user_repository import UserRepository  # noqa: E402

PASSWORD = "test1234"


@pytest.fixture(autouse=True)
def reset_state():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rate_limiter.reset()
    yield


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Capture outgoing mail instead of talking to an SMTP server."""
    outbox = []

    async def fake_send_email(to, subject, text):
        outbox.append({"to": to, "subject": subject, "text": text})

    monkeypatch.setattr(email_service, "send_email", fake_send_email)
    return outbox


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(role="user", email=None, password=PASSWORD, **extra):
        counter["n"] += 1
        email = email or f"{role}{counter['n']}@example.com"
        return UserRepository(db).create({
            "name": f"Test {role.title()}",
            "email": email,
            "role": role,
            "password": password,
            "password_confirm": password,
            **extra,
        })

    return _make_user


@pytest.fixture
def make_tour(db):
    counter = {"n": 0}
    letters = "abcdefghijklmnopqrstuvwxyz"

    def _make_tour(**overrides):
        counter["n"] += 1
        data = {
            "name": f"Sample Tour {letters[counter['n'] % 26]}{letters[counter['n'] // 26]}",
            "price": 500,
            "difficulty": "easy",
            "duration": 5,
            "max_group_size": 10,
            "summary": "A sample tour",
            "image_cover": "cover.jpg",
        }
        data.update(overrides)
        return TourRepository(db).create(data)

    return _make_tour


@pytest.fixture
def make_review(db):
    def _make_review(tour, user, rating=4, text="Nice tour"):
        return ReviewRepository(db).create({
            "review": text,
            "rating": rating,
            "tour_id": tour.id,
            "user_id": user.id,
        })

    return _make_review


def bearer(user_or_id, issued_at: datetime = None) -> dict:
    user_id = getattr(user_or_id, "id", user_or_id)
    token = jwt_manager.create_access_token(user_id, issued_at=issued_at)
    return {"Authorization": f"Bearer {token}"}


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
