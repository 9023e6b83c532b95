import re
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Query

from natours.api.schemas import TourOut
from natours.core.errors import AppError
from natours.models import DIFFICULTIES, Tour, TourStartDate, User
from .repository import Repository


def slugify(name: str) -> str:
    return re.sub(r"\s+", "_", name.strip().lower())


class TourRepository(Repository):
    model = Tour
    schema = TourOut
    label = "tour"
    unique_fields = ("name",)

    def apply_default_scope(self, query: Query) -> Query:
        return query.filter(Tour.secret_tour == False)  # noqa: E712

    def before_save(self, tour: Tour, is_new: bool, validate: bool) -> None:
        tour.slug = slugify(tour.name)

        if validate and tour.difficulty not in DIFFICULTIES:
            raise AppError(
                "Invalid input given. Please handle the following. "
                f"Difficulty must be one of: {', '.join(DIFFICULTIES)}",
                400,
            )

        if validate and tour.price_discount is not None and tour.price_discount >= tour.price:
            raise AppError(
                "Invalid input given. Please handle the following. "
                "The discount price must be lower than the actual price",
                400,
            )

    def _resolve_guides(self, guide_ids: List[int]) -> List[User]:
        guides = []
        for guide_id in guide_ids:
            guide = self.db.query(User).filter(User.id == guide_id, User.active == True).first()  # noqa: E712
            if guide is None:
                raise AppError(f"No user found with id {guide_id} to assign as guide", 400)
            guides.append(guide)
        return guides

    def build(self, data: Dict[str, Any]) -> Tour:
        data = dict(data)
        guides = self._resolve_guides(data.pop("guides", None) or [])
        tour = Tour(**data)
        tour.guides = guides
        return tour

    def assign(self, tour: Tour, data: Dict[str, Any]) -> None:
        data = dict(data)
        if "guides" in data:
            tour.guides = self._resolve_guides(data.pop("guides") or [])
        super().assign(tour, data)

    # ------------------------------------------------------------ aggregates

    def get_stats(self) -> List[Dict[str, Any]]:
        """Per-difficulty statistics over all visible tours, cheapest group first."""
        query = self.apply_default_scope(
            self.db.query(
                Tour.difficulty,
                func.count(Tour.id),
                func.sum(Tour.ratings_quantity),
                func.avg(Tour.ratings_average),
                func.avg(Tour.price),
                func.min(Tour.price),
                func.max(Tour.price),
            )
        )
        rows = query.group_by(Tour.difficulty).order_by(func.avg(Tour.price)).all()

        return [
            {
                "difficulty": difficulty,
                "totalTours": total,
                "numRatings": int(num_ratings or 0),
                "avgRating": round(float(avg_rating or 0), 2),
                "avgPrice": round(float(avg_price or 0), 2),
                "minPrice": min_price,
                "maxPrice": max_price,
            }
            for difficulty, total, num_ratings, avg_rating, avg_price, min_price, max_price in rows
        ]

    def get_monthly_plan(self, year: int) -> List[Dict[str, Any]]:
        """Tour starts per month of ``year``, busiest month first."""
        start = datetime(year, 1, 1, tzinfo=timezone.utc)
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)

        query = self.apply_default_scope(
            self.db.query(TourStartDate.start_date, Tour.name).join(Tour, TourStartDate.tour_id == Tour.id)
        )
        rows = (
            query.filter(TourStartDate.start_date >= start, TourStartDate.start_date < end)
            .order_by(TourStartDate.start_date)
            .all()
        )

        months = defaultdict(list)
        for start_date, name in rows:
            months[start_date.month].append(name)

        plan = [
            {"month": month, "numOfTourStarts": len(names), "tours": names}
            for month, names in months.items()
        ]
        return sorted(plan, key=lambda entry: (-entry["numOfTourStarts"], entry["month"]))
