from sqlalchemy import func
from sqlalchemy.orm import Query, joinedload

from natours.api.schemas import ReviewOut
from natours.models import Review, Tour
from .repository import Repository


class ReviewRepository(Repository):
    model = Review
    schema = ReviewOut
    label = "review"
    extra_query_fields = ("tour_id", "user_id")

    def apply_default_scope(self, query: Query) -> Query:
        # Reviews are always rendered with their author
        return query.options(joinedload(Review.user))

    def after_save(self, review: Review) -> None:
        self.update_tour_ratings(review.tour_id)

    def after_delete(self, review: Review) -> None:
        self.update_tour_ratings(review.tour_id)

    def update_tour_ratings(self, tour_id: int) -> None:
        """Recompute a tour's rating aggregates from its reviews."""
        quantity, average = (
            self.db.query(func.count(Review.id), func.avg(Review.rating))
            .filter(Review.tour_id == tour_id)
            .one()
        )
        tour = self.db.get(Tour, tour_id)
        if tour is None:
            return
        tour.ratings_quantity = quantity
        tour.ratings_average = round(float(average), 1) if quantity else 0
        self.db.commit()
