from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from natours.api.schemas import ReviewCreate, ReviewUpdate
from natours.auth.middleware import protect, restrict_to
from natours.core.database import get_db
from natours.core.errors import AppError
from natours.models import Review, User
from natours.services import handler_factory
from natours.services.review_repository import ReviewRepository
from natours.services.tour_repository import TourRepository

router = APIRouter(prefix="/reviews", tags=["reviews"])

# Mounted under a tour: /tours/{tour_id}/reviews
nested_router = APIRouter(prefix="/tours/{tour_id}/reviews", tags=["reviews"])


def _list_reviews(request: Request, db: Session, tour_id: Optional[int] = None):
    repository = ReviewRepository(db)
    query = repository.query()
    if tour_id is not None:
        query = query.filter(Review.tour_id == tour_id)
    return handler_factory.get_all(repository, request.query_params, query)


def _create_review(body: ReviewCreate, current_user: User, db: Session, tour_id: Optional[int] = None):
    target_tour_id = body.tour if body.tour is not None else tour_id
    if target_tour_id is None:
        raise AppError("Invalid input given. Please handle the following. Review must belong to a tour", 400)
    if TourRepository(db).find_by_id(target_tour_id) is None:
        raise AppError("No tour found with that ID", 404)

    data = {
        "review": body.review,
        "rating": body.rating,
        "tour_id": target_tour_id,
        "user_id": current_user.id,
    }
    return handler_factory.create_one(ReviewRepository(db), data)


def _check_owner(db: Session, review_id: int, current_user: User) -> None:
    """Users may only touch their own reviews; admins may touch any."""
    if current_user.role == "admin":
        return
    review = ReviewRepository(db).find_by_id(review_id)
    if review is not None and review.user_id != current_user.id:
        raise AppError("You can only modify your own reviews", 403)


@router.get("")
def get_all_reviews(
    request: Request,
    current_user: User = Depends(protect),
    db: Session = Depends(get_db),
):
    return _list_reviews(request, db)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_review(
    body: ReviewCreate,
    current_user: User = Depends(restrict_to("user")),
    db: Session = Depends(get_db),
):
    return _create_review(body, current_user, db)


@router.get("/{review_id}")
def get_review(
    review_id: int,
    current_user: User = Depends(protect),
    db: Session = Depends(get_db),
):
    return handler_factory.get_one(ReviewRepository(db), review_id)


@router.patch("/{review_id}")
def update_review(
    review_id: int,
    body: ReviewUpdate,
    current_user: User = Depends(restrict_to("user", "admin")),
    db: Session = Depends(get_db),
):
    _check_owner(db, review_id, current_user)
    return handler_factory.update_one(
        ReviewRepository(db), review_id, body.model_dump(exclude_unset=True, exclude_none=True)
    )


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_review(
    review_id: int,
    current_user: User = Depends(restrict_to("user", "admin")),
    db: Session = Depends(get_db),
):
    _check_owner(db, review_id, current_user)
    handler_factory.delete_one(ReviewRepository(db), review_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@nested_router.get("")
def get_tour_reviews(
    tour_id: int,
    request: Request,
    current_user: User = Depends(protect),
    db: Session = Depends(get_db),
):
    """List the reviews of one tour."""
    return _list_reviews(request, db, tour_id)


@nested_router.post("", status_code=status.HTTP_201_CREATED)
def create_tour_review(
    tour_id: int,
    body: ReviewCreate,
    current_user: User = Depends(restrict_to("user")),
    db: Session = Depends(get_db),
):
    """Review a tour as the logged in user."""
    return _create_review(body, current_user, db, tour_id)
