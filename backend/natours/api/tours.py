from fastapi import APIRouter, Depends, Path, Request, Response, status
from sqlalchemy.orm import Session

from natours.api.schemas import TourCreate, TourDetailOut, TourUpdate
from natours.auth.middleware import protect, restrict_to
from natours.core.api_features import with_defaults
from natours.core.database import get_db
from natours.models import User
from natours.services import handler_factory
from natours.services.tour_repository import TourRepository

router = APIRouter(prefix="/tours", tags=["tours"])

TOP_FIVE_PRESET = {
    "limit": "5",
    "sort": "-ratingsAverage,price",
    "fields": "name,price,ratingsAverage,difficulty,summary",
}

# The plan covers [year, year + 1), which must stay within datetime's range
MIN_PLAN_YEAR = 1
MAX_PLAN_YEAR = 9998


@router.get("/top-5-rated-cheapest")
def get_top_five_tours(request: Request, db: Session = Depends(get_db)):
    """The five best rated tours, cheapest first among equal ratings."""
    return handler_factory.get_all(TourRepository(db), with_defaults(request.query_params, TOP_FIVE_PRESET))


@router.get("/tour-stats")
def get_tour_stats(db: Session = Depends(get_db)):
    """Rating and price statistics grouped by difficulty."""
    return {"status": "success", "data": TourRepository(db).get_stats()}


@router.get("/monthly-plan/{year}")
def get_monthly_plan(
    year: int = Path(..., ge=MIN_PLAN_YEAR, le=MAX_PLAN_YEAR),
    current_user: User = Depends(restrict_to("admin", "lead-guide", "guide")),
    db: Session = Depends(get_db),
):
    """Number of tour starts in each month of a year."""
    return {"status": "success", "data": TourRepository(db).get_monthly_plan(year)}


@router.get("")
def get_all_tours(
    request: Request,
    current_user: User = Depends(protect),
    db: Session = Depends(get_db),
):
    """List tours with filtering, sorting, field selection and pagination."""
    return handler_factory.get_all(TourRepository(db), request.query_params)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_tour(
    body: TourCreate,
    current_user: User = Depends(restrict_to("admin", "lead-guide")),
    db: Session = Depends(get_db),
):
    return handler_factory.create_one(TourRepository(db), body.model_dump())


@router.get("/{tour_id}")
def get_tour(tour_id: int, db: Session = Depends(get_db)):
    """Get a tour with its guides and reviews."""
    return handler_factory.get_one(TourRepository(db), tour_id, schema=TourDetailOut)


@router.patch("/{tour_id}")
def update_tour(
    tour_id: int,
    body: TourUpdate,
    current_user: User = Depends(restrict_to("admin", "lead-guide")),
    db: Session = Depends(get_db),
):
    return handler_factory.update_one(
        TourRepository(db), tour_id, body.model_dump(exclude_unset=True, exclude_none=True)
    )


@router.delete("/{tour_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tour(
    tour_id: int,
    current_user: User = Depends(restrict_to("admin", "lead-guide")),
    db: Session = Depends(get_db),
):
    handler_factory.delete_one(TourRepository(db), tour_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
