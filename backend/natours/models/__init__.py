from .base import BaseModel
from .user import User, ROLES
from .tour import Tour, TourStartDate, DIFFICULTIES, tour_guide
from .review import Review

__all__ = [
    "BaseModel",
    "User",
    "ROLES",
    "Tour",
    "TourStartDate",
    "DIFFICULTIES",
    "tour_guide",
    "Review",
]
