"""Request and response schemas shared by the API routers.

Fields are snake_case in Python and camelCase on the wire.
"""

import re
from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

TOUR_NAME_PATTERN = re.compile(r"^[A-Za-z\s]+$")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _check_tour_name(value: Optional[str]) -> Optional[str]:
    if value is not None and not TOUR_NAME_PATTERN.match(value):
        raise ValueError("Tour name can contain only letters and spaces")
    return value


TourName = Annotated[str, Field(min_length=3, max_length=30), AfterValidator(_check_tour_name)]


# ---------------------------------------------------------------- tours


class GeoPoint(CamelModel):
    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(default_factory=list)
    address: Optional[str] = None
    description: Optional[str] = None


class TourLocation(GeoPoint):
    day: Optional[int] = None


class TourCreate(CamelModel):
    name: TourName
    price: float = Field(..., ge=0)
    price_discount: Optional[float] = None
    difficulty: Literal["easy", "medium", "difficult"]
    duration: int = Field(..., ge=1, le=30)
    max_group_size: int = Field(..., ge=1)
    summary: str = Field(..., min_length=1)
    description: Optional[str] = Field(None, min_length=20)
    image_cover: str
    images: List[str] = Field(default_factory=list)
    start_dates: List[datetime] = Field(default_factory=list)
    secret_tour: bool = False
    start_location: Optional[GeoPoint] = None
    locations: List[TourLocation] = Field(default_factory=list)
    guides: List[int] = Field(default_factory=list)

    @field_validator("summary", mode="before")
    @classmethod
    def strip_summary(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @model_validator(mode="after")
    def check_discount(self) -> "TourCreate":
        if self.price_discount is not None and self.price_discount >= self.price:
            raise ValueError("The discount price must be lower than the actual price")
        return self


class TourUpdate(CamelModel):
    name: Optional[TourName] = None
    price: Optional[float] = Field(None, ge=0)
    price_discount: Optional[float] = None
    difficulty: Optional[Literal["easy", "medium", "difficult"]] = None
    duration: Optional[int] = Field(None, ge=1, le=30)
    max_group_size: Optional[int] = Field(None, ge=1)
    summary: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=20)
    image_cover: Optional[str] = None
    images: Optional[List[str]] = None
    start_dates: Optional[List[datetime]] = None
    secret_tour: Optional[bool] = None
    start_location: Optional[GeoPoint] = None
    locations: Optional[List[TourLocation]] = None
    guides: Optional[List[int]] = None


class GuideOut(CamelModel):
    id: int
    name: str
    email: str
    photo: Optional[str] = None
    role: str


class TourOut(CamelModel):
    id: int
    name: str
    slug: Optional[str] = None
    price: float
    price_discount: Optional[float] = None
    ratings_average: float
    ratings_quantity: int
    difficulty: str
    duration: int
    formatted_duration: str
    max_group_size: int
    summary: str
    description: Optional[str] = None
    image_cover: str
    images: List[str] = Field(default_factory=list)
    start_dates: List[datetime] = Field(default_factory=list)
    secret_tour: bool
    start_location: Optional[GeoPoint] = None
    locations: List[TourLocation] = Field(default_factory=list)
    guides: List[GuideOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator("images", "locations", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


# ---------------------------------------------------------------- reviews


class ReviewAuthor(CamelModel):
    id: int
    name: str
    photo: Optional[str] = None


class ReviewCreate(CamelModel):
    review: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    tour: Optional[int] = None


class ReviewUpdate(CamelModel):
    review: Optional[str] = Field(None, min_length=1)
    rating: Optional[int] = Field(None, ge=1, le=5)


class ReviewOut(CamelModel):
    id: int
    review: str
    rating: int
    tour: int
    user: Optional[ReviewAuthor] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator("tour", mode="before")
    @classmethod
    def tour_as_id(cls, value: Any) -> Any:
        return getattr(value, "id", value)


class TourDetailOut(TourOut):
    reviews: List[ReviewOut] = Field(default_factory=list)


# ---------------------------------------------------------------- users


class UserOut(CamelModel):
    id: int
    name: str
    email: str
    photo: Optional[str] = None
    role: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class SignupRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str
    password_confirm: str
    role: Literal["user", "admin", "guide", "lead-guide"] = "user"
    photo: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    password: str
    password_confirm: str


class UpdatePasswordRequest(CamelModel):
    curr_password: str
    password: str
    password_confirm: str


class UpdateMeRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    photo: Optional[str] = None
    password: Optional[str] = None
    password_confirm: Optional[str] = None


class UserAdminUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    photo: Optional[str] = None
    role: Optional[Literal["user", "admin", "guide", "lead-guide"]] = None
