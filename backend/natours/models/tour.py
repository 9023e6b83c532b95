from sqlalchemy import (
    Column, String, Boolean, Integer, Float, Text, JSON, DateTime, ForeignKey, Table,
)
from sqlalchemy.orm import relationship
from natours.core.database import Base
from .base import BaseModel, IdType

DIFFICULTIES = ("easy", "medium", "difficult")

tour_guide = Table(
    "tour_guide",
    Base.metadata,
    Column("tour_id", IdType, ForeignKey("tour.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", IdType, ForeignKey("user.id", ondelete="CASCADE"), primary_key=True),
)


class Tour(BaseModel):
    __tablename__ = "tour"

    name = Column(String(30), unique=True, index=True, nullable=False)
    slug = Column(String(64), index=True)
    price = Column(Float, nullable=False)
    price_discount = Column(Float)
    ratings_average = Column(Float, nullable=False, default=0)
    ratings_quantity = Column(Integer, nullable=False, default=0)
    difficulty = Column(String(20), nullable=False)
    duration = Column(Integer, nullable=False)
    max_group_size = Column(Integer, nullable=False)
    summary = Column(Text, nullable=False)
    description = Column(Text)
    image_cover = Column(String(255), nullable=False)
    images = Column(JSON, default=list)
    secret_tour = Column(Boolean, nullable=False, default=False)
    start_location = Column(JSON)  # {"type": "Point", "coordinates": [lng, lat], "address", "description"}
    locations = Column(JSON, default=list)  # same shape plus "day"

    # Relationships
    start_date_rows = relationship(
        "TourStartDate",
        back_populates="tour",
        cascade="all, delete-orphan",
        order_by="TourStartDate.start_date",
    )
    guides = relationship("User", secondary=tour_guide, back_populates="guided_tours")
    reviews = relationship(
        "Review",
        back_populates="tour",
        cascade="all, delete-orphan",
        order_by="Review.created_at.desc()",
    )

    @property
    def start_dates(self):
        return [row.start_date for row in self.start_date_rows]

    @start_dates.setter
    def start_dates(self, values):
        self.start_date_rows = [TourStartDate(start_date=value) for value in values or []]

    @property
    def formatted_duration(self) -> str:
        weeks, days = divmod(self.duration or 0, 7)
        return f"{weeks} weeks {days} days"


class TourStartDate(Base):
    __tablename__ = "tour_start_date"

    id = Column(IdType, primary_key=True)
    start_date = Column(DateTime(timezone=True), nullable=False, index=True)

    # Foreign keys
    tour_id = Column(IdType, ForeignKey("tour.id", ondelete="CASCADE"), nullable=False)

    # Relationships
    tour = relationship("Tour", back_populates="start_date_rows")
