from sqlalchemy import Column, Integer, Text, ForeignKey
from sqlalchemy.orm import relationship
from .base import BaseModel, IdType


class Review(BaseModel):
    __tablename__ = "review"

    review = Column(Text, nullable=False)
    rating = Column(Integer, nullable=False)

    # Foreign keys
    tour_id = Column(IdType, ForeignKey("tour.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(IdType, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)

    # Relationships
    tour = relationship("Tour", back_populates="reviews")
    user = relationship("User", back_populates="reviews")
