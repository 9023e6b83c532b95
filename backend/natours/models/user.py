from sqlalchemy import Column, String, Boolean, Integer, DateTime
from sqlalchemy.orm import relationship
from .base import BaseModel

ROLES = ("user", "admin", "guide", "lead-guide")


class User(BaseModel):
    __tablename__ = "user"

    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    photo = Column(String(255))
    role = Column(String(50), nullable=False, default="user")
    password = Column(String(255), nullable=False)  # bcrypt hash, never serialized
    active = Column(Boolean, nullable=False, default=True)  # Soft delete
    password_changed_at = Column(DateTime(timezone=True))
    password_reset_token = Column(String(64), index=True)  # sha256 hex digest
    password_reset_expires = Column(DateTime(timezone=True))
    failed_login_attempts = Column(Integer, nullable=False, default=0)
    lockout_until = Column(DateTime(timezone=True))

    # Relationships
    reviews = relationship("Review", back_populates="user", cascade="all, delete-orphan")
    guided_tours = relationship("Tour", secondary="tour_guide", back_populates="guides")

    # Plaintext confirmation, only present between assignment and save
    password_confirm = None
