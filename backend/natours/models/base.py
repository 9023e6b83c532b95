from sqlalchemy import Column, DateTime, BigInteger, Integer
from sqlalchemy.sql import func
from natours.core.database import Base

# SQLite only autoincrements INTEGER primary keys
IdType = BigInteger().with_variant(Integer, "sqlite")


class BaseModel(Base):
    __abstract__ = True

    id = Column(IdType, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
