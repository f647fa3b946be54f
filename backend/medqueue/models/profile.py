from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from medqueue.database import Base


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)  # UUID string, independent of the identity provider
    email = Column(String(320), unique=True, nullable=False, index=True)
    role = Column(String(20), nullable=False, default="patient")  # "patient" | "staff" | "admin"
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
