from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import declared_attr
from sqlalchemy.sql import func
from medqueue.database import Base


class RoleDataMixin:
    """Columns shared by every role-specific table. One row per user."""

    id = Column(Integer, primary_key=True, autoincrement=True)
    appointments = Column(JSON, default=list)
    preferences = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    @declared_attr
    def user_id(cls):
        return Column(
            String(36),
            ForeignKey("profiles.id", ondelete="CASCADE"),
            unique=True,
            nullable=False,
            index=True,
        )


class PatientData(RoleDataMixin, Base):
    __tablename__ = "patient_data"


class StaffData(RoleDataMixin, Base):
    __tablename__ = "staff_data"


class AdminData(RoleDataMixin, Base):
    __tablename__ = "admin_data"


# Fields a partial update may touch
ROLE_DATA_FIELDS = ("appointments", "preferences", "updated_at")
