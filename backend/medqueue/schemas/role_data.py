from enum import Enum
from pydantic import BaseModel
from datetime import date
from typing import Any, Optional


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Appointment(BaseModel):
    id: str
    department: str
    doctor: str
    date: date
    time: str
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: Optional[str] = None


class RoleDataUpdate(BaseModel):
    """Partial update; only the fields sent are written."""
    appointments: Optional[list[Appointment]] = None
    preferences: Optional[dict[str, Any]] = None

    class Config:
        extra = "forbid"
