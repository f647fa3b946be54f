from pydantic import BaseModel
from typing import Any, Optional
from medqueue.schemas.profile import ProfileResponse


class NotificationResponse(BaseModel):
    level: str  # "success" | "error" | "info"
    message: str


class SessionResponse(BaseModel):
    state: str
    profile: Optional[ProfileResponse] = None
    role_data: dict[str, Any] = {}
    error: Optional[str] = None
    notifications: list[NotificationResponse] = []


class SaveResponse(BaseModel):
    saved: bool
    role_data: dict[str, Any] = {}
    notifications: list[NotificationResponse] = []
