from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class ProfileResponse(BaseModel):
    id: str
    email: str
    role: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoleSelection(BaseModel):
    role: str
