from pydantic import BaseModel
from typing import Any, Optional


class EmailAddress(BaseModel):
    id: str
    email_address: str

    class Config:
        extra = "allow"


class WebhookUserData(BaseModel):
    id: Optional[str] = None
    email_addresses: list[EmailAddress] = []
    primary_email_address_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    image_url: Optional[str] = None

    class Config:
        extra = "allow"


class WebhookEvent(BaseModel):
    type: Optional[str] = None
    data: Any = None

    class Config:
        extra = "allow"


class WebhookMessage(BaseModel):
    message: str


class WebhookErrorResponse(BaseModel):
    error: str
    code: str  # error class, e.g. "NoPrimaryEmail"
