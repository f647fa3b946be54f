"""
Identity provider client: verifies the provider-issued session JWT and exposes
the signed-in user's primary email and display metadata.

Auth is required for session routes. A missing or invalid token resolves to
None, which callers treat as "identity not settled" and never bootstrap.
"""

import time
from dataclasses import dataclass
from typing import Optional
from jose import jwt, JWTError
from fastapi import Request
from medqueue.config import Settings
from medqueue.exceptions import NoEmailProvided, NoPrimaryEmail
from medqueue.schemas.webhook import WebhookUserData

TOKEN_EXPIRE_SECONDS = 3600


@dataclass(frozen=True)
class IdentityUser:
    """The provider's view of the signed-in user."""
    user_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    image_url: Optional[str] = None
    expires_at: Optional[int] = None  # token "exp", epoch seconds

    def is_expired(self, now: float = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (time.time() if now is None else now)


def create_session_token(identity: IdentityUser, settings: Settings, expires_in: int = TOKEN_EXPIRE_SECONDS) -> str:
    """Sign a session token carrying the claims decode_session_token reads."""
    payload = {
        "sub": identity.user_id,
        "email": identity.email,
        "name": identity.display_name,
        "image_url": identity.image_url,
        "exp": int(time.time()) + expires_in,
    }
    if settings.identity_jwt_issuer:
        payload["iss"] = settings.identity_jwt_issuer
    return jwt.encode(payload, settings.identity_jwt_key, algorithm=settings.identity_jwt_algorithm)


def decode_session_token(token: str, settings: Settings) -> Optional[IdentityUser]:
    """Decode and validate a session JWT. Returns None if invalid/expired."""
    try:
        payload = jwt.decode(
            token,
            settings.identity_jwt_key,
            algorithms=[settings.identity_jwt_algorithm],
            issuer=settings.identity_jwt_issuer or None,
            options={"verify_aud": False},
        )
    except JWTError:
        return None
    subject = payload.get("sub")
    if not subject:
        return None
    return IdentityUser(
        user_id=subject,
        email=payload.get("email") or payload.get("primary_email"),
        display_name=payload.get("name", subject),
        image_url=payload.get("image_url"),
        expires_at=payload.get("exp"),
    )


async def get_current_identity(request: Request) -> Optional[IdentityUser]:
    """FastAPI dependency. Extracts the session JWT from the Authorization header."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return decode_session_token(auth_header[7:], request.app.state.settings)


def identity_from_webhook(data: WebhookUserData) -> IdentityUser:
    """Resolve the primary email of a webhook user payload."""
    if not data.email_addresses:
        raise NoEmailProvided()
    primary = next(
        (e for e in data.email_addresses if e.id == data.primary_email_address_id),
        None,
    )
    if primary is None:
        raise NoPrimaryEmail()
    name = " ".join(part for part in (data.first_name, data.last_name) if part) or None
    return IdentityUser(
        user_id=data.id or "",
        email=primary.email_address,
        display_name=name,
        image_url=data.image_url,
    )
