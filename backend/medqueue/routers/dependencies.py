from typing import Optional
from fastapi import Depends, HTTPException, Request
from medqueue.identity import IdentityUser, get_current_identity
from medqueue.session import SessionController, SessionRegistry
from medqueue.schemas.session import SessionResponse


def get_sessions(request: Request) -> SessionRegistry:
    return request.app.state.sessions


async def require_identity(identity: Optional[IdentityUser] = Depends(get_current_identity)) -> IdentityUser:
    if identity is None:
        raise HTTPException(status_code=401, detail="Not signed in")
    if not identity.email:
        raise HTTPException(status_code=401, detail="Email address not found")
    return identity


def session_response(controller: SessionController) -> SessionResponse:
    return SessionResponse(
        state=controller.state.value,
        profile=controller.profile,
        role_data=controller.role_data,
        error=controller.error,
        notifications=[
            {"level": n.level, "message": n.message} for n in controller.drain_notifications()
        ],
    )
