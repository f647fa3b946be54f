from fastapi import APIRouter, Depends, HTTPException
from medqueue.identity import IdentityUser
from medqueue.routers.dependencies import get_sessions, require_identity, session_response
from medqueue.schemas.role_data import RoleDataUpdate
from medqueue.schemas.session import SaveResponse, SessionResponse
from medqueue.session import SessionRegistry

router = APIRouter()


@router.get("", response_model=SessionResponse)
async def get_session(
    identity: IdentityUser = Depends(require_identity),
    sessions: SessionRegistry = Depends(get_sessions),
):
    """Bootstrap the caller's session on first use, then serve the cached copy."""
    controller = await sessions.get_or_bootstrap(identity)
    return session_response(controller)


@router.patch("/data", response_model=SaveResponse)
async def save_session_data(
    data: RoleDataUpdate,
    identity: IdentityUser = Depends(require_identity),
    sessions: SessionRegistry = Depends(get_sessions),
):
    controller = await sessions.get_or_bootstrap(identity)
    if controller.profile is None:
        raise HTTPException(status_code=409, detail="No profile loaded for this session")

    saved = await controller.save_changes(data.model_dump(mode="json", include=data.model_fields_set))
    return SaveResponse(
        saved=saved,
        role_data=controller.role_data,
        notifications=[
            {"level": n.level, "message": n.message} for n in controller.drain_notifications()
        ],
    )


@router.delete("")
async def sign_out(
    identity: IdentityUser = Depends(require_identity),
    sessions: SessionRegistry = Depends(get_sessions),
):
    return {"signed_out": sessions.sign_out(identity)}
