from fastapi import APIRouter, Depends, HTTPException
from medqueue.identity import IdentityUser
from medqueue.roles import Role
from medqueue.routers.dependencies import get_sessions, require_identity, session_response
from medqueue.schemas.profile import RoleSelection
from medqueue.schemas.session import SessionResponse
from medqueue.session import SessionRegistry

router = APIRouter()


@router.put("/role", response_model=SessionResponse)
async def select_role(
    body: RoleSelection,
    identity: IdentityUser = Depends(require_identity),
    sessions: SessionRegistry = Depends(get_sessions),
):
    """
    Switch the caller's role. The session is bootstrapped again afterwards so
    it serves the new role's data.
    """
    if Role.parse(body.role) is None:
        raise HTTPException(status_code=422, detail="Invalid role selection")

    controller = await sessions.get_or_bootstrap(identity)
    if controller.profile is None:
        raise HTTPException(status_code=404, detail="User profile not found")

    if controller.profile.role != body.role:
        updated = await sessions.resolver.change_role(controller.profile.id, body.role)
        if updated is None:
            raise HTTPException(status_code=500, detail="Failed to update role")
        await controller.bootstrap(identity)

    controller.notify("success", f"Role set to {body.role}")
    return session_response(controller)
