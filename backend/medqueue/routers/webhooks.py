from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from medqueue.database import DataStore, get_store
from medqueue.exceptions import InternalError
from medqueue.schemas.webhook import WebhookErrorResponse, WebhookMessage
from medqueue.services.webhooks import handle_identity_event

router = APIRouter()


@router.post(
    "/identity",
    response_model=WebhookMessage,
    responses={
        201: {"model": WebhookMessage, "description": "Profile created"},
        400: {"model": WebhookErrorResponse, "description": "NoEmailProvided or NoPrimaryEmail"},
        500: {"model": WebhookErrorResponse, "description": "DatabaseQueryError, DatabaseInsertionError or InternalError"},
    },
)
async def identity_webhook(request: Request, store: DataStore = Depends(get_store)):
    """Identity-provider push events (user.created, user.updated, ...)."""
    try:
        payload = await request.json()
    except ValueError as exc:
        raise InternalError() from exc
    status_code, message = await handle_identity_event(store, payload)
    return JSONResponse(status_code=status_code, content=WebhookMessage(message=message).model_dump())
