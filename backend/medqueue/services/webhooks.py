"""
Server-side twin of the session bootstrap, driven by identity-provider events.

Only user.created / user.updated do anything, and only when no profile exists
for the primary email. Existing profiles are never modified. Any other or
missing event type is acknowledged without side effects.
"""

import logging
import uuid
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from medqueue.database import DataStore
from medqueue.exceptions import (
    DatabaseInsertionError,
    DatabaseQueryError,
    InternalError,
    WebhookError,
)
from medqueue.identity import identity_from_webhook
from medqueue.models.profile import Profile
from medqueue.roles import DEFAULT_ROLE
from medqueue.schemas.webhook import WebhookEvent, WebhookUserData
from medqueue.services.role_data import RoleDataAccessor

logger = logging.getLogger(__name__)

USER_EVENTS = ("user.created", "user.updated")


async def handle_identity_event(store: DataStore, payload) -> tuple[int, str]:
    """Process one webhook envelope. Returns (status_code, message); raises WebhookError."""
    try:
        return await _handle(store, payload)
    except WebhookError:
        raise
    except Exception as exc:
        logger.exception("Webhook error")
        raise InternalError() from exc


async def _handle(store: DataStore, payload) -> tuple[int, str]:
    event = WebhookEvent.model_validate(payload)

    logger.info("Received webhook: %s", event.type)
    if event.type not in USER_EVENTS:
        return 200, "Webhook processed"

    user = WebhookUserData.model_validate(event.data)
    email = identity_from_webhook(user).email

    try:
        async with store.session() as session:
            existing = await session.scalar(select(Profile.id).where(Profile.email == email))
    except SQLAlchemyError as exc:
        logger.error("Error querying user: %s", exc)
        raise DatabaseQueryError() from exc

    if existing:
        logger.info("User already exists: %s", email)
        return 200, "User already exists"

    user_id = str(uuid.uuid4())
    try:
        async with store.session() as session:
            session.add(Profile(id=user_id, email=email, role=DEFAULT_ROLE.value))
    except IntegrityError:
        # An interactive session created it between our check and insert
        logger.info("User created concurrently: %s", email)
        return 200, "User already exists"
    except SQLAlchemyError as exc:
        logger.error("Error inserting user: %s", exc)
        raise DatabaseInsertionError() from exc

    try:
        created = await RoleDataAccessor(store).create(user_id, DEFAULT_ROLE)
    except Exception:
        logger.exception("Error creating patient data for %s", user_id)
        created = False
    if not created:
        # Non-critical: the row is created on first read
        logger.warning("Profile %s created without patient data", user_id)

    return 201, "User created successfully"
