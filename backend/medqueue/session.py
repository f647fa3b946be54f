"""
Session bootstrap controller.

One SessionController per signed-in identity. On session start it runs, in
order: existence check, conditional profile creation, profile fetch and
role-data fetch. Each step needs the previous one's result, so nothing here
runs in parallel, and a per-session lock keeps saves from interleaving with a
bootstrap.

States:
    unauthenticated -> bootstrapping -> ready
                                     -> degraded (profile missing after creation)

The store stays the source of truth; the cached copy is re-read on every
session start and never reconciled.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional
from medqueue.exceptions import ProfileNotFound
from medqueue.identity import IdentityUser
from medqueue.schemas.profile import ProfileResponse
from medqueue.services.profiles import ProfileResolver
from medqueue.services.role_data import RoleDataAccessor

logger = logging.getLogger(__name__)

PROFILE_NOT_FOUND_MESSAGE = "User profile not found. Try signing out and signing in again."
LOAD_FAILED_MESSAGE = "Failed to load user data"


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    BOOTSTRAPPING = "bootstrapping"
    READY = "ready"
    DEGRADED = "degraded"


@dataclass
class Notification:
    level: str
    message: str


def _as_utc(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def merge_role_data(current: dict, updates: dict) -> dict:
    """
    Shallow merge, last write wins per top-level key. Mapping values are merged
    one level down so {"preferences": {"queueStatus": ...}} keeps the other
    preferences.
    """
    merged = dict(current)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


class SessionController:
    def __init__(self, resolver: ProfileResolver, accessor: RoleDataAccessor):
        self.resolver = resolver
        self.accessor = accessor
        self.state = SessionState.UNAUTHENTICATED
        self.identity: Optional[IdentityUser] = None
        self.profile: Optional[ProfileResponse] = None
        self.role_data: dict[str, Any] = {}
        self.pending: Optional[dict[str, Any]] = None
        self.error: Optional[str] = None
        self.notifications: list[Notification] = []
        self._confirmed: dict[str, Any] = {}
        self._lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        # Degraded sessions stay usable, just without role data
        return self.state in (SessionState.READY, SessionState.DEGRADED)

    def notify(self, level: str, message: str):
        self.notifications.append(Notification(level, message))

    def drain_notifications(self) -> list[Notification]:
        drained, self.notifications = self.notifications, []
        return drained

    def _reset(self):
        self.profile = None
        self.role_data = {}
        self.pending = None
        self.error = None
        self._confirmed = {}

    async def bootstrap(self, identity: Optional[IdentityUser]) -> SessionState:
        async with self._lock:
            return await self._bootstrap(identity)

    async def _bootstrap(self, identity: Optional[IdentityUser]) -> SessionState:
        """Bootstrap sequence; caller holds the session lock."""
        self._reset()
        self.identity = identity
        email = identity.email if identity else None
        if not email:
            self.state = SessionState.UNAUTHENTICATED
            return self.state

        self.state = SessionState.BOOTSTRAPPING
        try:
            if not await self.resolver.exists(email):
                await self.resolver.create_profile(identity)

            profile = await self.resolver.get_by_email(email)
            if profile is None:
                raise ProfileNotFound(email)
            self.profile = profile

            role_data = await self.accessor.read(profile.id, profile.role, create_missing=True)
            self._confirmed = dict(role_data or {})
            self.role_data = dict(self._confirmed)
            self.state = SessionState.READY
            logger.info("Session ready for %s (%s)", email, profile.role)
        except ProfileNotFound:
            logger.error("Failed to get user profile for %s", email)
            self.error = PROFILE_NOT_FOUND_MESSAGE
            self.state = SessionState.DEGRADED
        except Exception:
            logger.exception("Error setting up user data")
            self.notify("error", LOAD_FAILED_MESSAGE)
            self.error = LOAD_FAILED_MESSAGE
            self.state = SessionState.DEGRADED
        return self.state

    def _next_timestamp(self) -> datetime:
        now = datetime.now(timezone.utc)
        last = _as_utc(self._confirmed.get("updated_at"))
        if last is not None and now <= last:
            now = last + timedelta(microseconds=1)
        return now

    async def save_changes(self, updates: dict) -> bool:
        """
        Merge updates into the cached role data and persist them.

        The merged copy is shown as pending while the write is in flight. It
        becomes the confirmed copy on success; on failure the cache rolls back
        to the last confirmed copy.
        """
        async with self._lock:
            if self.profile is None:
                return False

            stamp = self._next_timestamp()
            tentative = merge_role_data(self._confirmed, updates)
            tentative["updated_at"] = stamp
            self.pending = tentative
            self.role_data = dict(tentative)

            written = {key: tentative[key] for key in updates}
            written["updated_at"] = stamp
            try:
                saved = await self.accessor.write(self.profile.id, self.profile.role, written)
            except Exception:
                logger.exception("Error saving changes")
                saved = False
            finally:
                self.pending = None

            if saved:
                self._confirmed = tentative
                self.notify("success", "Changes saved successfully")
                return True

            self.role_data = dict(self._confirmed)
            self.notify("error", "Failed to save changes")
            return False


class SessionRegistry:
    """
    Session-scoped controllers, keyed by the identity provider's user id.

    Bounded: sessions whose token has expired are dropped, and past
    max_sessions the least recently used one goes first.
    """

    def __init__(self, resolver: ProfileResolver, accessor: RoleDataAccessor, max_sessions: int = 1000):
        self.resolver = resolver
        self.accessor = accessor
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, SessionController] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._sessions

    def _evict_expired(self):
        now = time.time()
        expired = [
            user_id for user_id, controller in self._sessions.items()
            if controller.identity is not None and controller.identity.is_expired(now)
        ]
        for user_id in expired:
            del self._sessions[user_id]

    def _trim(self):
        while len(self._sessions) > self.max_sessions:
            user_id, _ = self._sessions.popitem(last=False)
            logger.debug("Dropped least recently used session %s", user_id)

    async def get_or_bootstrap(self, identity: IdentityUser) -> SessionController:
        async with self._lock:
            self._evict_expired()
            controller = self._sessions.get(identity.user_id)
            if controller is not None and controller.identity is not None \
                    and controller.identity.email == identity.email:
                # Same session; a newer token only extends its lifetime
                controller.identity = identity
                self._sessions.move_to_end(identity.user_id)
                fresh = False
            else:
                # New session, or the identity's email changed
                controller = SessionController(self.resolver, self.accessor)
                controller.identity = identity
                self._sessions[identity.user_id] = controller
                self._trim()
                # Held before the registry lock is released, so concurrent
                # requests for this identity wait for the bootstrap
                await controller._lock.acquire()
                fresh = True

        if not fresh:
            # Let an in-flight bootstrap or save land first
            async with controller._lock:
                return controller
        try:
            await controller._bootstrap(identity)
        finally:
            controller._lock.release()
        return controller

    def sign_out(self, identity: IdentityUser) -> bool:
        return self._sessions.pop(identity.user_id, None) is not None
