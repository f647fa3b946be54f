from contextlib import asynccontextmanager

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from medqueue.config import Settings
from medqueue.database import DataStore
from medqueue.identity import IdentityUser, create_session_token
from medqueue.main import create_app
from medqueue.services.profiles import ProfileResolver
from medqueue.services.role_data import RoleDataAccessor


# ── Helpers / Fakes ──────────────────────────────────────────────────

class BrokenStore:
    """A store whose every unit of work fails like a dropped connection."""

    @asynccontextmanager
    async def session(self):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))
        yield  # pragma: no cover

    async def create_all(self):
        pass

    async def dispose(self):
        pass


class ScriptedStore:
    """
    Wraps a real store and counts units of work. Before the Nth one it can run
    a hook against the real store, or fail it outright.
    """

    def __init__(self, store, fail_on=(), before=None):
        self.store = store
        self.fail_on = set(fail_on)
        self.before = before or {}
        self.calls = 0

    @asynccontextmanager
    async def session(self):
        self.calls += 1
        if self.calls in self.before:
            await self.before[self.calls](self.store)
        if self.calls in self.fail_on:
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        async with self.store.session() as session:
            yield session


# ── Fixtures ─────────────────────────────────────────────────────────

@pytest.fixture()
def settings():
    return Settings(
        database_url="sqlite+aiosqlite://",
        identity_jwt_key="test-identity-key",
        identity_jwt_algorithm="HS256",
        identity_jwt_issuer="",
        preconfigured_profiles={},
    )


@pytest.fixture()
async def store():
    store = DataStore.from_url("sqlite+aiosqlite://")
    await store.create_all()
    yield store
    await store.dispose()


@pytest.fixture()
def accessor(store):
    return RoleDataAccessor(store)


@pytest.fixture()
def resolver(store, accessor):
    return ProfileResolver(store, accessor)


@pytest.fixture()
def alice():
    return IdentityUser(user_id="user_alice", email="alice@example.com", display_name="Alice")


@pytest.fixture()
def app(settings, store):
    return create_app(settings=settings, store=store)


@pytest.fixture()
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture()
def auth_headers(settings):
    def _headers(identity: IdentityUser) -> dict:
        return {"Authorization": f"Bearer {create_session_token(identity, settings)}"}
    return _headers
