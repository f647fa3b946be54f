"""
Tests for the identity-provider webhook, both the handler and the endpoint.
"""

import httpx
import pytest
from sqlalchemy import func, select

from medqueue.exceptions import (
    DatabaseInsertionError,
    DatabaseQueryError,
    InternalError,
    NoEmailProvided,
    NoPrimaryEmail,
)
from medqueue.identity import IdentityUser
from medqueue.main import create_app
from medqueue.models import PatientData, Profile
from medqueue.services import webhooks
from medqueue.services.profiles import ProfileResolver
from medqueue.services.webhooks import handle_identity_event
from tests.conftest import BrokenStore, ScriptedStore


def user_event(event_type="user.created", emails=None, primary="e1"):
    if emails is None:
        emails = [{"id": "e1", "email_address": "a@x.com"}]
    return {
        "type": event_type,
        "data": {
            "id": "user_123",
            "email_addresses": emails,
            "primary_email_address_id": primary,
        },
    }


async def _profiles(store):
    async with store.session() as session:
        return (await session.execute(select(Profile))).scalars().all()


# ── Handler ──────────────────────────────────────────────────────────

async def test_created_then_resubmitted(store):
    assert await handle_identity_event(store, user_event()) == (201, "User created successfully")

    profiles = await _profiles(store)
    assert [(p.email, p.role) for p in profiles] == [("a@x.com", "patient")]

    assert await handle_identity_event(store, user_event()) == (200, "User already exists")
    assert len(await _profiles(store)) == 1


async def test_created_without_user_id(store):
    event = {
        "type": "user.created",
        "data": {
            "email_addresses": [{"id": "e1", "email_address": "a@x.com"}],
            "primary_email_address_id": "e1",
        },
    }
    status, _ = await handle_identity_event(store, event)
    assert status == 201


async def test_creates_patient_data(store):
    await handle_identity_event(store, user_event())
    profile = (await _profiles(store))[0]
    async with store.session() as session:
        count = await session.scalar(
            select(func.count()).select_from(PatientData).where(PatientData.user_id == profile.id)
        )
    assert count == 1


async def test_updated_event_does_not_modify(store, resolver):
    profile_id = await resolver.create_profile(IdentityUser(user_id="user_123", email="a@x.com"))
    await resolver.change_role(profile_id, "admin")

    status, message = await handle_identity_event(store, user_event("user.updated"))

    assert status == 200
    assert message == "User already exists"
    assert (await resolver.get_by_email("a@x.com")).role == "admin"


async def test_other_events_acknowledged(store):
    assert await handle_identity_event(store, {"type": "session.created", "data": {}}) == (200, "Webhook processed")
    assert await _profiles(store) == []


async def test_no_email(store):
    with pytest.raises(NoEmailProvided):
        await handle_identity_event(store, user_event(emails=[]))


async def test_no_primary_email(store):
    with pytest.raises(NoPrimaryEmail):
        await handle_identity_event(store, user_event(primary="e9"))


async def test_query_failure():
    with pytest.raises(DatabaseQueryError):
        await handle_identity_event(BrokenStore(), user_event())


async def test_unexpected_fault_is_internal_error(store, monkeypatch):
    def explode(data):
        raise RuntimeError("boom")

    monkeypatch.setattr(webhooks, "identity_from_webhook", explode)
    with pytest.raises(InternalError):
        await handle_identity_event(store, user_event())


# ── Endpoint ─────────────────────────────────────────────────────────

async def test_endpoint_status_codes(client):
    response = await client.post("/api/webhooks/identity", json=user_event())
    assert response.status_code == 201
    assert response.json() == {"message": "User created successfully"}

    response = await client.post("/api/webhooks/identity", json=user_event())
    assert response.status_code == 200
    assert response.json() == {"message": "User already exists"}


async def test_endpoint_errors(client):
    response = await client.post("/api/webhooks/identity", json=user_event(emails=[]))
    assert response.status_code == 400
    assert response.json() == {"error": "No email address provided", "code": "NoEmailProvided"}

    response = await client.post("/api/webhooks/identity", json=user_event(primary="nope"))
    assert response.status_code == 400
    assert response.json()["code"] == "NoPrimaryEmail"


async def test_endpoint_malformed_body_is_internal_error(client):
    response = await client.post(
        "/api/webhooks/identity",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "code": "InternalError"}

    response = await client.post("/api/webhooks/identity", json={"type": "user.created", "data": None})
    assert response.status_code == 500
    assert response.json()["code"] == "InternalError"


async def test_endpoint_acknowledges_missing_type(client):
    response = await client.post("/api/webhooks/identity", json={"data": {}})
    assert response.status_code == 200
    assert response.json() == {"message": "Webhook processed"}


# ── Store failures and races ─────────────────────────────────────────

async def test_insert_failure(store):
    scripted = ScriptedStore(store, fail_on={2})

    with pytest.raises(DatabaseInsertionError):
        await handle_identity_event(scripted, user_event())

    assert await _profiles(store) == []


async def test_endpoint_insert_failure(settings, store):
    app = create_app(settings=settings, store=ScriptedStore(store, fail_on={2}))
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/webhooks/identity", json=user_event())

    assert response.status_code == 500
    assert response.json() == {"error": "Database insertion error", "code": "DatabaseInsertionError"}


async def test_lost_creation_race_is_already_exists(store):
    async def sign_in_first(real_store):
        await ProfileResolver(real_store).create_profile(IdentityUser(user_id="user_123", email="a@x.com"))

    scripted = ScriptedStore(store, before={2: sign_in_first})

    assert await handle_identity_event(scripted, user_event()) == (200, "User already exists")
    assert len(await _profiles(store)) == 1


async def test_patient_data_failure_still_creates(store):
    scripted = ScriptedStore(store, fail_on={3})

    assert await handle_identity_event(scripted, user_event()) == (201, "User created successfully")

    assert [p.email for p in await _profiles(store)] == ["a@x.com"]
    async with store.session() as session:
        assert await session.scalar(select(func.count()).select_from(PatientData)) == 0


async def test_patient_data_exception_still_creates(store, monkeypatch):
    async def explode(self, user_id, role):
        raise RuntimeError("boom")

    monkeypatch.setattr(webhooks.RoleDataAccessor, "create", explode)

    assert await handle_identity_event(store, user_event()) == (201, "User created successfully")
    assert len(await _profiles(store)) == 1
