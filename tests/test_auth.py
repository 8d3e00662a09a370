"""Tests for session-token authentication and secret rotation."""

import uuid

import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from jobengine.core.config import settings
from jobengine.core.deps import COOKIE_NAME
from jobengine.core.security import create_session_token, decode_session_token
from jobengine.main import app


def test_token_round_trip_carries_identity():
    user_id, org_id = uuid.uuid4(), uuid.uuid4()
    payload = decode_session_token(create_session_token(user_id, org_id, "admin"))

    assert payload["sub"] == str(user_id)
    assert payload["org_id"] == str(org_id)
    assert payload["role"] == "admin"


def test_previous_secret_still_accepted_during_rotation(monkeypatch):
    token = create_session_token(uuid.uuid4(), uuid.uuid4(), "requester")

    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", settings.JWT_SECRET)
    monkeypatch.setattr(settings, "JWT_SECRET", "rotated-secret-for-the-suite-0123456789")

    assert decode_session_token(token)["role"] == "requester"


def test_token_with_unknown_secret_rejected(monkeypatch):
    token = create_session_token(uuid.uuid4(), uuid.uuid4(), "requester")
    monkeypatch.setattr(settings, "JWT_SECRET", "rotated-secret-for-the-suite-0123456789")

    with pytest.raises(jwt.InvalidTokenError):
        decode_session_token(token)


async def _get_tickets_with_token(token: str):
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={COOKIE_NAME: token},
    ) as c:
        return await c.get("/tickets")


@pytest.mark.asyncio
async def test_garbage_token_is_401(override_db):
    response = await _get_tickets_with_token("not-a-jwt")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unknown_role_is_403(override_db):
    token = create_session_token(uuid.uuid4(), uuid.uuid4(), "superuser")
    response = await _get_tickets_with_token(token)
    assert response.status_code == 403
    assert "Unknown role" in response.json()["detail"]
