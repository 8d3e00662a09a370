"""Tests for in-app notifications (/me/notifications)."""

import uuid

import pytest
from httpx import AsyncClient

from jobengine.db.enums import EntityType, NotificationType
from jobengine.services import notification_service


def _notify(db, session, title="Ticket assigned"):
    return notification_service.create_notification(
        db,
        org_id=session.org_id,
        user_id=session.user_id,
        type=NotificationType.TICKET_ASSIGNED,
        title=title,
        entity_type=EntityType.TICKET.value,
        entity_id=uuid.uuid4(),
    )


def test_failed_trigger_does_not_raise(db, flow, caplog):
    ticket = flow.open_ticket()

    def boom():
        raise RuntimeError("notification store down")

    notification_service._dispatch(db, "ticket_assigned", boom)

    assert "Failed to record ticket_assigned notification" in caplog.text
    # Session is still usable for the next request
    db.refresh(ticket)
    assert ticket.status == "open"


def test_unread_count_and_mark_read(db, contractor, other_contractor):
    first = _notify(db, contractor, "One")
    _notify(db, contractor, "Two")
    _notify(db, other_contractor, "Someone else's")

    assert notification_service.get_unread_count(db, contractor.user_id, contractor.org_id) == 2

    notification_service.mark_read(db, first.id, contractor.user_id, contractor.org_id)
    assert notification_service.get_unread_count(db, contractor.user_id, contractor.org_id) == 1

    # Cannot mark another user's notification
    assert notification_service.mark_read(
        db, first.id, other_contractor.user_id, other_contractor.org_id
    ) is None

    assert notification_service.mark_all_read(db, contractor.user_id, contractor.org_id) == 1
    assert notification_service.get_unread_count(db, contractor.user_id, contractor.org_id) == 0


@pytest.mark.asyncio
async def test_notification_endpoints(db, contractor_client: AsyncClient, contractor):
    first = _notify(db, contractor, "One")
    _notify(db, contractor, "Two")

    response = await contractor_client.get("/me/notifications")
    assert response.status_code == 200
    data = response.json()
    assert data["unread_count"] == 2
    assert {n["title"] for n in data["items"]} == {"One", "Two"}

    response = await contractor_client.patch(f"/me/notifications/{first.id}/read")
    assert response.status_code == 200
    assert response.json()["read_at"] is not None

    response = await contractor_client.get("/me/notifications", params={"unread_only": True})
    assert [n["title"] for n in response.json()["items"]] == ["Two"]

    response = await contractor_client.post("/me/notifications/read-all")
    assert response.json() == {"marked_read": 1}

    response = await contractor_client.patch(f"/me/notifications/{uuid.uuid4()}/read")
    assert response.status_code == 404
