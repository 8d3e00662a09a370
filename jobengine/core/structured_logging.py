"""Structured logging helpers (PII-safe)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    user_id: UUID | str | None = None,
    org_id: UUID | str | None = None,
    entity_type: str | None = None,
    entity_id: UUID | str | None = None,
    from_status: str | None = None,
    to_status: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict carrying identifiers only."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if org_id:
        context["org_id"] = str(org_id)
    if entity_type:
        context["entity_type"] = entity_type
    if entity_id:
        context["entity_id"] = str(entity_id)
    if from_status:
        context["from_status"] = from_status
    if to_status:
        context["to_status"] = to_status
    return context
