"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel

from jobengine.db.enums import Role


class UserSession(BaseModel):
    """
    Identity context for an authenticated request.

    Supplied by the identity provider's session token. Services receive
    this as ``actor`` and derive tenant scope and role guards from it.
    """
    user_id: UUID
    org_id: UUID
    role: Role  # Validated enum
