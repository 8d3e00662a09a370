"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from jobengine.core.security import decode_session_token
from jobengine.db.enums import Role
from jobengine.db.session import SessionLocal
from jobengine.schemas.auth import UserSession


# Cookie and header names
COOKIE_NAME = "jobengine_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_session(request: Request) -> UserSession:
    """
    Get identity context from the session cookie.

    This is the PRIMARY auth dependency for most endpoints.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 403: Unknown role
    """
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid session")

    # Validate role is a known enum value - return 403 not 500
    role = payload.get("role", "")
    if not Role.has_value(role):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{role}'. Contact administrator.",
        )

    try:
        return UserSession(user_id=payload["sub"], org_id=payload["org_id"], role=Role(role))
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid session")


def require_roles(allowed_roles: list[Role]):
    """
    Dependency factory for role-based authorization.

    Uses enum values (not strings) to prevent drift.

    Usage:
        @router.post("/assign", dependencies=[Depends(require_roles([Role.ADMIN]))])
    """
    def dependency(request: Request) -> UserSession:
        session = get_current_session(request)
        if session.role not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Role '{session.role.value}' not authorized for this action",
            )
        return session
    return dependency


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )
