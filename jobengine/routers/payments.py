"""Payment batch endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from jobengine.core.deps import get_db, require_csrf_header, require_roles
from jobengine.db.enums import Role
from jobengine.schemas.auth import UserSession
from jobengine.schemas.payment import PaymentBatchCreate, PaymentBatchRead
from jobengine.services import payment_service

router = APIRouter()


@router.post(
    "",
    response_model=PaymentBatchRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_payment_batch(
    data: PaymentBatchCreate,
    session: UserSession = Depends(require_roles([Role.ADMIN])),
    db: Session = Depends(get_db),
):
    """Pay every listed approved invoice against one proof of payment (all-or-nothing)."""
    return payment_service.create_batch(db, session, data)


@router.get("", response_model=list[PaymentBatchRead])
def list_payment_batches(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: UserSession = Depends(require_roles([Role.ADMIN, Role.CONTRACTOR])),
    db: Session = Depends(get_db),
):
    return payment_service.list_batches(db, session, limit=limit, offset=offset)


@router.get("/{batch_id}", response_model=PaymentBatchRead)
def get_payment_batch(
    batch_id: UUID,
    session: UserSession = Depends(require_roles([Role.ADMIN, Role.CONTRACTOR])),
    db: Session = Depends(get_db),
):
    return payment_service.get_batch(db, session, batch_id)
