"""
Test configuration and fixtures.

Provides:
- In-memory SQLite session (schema created and dropped per test)
- Requester / contractor / admin sessions sharing one organization
- JobFlow helper that drives tickets and invoices through the lifecycle
- HTTPX AsyncClients with session cookie and CSRF header per role
"""
import os
import uuid
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator, Generator

# Configure before the app (and its engine) is imported
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["INTERNAL_SECRET"] = "test-internal-secret"
os.environ["JWT_SECRET"] = "test-jwt-secret-for-the-suite-0123456789"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from jobengine.core.deps import COOKIE_NAME, CSRF_HEADER, CSRF_HEADER_VALUE, get_db
from jobengine.core.security import create_session_token
from jobengine.db.base import Base
from jobengine.db.enums import Role, TicketPriority
from jobengine.db.models import Invoice, Ticket
from jobengine.db.session import SessionLocal, engine
from jobengine.db.types import utcnow
from jobengine.main import app
from jobengine.schemas.auth import UserSession
from jobengine.schemas.invoice import InvoiceCreate
from jobengine.schemas.ticket import JobPlan, TicketCreate
from jobengine.services import (
    invoice_service,
    ticket_service,
    work_description_service,
)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema per test.

    Services commit on their own, so isolation comes from dropping the
    in-memory schema rather than rolling back a savepoint.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


# =============================================================================
# Identity Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def org_id() -> uuid.UUID:
    return uuid.uuid4()


def _session(org_id: uuid.UUID, role: Role) -> UserSession:
    return UserSession(user_id=uuid.uuid4(), org_id=org_id, role=role)


@pytest.fixture(scope="function")
def requester(org_id) -> UserSession:
    return _session(org_id, Role.REQUESTER)


@pytest.fixture(scope="function")
def contractor(org_id) -> UserSession:
    return _session(org_id, Role.CONTRACTOR)


@pytest.fixture(scope="function")
def other_contractor(org_id) -> UserSession:
    return _session(org_id, Role.CONTRACTOR)


@pytest.fixture(scope="function")
def admin(org_id) -> UserSession:
    return _session(org_id, Role.ADMIN)


# =============================================================================
# Lifecycle Helper
# =============================================================================

class JobFlow:
    """Drive tickets and invoices to a given state through the real services."""

    def __init__(self, db: Session, requester: UserSession, contractor: UserSession, admin: UserSession):
        self.db = db
        self.requester = requester
        self.contractor = contractor
        self.admin = admin
        self._invoice_seq = 0

    def open_ticket(self, priority: TicketPriority = TicketPriority.MEDIUM, title: str = "Leaking roof") -> Ticket:
        return ticket_service.create_ticket(
            self.db,
            self.requester,
            TicketCreate(title=title, description="Water coming through ceiling", priority=priority),
        )

    def assigned(self, contractor: UserSession | None = None, **kwargs) -> Ticket:
        contractor = contractor or self.contractor
        ticket = self.open_ticket(**kwargs)
        return ticket_service.assign_ticket(self.db, self.admin, ticket.id, contractor.user_id)

    def accepted(self, contractor: UserSession | None = None, **kwargs) -> Ticket:
        contractor = contractor or self.contractor
        ticket = self.assigned(contractor, **kwargs)
        plan = JobPlan(
            technician_name="Sam Fixer",
            arrival_at=utcnow() + timedelta(hours=2),
            estimated_duration_hours=Decimal("3"),
        )
        return ticket_service.accept_job(self.db, contractor, ticket.id, plan)

    def on_site(self, contractor: UserSession | None = None, **kwargs) -> Ticket:
        ticket = self.accepted(contractor, **kwargs)
        return ticket_service.confirm_on_site(self.db, self.requester, ticket.id)

    def awaiting_description(self, contractor: UserSession | None = None, **kwargs) -> Ticket:
        ticket = self.on_site(contractor, **kwargs)
        return ticket_service.request_work_description(self.db, self.requester, ticket.id)

    def awaiting_approval(self, contractor: UserSession | None = None, **kwargs) -> Ticket:
        contractor = contractor or self.contractor
        ticket = self.awaiting_description(contractor, **kwargs)
        return work_description_service.submit_work_description(
            self.db, contractor, ticket.id, "Replaced flashing and resealed roof joints"
        )

    def completed(self, contractor: UserSession | None = None, **kwargs) -> Ticket:
        ticket = self.awaiting_approval(contractor, **kwargs)
        return work_description_service.approve_work(self.db, self.requester, ticket.id)

    def next_invoice_number(self) -> str:
        self._invoice_seq += 1
        return f"INV-{self._invoice_seq:04d}"

    def invoice_data(self, ticket: Ticket, amount: str = "500.00", **overrides) -> InvoiceCreate:
        values = {
            "ticket_id": ticket.id,
            "invoice_number": self.next_invoice_number(),
            "amount": Decimal(amount),
            "description": "Roof repair labour and materials",
            "file_url": "https://files.example.com/invoice.pdf",
        }
        values.update(overrides)
        return InvoiceCreate(**values)

    def pending_invoice(
        self, contractor: UserSession | None = None, amount: str = "500.00"
    ) -> Invoice:
        contractor = contractor or self.contractor
        ticket = self.completed(contractor)
        return invoice_service.submit_invoice(
            self.db, contractor, self.invoice_data(ticket, amount)
        )

    def approved_invoice(
        self, contractor: UserSession | None = None, amount: str = "500.00"
    ) -> Invoice:
        invoice = self.pending_invoice(contractor, amount)
        return invoice_service.approve_invoice(self.db, self.admin, invoice.id)


@pytest.fixture(scope="function")
def flow(db, requester, contractor, admin) -> JobFlow:
    return JobFlow(db, requester, contractor, admin)


# =============================================================================
# Client Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    session: UserSession
    token: str
    cookie_name: str = COOKIE_NAME


def make_auth(session: UserSession) -> TestAuth:
    token = create_session_token(
        user_id=session.user_id,
        org_id=session.org_id,
        role=session.role.value,
    )
    return TestAuth(session=session, token=token)


@pytest.fixture(scope="function")
def requester_auth(requester) -> TestAuth:
    return make_auth(requester)


@pytest.fixture(scope="function")
def override_db(db: Session) -> Generator[Session, None, None]:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield db
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(override_db) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient for public endpoints."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


def _authed_client(session: UserSession) -> AsyncClient:
    auth = make_auth(session)
    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={auth.cookie_name: auth.token},
        headers={CSRF_HEADER: CSRF_HEADER_VALUE},
    )


@pytest.fixture(scope="function")
async def requester_client(override_db, requester) -> AsyncGenerator[AsyncClient, None]:
    async with _authed_client(requester) as c:
        yield c


@pytest.fixture(scope="function")
async def contractor_client(override_db, contractor) -> AsyncGenerator[AsyncClient, None]:
    async with _authed_client(contractor) as c:
        yield c


@pytest.fixture(scope="function")
async def admin_client(override_db, admin) -> AsyncGenerator[AsyncClient, None]:
    async with _authed_client(admin) as c:
        yield c
