"""
Typed failures raised by the engine services.

Every error carries a human-readable ``reason`` suitable for direct display.
Routers do not catch these; ``register_exception_handlers`` maps them to
HTTP responses in one place.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class EngineError(Exception):
    """Base class for engine failures."""

    status_code = 400
    code = "engine_error"
    retryable = False

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class InvalidTransitionError(EngineError):
    """Guard failed: wrong current state or wrong actor."""

    status_code = 409
    code = "invalid_transition"


class TicketNotCompletedError(InvalidTransitionError):
    """Invoice submitted against a ticket that has not reached completion."""

    code = "ticket_not_completed"


class ConcurrentModificationError(EngineError):
    """Optimistic write lost a race; the caller should reload and retry."""

    status_code = 409
    code = "concurrent_modification"
    retryable = True


class ValidationError(EngineError):
    """Missing or invalid input (reason, comment, amount, ...)."""

    status_code = 400
    code = "validation_error"


class DuplicateInvoiceNumberError(ValidationError):
    code = "duplicate_invoice_number"

    def __init__(self, invoice_number: str):
        super().__init__(f"Invoice number '{invoice_number}' already used")
        self.invoice_number = invoice_number


class NotFoundError(EngineError):
    """Referenced ticket, invoice, batch or rating is absent."""

    status_code = 404
    code = "not_found"


async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.reason,
            "code": exc.code,
            "retryable": exc.retryable,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EngineError, engine_error_handler)
