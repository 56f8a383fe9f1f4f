"""Error kinds raised by the booking services.

Each class carries the HTTP status the API answers with, so routes never
have to translate them one by one (see ``register_exception_handlers``).
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class BookingError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None, **extra):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.extra = extra


class ValidationError(BookingError):
    status_code = 400
    code = "VALIDATION_ERROR"


class PreconditionError(BookingError):
    """Valid request, but the booking's current state does not allow it."""

    status_code = 400
    code = "PRECONDITION_FAILED"


class PaymentRequiredError(PreconditionError):
    status_code = 402
    code = "VENUE_PAYMENT_REQUIRED"


class NotFoundError(BookingError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(BookingError):
    """State already satisfies or contradicts the requested transition."""

    status_code = 409
    code = "CONFLICT"


class SlotUnavailableError(ConflictError):
    code = "SLOT_UNAVAILABLE"


class GoneError(BookingError):
    status_code = 410
    code = "GONE"


class RateLimitError(BookingError):
    status_code = 429
    code = "RATE_LIMITED"


class GatewayError(BookingError):
    status_code = 502
    code = "GATEWAY_ERROR"


class TransactionNotFoundError(GatewayError):
    code = "TRANSACTION_NOT_FOUND"


class PersistenceError(BookingError):
    status_code = 500
    code = "PERSISTENCE_ERROR"


async def booking_error_handler(request: Request, exc: BookingError):
    body = {"detail": exc.message, "code": exc.code}
    body.update(exc.extra)
    headers = None
    if isinstance(exc, RateLimitError) and "retry_after" in exc.extra:
        headers = {"Retry-After": str(exc.extra["retry_after"])}
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(BookingError, booking_error_handler)
