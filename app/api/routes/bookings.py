from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.config import LOOKUP_RATE_LIMIT, LOOKUP_RATE_WINDOW_SECONDS
from app.core.dependencies import (
    get_db, get_email_sender, get_notifier, verify_cron_secret,
)
from app.core.exceptions import RateLimitError
from app.core.logging_config import get_logger
from app.core.redis import hit_rate_limit
from app.schemas.booking import (
    BookingCreate, BookingCreated, BookingOut, CancellationResult,
    CustomerCancelRequest, LookupRequest, SlotOut,
)
from app.schemas.scheduler import SweepSummaryOut
from app.services import booking_actions, booking_service, session_scheduler
from app.services.email import EmailSender
from app.services.notifications import NotificationEmitter
from app.utils.pricing import format_idr

router = APIRouter(prefix="/bookings", tags=["Bookings"])
logger = get_logger("booking")


# ---------------------------------------------------------------------
# CREATE BOOKING
# ---------------------------------------------------------------------
@router.post("/", response_model=BookingCreated, status_code=201)
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    notifier: NotificationEmitter = Depends(get_notifier),
):
    booking = booking_service.create_booking(db, data, notifier)
    return BookingCreated(
        id=booking.id,
        booking_ref=booking.booking_ref,
        payment_status=booking.payment_status,
        session_status=booking.session_status,
    )


# ---------------------------------------------------------------------
# AVAILABLE SLOTS
# ---------------------------------------------------------------------
@router.get("/available-slots", response_model=list[SlotOut])
def available_slots(
    court_id: int,
    slot_date: date = Query(alias="date"),
    db: Session = Depends(get_db),
):
    return booking_service.list_available_slots(db, court_id, slot_date)


# ---------------------------------------------------------------------
# LOOKUP (email + reference)
# ---------------------------------------------------------------------
@router.post("/lookup", response_model=BookingOut)
def lookup_booking(data: LookupRequest, request: Request, db: Session = Depends(get_db)):
    client_ip = request.client.host if request.client else "unknown"
    allowed, retry_after = hit_rate_limit(
        f"ratelimit:lookup:{client_ip}", LOOKUP_RATE_LIMIT, LOOKUP_RATE_WINDOW_SECONDS
    )
    if not allowed:
        logger.warning(f"Lookup rate limit hit by {client_ip}")
        raise RateLimitError("Too many lookup attempts. Please try again later.", retry_after=retry_after)

    return booking_service.lookup_booking(db, data.email, data.booking_ref)


# ---------------------------------------------------------------------
# CUSTOMER CANCEL
# ---------------------------------------------------------------------
@router.post("/{booking_id}/cancel-customer", response_model=CancellationResult)
def cancel_by_customer(
    booking_id: int,
    data: CustomerCancelRequest,
    db: Session = Depends(get_db),
    notifier: NotificationEmitter = Depends(get_notifier),
    mailer: EmailSender = Depends(get_email_sender),
):
    booking, decision = booking_actions.customer_cancel(
        db, booking_id, data.email, data.booking_ref, notifier, mailer, reason=data.reason
    )
    if decision.eligible:
        message = (
            f"Booking cancelled. Refund of {format_idr(decision.amount)} will be processed "
            f"within 3-5 business days."
        )
    else:
        message = "Booking cancelled. No refund (cancelled too close to the session)."

    return CancellationResult(
        booking=BookingOut.model_validate(booking),
        refund_type=decision.refund_type,
        refund_amount=decision.amount,
        hours_until_session=round(decision.hours_until_start, 1),
        message=message,
    )


# =====================================================================
# SESSION STATUS SWEEP (cron)
# =====================================================================
@router.post("/update-statuses", response_model=SweepSummaryOut, dependencies=[Depends(verify_cron_secret)])
def update_statuses(
    db: Session = Depends(get_db),
    notifier: NotificationEmitter = Depends(get_notifier),
):
    summary = session_scheduler.run_sweep(db, notifier)
    return summary.as_dict()
