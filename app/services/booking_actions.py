"""Explicit admin and customer transitions on a booking."""
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    ConflictError, GoneError, NotFoundError, PaymentRequiredError,
    PersistenceError, PreconditionError, ValidationError,
)
from app.core.logging_config import get_logger
from app.models.admin import Admin
from app.models.booking import Booking
from app.models.enums import (
    NotificationType, PaymentStatus, RefundStatus, SessionStatus,
)
from app.models.venue_payment import VenuePayment
from app.services import slot_ledger
from app.services.booking_service import get_booking, lookup_booking
from app.services.email import EmailSender, booking_email_data, refund_email_data
from app.services.notifications import NotificationEmitter
from app.services.session_scheduler import (
    SweepRule, apply_transition, next_transition, transition_notification,
)
from app.utils.pricing import (
    RefundDecision, RefundPolicy, compute_cancellation_refund,
    format_idr, validate_admin_refund_amount,
)
from app.utils.time_window import session_window

logger = get_logger("admin")

SLOT_HOLDING_SESSIONS = (SessionStatus.UPCOMING, SessionStatus.IN_PROGRESS)


def _now(now):
    return now or datetime.now(timezone.utc)


def _conditional_update(db: Session, booking: Booking, expected: dict, values: dict) -> bool:
    query = db.query(Booking).filter(Booking.id == booking.id)
    for column, value in expected.items():
        query = query.filter(column == value)
    return query.update(values, synchronize_session=False) == 1


def _commit(db: Session, booking: Booking, action: str):
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"{action} failed for {booking.booking_ref}")
        raise PersistenceError(f"Failed to {action}")
    db.refresh(booking)


# =====================================================================
# CHECK-IN
# =====================================================================
def check_in(db: Session, booking_id: int, notifier: NotificationEmitter,
             notes: str | None = None, now: datetime | None = None) -> Booking:
    now = _now(now)
    booking = get_booking(db, booking_id)

    if booking.payment_status != PaymentStatus.PAID:
        raise PreconditionError("Booking must be paid before check-in")
    if booking.session_status == SessionStatus.IN_PROGRESS:
        raise ConflictError("Booking already checked in")
    if booking.session_status == SessionStatus.COMPLETED:
        raise GoneError("Booking session already completed")
    if booking.session_status == SessionStatus.CANCELLED:
        raise PreconditionError("Cannot check in a cancelled session")

    if booking.deposit_outstanding:
        if booking.venue_payment_expired:
            raise GoneError("Venue payment window has expired. Cannot check in.", code="VENUE_PAYMENT_EXPIRED")
        raise PaymentRequiredError(
            f"Customer must pay remaining balance of {format_idr(booking.remaining_balance)} before check-in.",
            remaining_balance=booking.remaining_balance,
        )

    if not _conditional_update(
        db, booking,
        {Booking.payment_status: PaymentStatus.PAID, Booking.session_status: SessionStatus.UPCOMING},
        {
            Booking.session_status: SessionStatus.IN_PROGRESS,
            Booking.checked_in_at: now,
            Booking.session_notes: notes or booking.session_notes,
        },
    ):
        db.rollback()
        raise ConflictError("Booking changed while checking in, reload and retry")
    _commit(db, booking, "check in")

    logger.info(f"Check-in | {booking.booking_ref}")
    notifier.notify(
        booking.id,
        NotificationType.SESSION_STARTED,
        "Customer Checked In",
        f"Booking {booking.booking_ref} - {booking.customer_name} checked in for {booking.time}",
    )
    return booking


# =====================================================================
# CHECK-OUT
# =====================================================================
def check_out(db: Session, booking_id: int, notifier: NotificationEmitter,
              notes: str | None = None, now: datetime | None = None) -> Booking:
    now = _now(now)
    booking = get_booking(db, booking_id)

    if booking.session_status == SessionStatus.COMPLETED:
        raise ConflictError("Booking already checked out")
    if booking.session_status == SessionStatus.UPCOMING:
        raise PreconditionError("Cannot check out a booking that hasn't been checked in")
    if booking.session_status == SessionStatus.CANCELLED:
        raise PreconditionError("Cannot check out a cancelled session")

    if not _conditional_update(
        db, booking,
        {Booking.session_status: SessionStatus.IN_PROGRESS},
        {
            Booking.session_status: SessionStatus.COMPLETED,
            Booking.checked_out_at: now,
            Booking.session_notes: notes or booking.session_notes,
        },
    ):
        db.rollback()
        raise ConflictError("Booking changed while checking out, reload and retry")
    _commit(db, booking, "check out")

    logger.info(f"Check-out | {booking.booking_ref}")
    notifier.notify(
        booking.id,
        NotificationType.SESSION_COMPLETED,
        "Customer Checked Out",
        f"Booking {booking.booking_ref} - {booking.customer_name} completed session",
    )
    return booking


# =====================================================================
# ADMIN CANCEL
# =====================================================================
def admin_cancel(db: Session, booking_id: int, notifier: NotificationEmitter,
                 reason: str | None = None) -> Booking:
    booking = get_booking(db, booking_id)

    if booking.session_status == SessionStatus.CANCELLED or booking.payment_status in (
        PaymentStatus.CANCELLED, PaymentStatus.REFUNDED
    ):
        raise ConflictError("Booking is already cancelled")
    if booking.session_status == SessionStatus.COMPLETED:
        raise PreconditionError("Cannot cancel a completed session")
    if booking.session_status == SessionStatus.IN_PROGRESS:
        raise PreconditionError("Cannot cancel an active session")

    # A paid booking stays PAID so it can still be refunded
    new_payment_status = (
        PaymentStatus.PAID if booking.payment_status == PaymentStatus.PAID else PaymentStatus.CANCELLED
    )
    if not _conditional_update(
        db, booking,
        {Booking.payment_status: booking.payment_status, Booking.session_status: SessionStatus.UPCOMING},
        {
            Booking.session_status: SessionStatus.CANCELLED,
            Booking.payment_status: new_payment_status,
            Booking.session_notes: reason or booking.session_notes,
        },
    ):
        db.rollback()
        raise ConflictError("Booking changed while cancelling, reload and retry")
    slot_ledger.release(db, booking.time_slot_id)
    _commit(db, booking, "cancel booking")

    logger.info(f"Admin cancel | {booking.booking_ref} | reason={reason}")
    notifier.notify(
        booking.id,
        NotificationType.CANCELLATION,
        "Booking Cancelled",
        f"Booking {booking.booking_ref} cancelled by admin. Reason: {reason or 'No reason provided'}",
    )
    return booking


# =====================================================================
# CUSTOMER CANCEL (automatic refund policy)
# =====================================================================
def customer_cancel(db: Session, booking_id: int, email: str, booking_ref: str,
                    notifier: NotificationEmitter, mailer: EmailSender,
                    reason: str | None = None, now: datetime | None = None,
                    policy: RefundPolicy | None = None) -> tuple[Booking, RefundDecision]:
    now = _now(now)
    booking = lookup_booking(db, email, booking_ref)
    if booking.id != booking_id:
        raise NotFoundError("Booking not found")

    if booking.payment_status in (PaymentStatus.CANCELLED, PaymentStatus.REFUNDED):
        raise ConflictError("Booking is already cancelled")
    if booking.payment_status != PaymentStatus.PAID:
        raise PreconditionError("Only paid bookings can be cancelled")
    if booking.session_status in (SessionStatus.IN_PROGRESS, SessionStatus.COMPLETED):
        raise PreconditionError("Cannot cancel an active or completed session")
    if booking.session_status == SessionStatus.CANCELLED:
        raise ConflictError("Booking is already cancelled")

    policy = policy or RefundPolicy.from_config()
    decision = compute_cancellation_refund(booking, now, policy)
    hours = round(decision.hours_until_start)

    values = {
        Booking.payment_status: PaymentStatus.REFUNDED if decision.eligible else PaymentStatus.CANCELLED,
        Booking.session_status: SessionStatus.CANCELLED,
        Booking.refund_amount: decision.amount,
        Booking.refund_reason: reason or "Customer cancellation",
        Booking.refund_notes: (
            f"{decision.refund_type} refund: Cancelled {hours} hours before session "
            f"(Policy: {policy.describe()})"
        ),
    }
    if decision.eligible:
        values.update({
            Booking.refund_status: RefundStatus.COMPLETED,
            Booking.refund_date: now,
            Booking.refund_method: "MIDTRANS",
        })

    if not _conditional_update(
        db, booking,
        {Booking.payment_status: PaymentStatus.PAID, Booking.session_status: SessionStatus.UPCOMING},
        values,
    ):
        db.rollback()
        raise ConflictError("Booking changed while cancelling, reload and retry")
    slot_ledger.release(db, booking.time_slot_id)
    _commit(db, booking, "cancel booking")

    logger.info(
        f"Customer cancel | {booking.booking_ref} | {decision.refund_type} | "
        f"refund={decision.amount} | {hours}hrs before"
    )
    titles = {
        "FULL": "Customer Cancellation (Full Refund)",
        "PARTIAL": "Customer Cancellation (Partial Refund)",
        "NONE": "Customer Cancellation (No Refund)",
    }
    refund_text = (
        f"Refund: {format_idr(decision.amount)}" if decision.eligible else "No refund"
    )
    notifier.notify(
        booking.id,
        NotificationType.CANCELLATION,
        titles[decision.refund_type],
        f"{booking.customer_name} cancelled {booking.booking_ref}. {refund_text} "
        f"(cancelled {hours}hrs before session)",
    )
    mailer.send_cancellation_notice(
        refund_email_data(booking, decision.amount, reason or "Customer request", hours_before=hours)
    )
    return booking, decision


# =====================================================================
# ADMIN REFUND (admin-chosen amount)
# =====================================================================
def refund(db: Session, booking_id: int, admin: Admin | None, refund_amount: int,
           refund_method: str, notifier: NotificationEmitter, mailer: EmailSender,
           reason: str | None = None, notes: str | None = None,
           now: datetime | None = None, policy: RefundPolicy | None = None) -> Booking:
    now = _now(now)
    booking = get_booking(db, booking_id)

    if booking.payment_status == PaymentStatus.REFUNDED or booking.refund_status == RefundStatus.COMPLETED:
        raise ConflictError("Booking already refunded")
    if booking.payment_status != PaymentStatus.PAID:
        raise PreconditionError("Can only refund paid bookings")
    validate_admin_refund_amount(refund_amount, booking.total_amount)

    # Recorded for the admin's reference only; the admin amount is applied
    recommendation = compute_cancellation_refund(booking, now, policy)
    policy_note = (
        f"Policy: {recommendation.refund_type} ({round(recommendation.hours_until_start)}hrs before, "
        f"recommended {format_idr(recommendation.amount)})"
    )
    held_slot = booking.session_status in SLOT_HOLDING_SESSIONS

    if not _conditional_update(
        db, booking,
        {Booking.payment_status: PaymentStatus.PAID, Booking.session_status: booking.session_status},
        {
            Booking.payment_status: PaymentStatus.REFUNDED,
            Booking.session_status: SessionStatus.CANCELLED,
            Booking.refund_status: RefundStatus.COMPLETED,
            Booking.refund_amount: refund_amount,
            Booking.refund_date: now,
            Booking.refund_reason: reason or "Cancellation",
            Booking.refund_method: refund_method,
            Booking.refunded_by: admin.id if admin else None,
            Booking.refund_notes: f"{notes} | {policy_note}" if notes else policy_note,
        },
    ):
        db.rollback()
        raise ConflictError("Booking already refunded")
    if held_slot:
        slot_ledger.release(db, booking.time_slot_id)
    _commit(db, booking, "process refund")

    logger.info(f"Refund | {booking.booking_ref} | {format_idr(refund_amount)} via {refund_method}")
    notifier.notify(
        booking.id,
        NotificationType.REFUND_PROCESSED,
        "Refund Processed",
        f"Refund of {format_idr(refund_amount)} processed for booking {booking.booking_ref}. "
        f"Customer: {booking.customer_name}. Method: {refund_method}.",
    )
    mailer.send_refund_notice(
        refund_email_data(booking, refund_amount, reason or "Cancellation", refund_method=refund_method)
    )
    return booking


# =====================================================================
# VENUE PAYMENT (deposit balance)
# =====================================================================
def _expire_venue_payment(db: Session, booking: Booking, notifier: NotificationEmitter, now: datetime):
    """Same outcome as the sweep's deposit-expiry rule, applied on the spot."""
    if booking.venue_payment_expired:
        return
    transition = next_transition(booking, now)
    try:
        if transition and transition.rule == SweepRule.DEPOSIT_EXPIRED:
            if apply_transition(db, booking, transition, now):
                db.refresh(booking)
                logger.info(f"Venue payment expired | {booking.booking_ref} | session cancelled")
                notifier.notify(booking.id, *transition_notification(booking, transition))
            return
        booking.venue_payment_expired = True
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"expire venue payment failed for {booking.booking_ref}")
        raise PersistenceError("Failed to expire venue payment")


def record_venue_payment(db: Session, booking_id: int, admin: Admin | None, amount: int,
                         payment_method: str, notifier: NotificationEmitter,
                         notes: str | None = None, now: datetime | None = None) -> VenuePayment:
    now = _now(now)
    booking = get_booking(db, booking_id)

    if booking.payment_status != PaymentStatus.PAID or not booking.require_deposit:
        raise PreconditionError("Venue payments apply only to paid deposit bookings")
    if booking.venue_payment_received:
        raise ConflictError("Venue payment already recorded for this booking")

    _, end = session_window(booking.date, booking.time)
    if now > end:
        _expire_venue_payment(db, booking, notifier, now)
        raise GoneError("Booking time has passed. Venue payment window expired.", expired=True)

    if amount != booking.remaining_balance:
        raise ValidationError(f"Amount must be exactly {format_idr(booking.remaining_balance)}")

    payment = VenuePayment(
        booking_id=booking.id,
        amount=amount,
        payment_method=payment_method,
        notes=notes,
        received_by=admin.id if admin else None,
        created_at=now,
    )
    try:
        db.add(payment)
        db.flush()
        # Insert and balance update commit together or not at all
        if not _conditional_update(
            db, booking,
            {Booking.venue_payment_received: False, Booking.remaining_balance: amount},
            {
                Booking.venue_payment_received: True,
                Booking.venue_payment_amount: amount,
                Booking.venue_payment_date: now,
                Booking.venue_payment_method: payment_method,
                Booking.remaining_balance: 0,
                Booking.venue_payment_expired: False,
            },
        ):
            db.rollback()
            raise ConflictError("Venue payment already recorded for this booking")
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Venue payment failed for {booking.booking_ref}, rolled back")
        raise PersistenceError("Failed to record payment")

    db.refresh(payment)
    db.refresh(booking)
    logger.info(f"Venue payment | {booking.booking_ref} | {format_idr(amount)} via {payment_method}")
    notifier.notify(
        booking.id,
        NotificationType.PAYMENT_RECEIVED,
        "Venue Payment Received",
        f"Booking {booking.booking_ref} - Received {format_idr(amount)} via {payment_method} "
        f"at venue by {booking.customer_name}",
    )
    return payment


# =====================================================================
# RESEND CONFIRMATION
# =====================================================================
def resend_confirmation(db: Session, booking_id: int, mailer: EmailSender) -> bool:
    booking = get_booking(db, booking_id)
    if booking.payment_status != PaymentStatus.PAID:
        raise PreconditionError("Confirmation emails are only sent for paid bookings")
    sent = mailer.send_confirmation(booking_email_data(booking))
    logger.info(f"Resend confirmation | {booking.booking_ref} | sent={sent}")
    return sent
