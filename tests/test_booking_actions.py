from datetime import timedelta

import pytest

from app.core.exceptions import (
    ConflictError, GoneError, NotFoundError, PaymentRequiredError,
    PreconditionError, ValidationError,
)
from app.models.admin_notification import AdminNotification
from app.models.booking import Booking
from app.models.enums import (
    NotificationType, PaymentStatus, RefundStatus, SessionStatus,
)
from app.models.time_slot import TimeSlot
from app.models.venue_payment import VenuePayment
from app.services import booking_actions
from app.services.session_scheduler import run_sweep
from app.utils.pricing import RefundPolicy
from conftest import SESSION_DATE, make_booking, make_slot, venue_time

START = venue_time(SESSION_DATE, 18)
END = venue_time(SESSION_DATE, 19)


def _slot_available(db, booking):
    db.expire_all()
    return db.get(TimeSlot, booking.time_slot_id).available


def _last_notification(db):
    return db.query(AdminNotification).order_by(AdminNotification.id.desc()).first()


# ---------------------------------------------------------------------
# CHECK-IN / CHECK-OUT
# ---------------------------------------------------------------------
def test_check_in_and_out(db, court, notifier):
    booking = make_booking(db, make_slot(db, court))

    booking = booking_actions.check_in(db, booking.id, notifier, notes="Racket rental", now=START)
    assert booking.session_status == SessionStatus.IN_PROGRESS
    assert booking.checked_in_at is not None
    assert booking.session_notes == "Racket rental"
    assert _last_notification(db).type == NotificationType.SESSION_STARTED

    booking = booking_actions.check_out(db, booking.id, notifier, now=END)
    assert booking.session_status == SessionStatus.COMPLETED
    assert booking.checked_out_at is not None
    assert booking.session_notes == "Racket rental"
    assert _last_notification(db).type == NotificationType.SESSION_COMPLETED


def test_check_in_requires_payment(db, court, notifier):
    booking = make_booking(db, make_slot(db, court), payment_status=PaymentStatus.PENDING)
    with pytest.raises(PreconditionError):
        booking_actions.check_in(db, booking.id, notifier, now=START)


def test_check_in_twice_conflicts(db, court, notifier):
    booking = make_booking(db, make_slot(db, court), session_status=SessionStatus.IN_PROGRESS)
    with pytest.raises(ConflictError):
        booking_actions.check_in(db, booking.id, notifier, now=START)


def test_check_in_after_completion_is_gone(db, court, notifier):
    booking = make_booking(db, make_slot(db, court), session_status=SessionStatus.COMPLETED)
    with pytest.raises(GoneError):
        booking_actions.check_in(db, booking.id, notifier, now=START)


def test_check_in_blocked_by_outstanding_deposit(db, court, notifier):
    booking = make_booking(db, make_slot(db, court), deposit=True)
    with pytest.raises(PaymentRequiredError) as exc_info:
        booking_actions.check_in(db, booking.id, notifier, now=START)
    assert exc_info.value.status_code == 402
    assert exc_info.value.extra["remaining_balance"] == 200_000


def test_check_in_after_deposit_expired(db, court, notifier):
    booking = make_booking(db, make_slot(db, court), deposit=True, venue_payment_expired=True)
    with pytest.raises(GoneError) as exc_info:
        booking_actions.check_in(db, booking.id, notifier, now=START)
    assert exc_info.value.code == "VENUE_PAYMENT_EXPIRED"


def test_check_out_requires_check_in(db, court, notifier):
    booking = make_booking(db, make_slot(db, court))
    with pytest.raises(PreconditionError):
        booking_actions.check_out(db, booking.id, notifier, now=END)


def test_check_out_twice_conflicts(db, court, notifier):
    booking = make_booking(db, make_slot(db, court), session_status=SessionStatus.COMPLETED)
    with pytest.raises(ConflictError):
        booking_actions.check_out(db, booking.id, notifier, now=END)


def test_unknown_booking(db, notifier):
    with pytest.raises(NotFoundError):
        booking_actions.check_in(db, 404, notifier, now=START)


# ---------------------------------------------------------------------
# ADMIN CANCEL
# ---------------------------------------------------------------------
def test_admin_cancel_paid_booking_keeps_it_refundable(db, court, notifier):
    booking = make_booking(db, make_slot(db, court))

    booking = booking_actions.admin_cancel(db, booking.id, notifier, reason="Court maintenance")

    assert booking.session_status == SessionStatus.CANCELLED
    assert booking.payment_status == PaymentStatus.PAID
    assert _slot_available(db, booking) is True
    assert "Court maintenance" in _last_notification(db).message


def test_admin_cancel_pending_booking(db, court, notifier):
    booking = make_booking(db, make_slot(db, court), payment_status=PaymentStatus.PENDING)
    booking = booking_actions.admin_cancel(db, booking.id, notifier)
    assert booking.payment_status == PaymentStatus.CANCELLED
    assert booking.session_status == SessionStatus.CANCELLED


@pytest.mark.parametrize(
    "session_status, error",
    [
        (SessionStatus.IN_PROGRESS, PreconditionError),
        (SessionStatus.COMPLETED, PreconditionError),
        (SessionStatus.CANCELLED, ConflictError),
    ],
)
def test_admin_cancel_rejected(db, court, notifier, session_status, error):
    booking = make_booking(db, make_slot(db, court), session_status=session_status)
    with pytest.raises(error):
        booking_actions.admin_cancel(db, booking.id, notifier)


# ---------------------------------------------------------------------
# CUSTOMER CANCEL
# ---------------------------------------------------------------------
def test_customer_cancel_with_full_refund(db, court, notifier, mailer):
    # Scenario D
    booking = make_booking(db, make_slot(db, court))

    booking, decision = booking_actions.customer_cancel(
        db, booking.id, "budi@example.com", booking.booking_ref, notifier, mailer,
        now=START - timedelta(hours=30), policy=RefundPolicy(),
    )

    assert decision.eligible
    assert booking.payment_status == PaymentStatus.REFUNDED
    assert booking.session_status == SessionStatus.CANCELLED
    assert booking.refund_amount == booking.total_amount
    assert booking.refund_status == RefundStatus.COMPLETED
    assert booking.refund_method == "MIDTRANS"
    assert "FULL refund" in booking.refund_notes
    assert _slot_available(db, booking) is True
    assert mailer.kinds() == ["cancellation"]
    assert _last_notification(db).title == "Customer Cancellation (Full Refund)"


def test_customer_cancel_too_late_for_refund(db, court, notifier, mailer):
    # Scenario E
    booking = make_booking(db, make_slot(db, court))

    booking, decision = booking_actions.customer_cancel(
        db, booking.id, "budi@example.com", booking.booking_ref, notifier, mailer,
        now=START - timedelta(hours=10), policy=RefundPolicy(),
    )

    assert not decision.eligible
    assert booking.payment_status == PaymentStatus.CANCELLED
    assert booking.refund_amount == 0
    assert booking.refund_status is None
    assert _slot_available(db, booking) is True


def test_customer_cancel_needs_matching_identity(db, court, notifier, mailer):
    booking = make_booking(db, make_slot(db, court))
    with pytest.raises(NotFoundError):
        booking_actions.customer_cancel(
            db, booking.id, "intruder@example.com", booking.booking_ref, notifier, mailer,
            now=START - timedelta(hours=30),
        )


def test_customer_cancel_twice_conflicts(db, court, notifier, mailer):
    booking = make_booking(db, make_slot(db, court))
    args = (db, booking.id, "budi@example.com", booking.booking_ref, notifier, mailer)
    booking_actions.customer_cancel(*args, now=START - timedelta(hours=30))
    with pytest.raises(ConflictError):
        booking_actions.customer_cancel(*args, now=START - timedelta(hours=29))


def test_customer_cancel_requires_paid_booking(db, court, notifier, mailer):
    booking = make_booking(db, make_slot(db, court), payment_status=PaymentStatus.PENDING)
    with pytest.raises(PreconditionError):
        booking_actions.customer_cancel(
            db, booking.id, "budi@example.com", booking.booking_ref, notifier, mailer,
            now=START - timedelta(hours=30),
        )


def test_customer_cannot_cancel_running_session(db, court, notifier, mailer):
    booking = make_booking(db, make_slot(db, court), session_status=SessionStatus.IN_PROGRESS)
    with pytest.raises(PreconditionError):
        booking_actions.customer_cancel(
            db, booking.id, "budi@example.com", booking.booking_ref, notifier, mailer, now=START,
        )


# ---------------------------------------------------------------------
# ADMIN REFUND
# ---------------------------------------------------------------------
def test_admin_refund(db, court, admin, notifier, mailer):
    booking = make_booking(db, make_slot(db, court))

    booking = booking_actions.refund(
        db, booking.id, admin, 150_000, "BANK_TRANSFER", notifier, mailer,
        reason="Rain", notes="Goodwill", now=START - timedelta(hours=2), policy=RefundPolicy(),
    )

    assert booking.payment_status == PaymentStatus.REFUNDED
    assert booking.session_status == SessionStatus.CANCELLED
    assert booking.refund_amount == 150_000
    assert booking.refunded_by == admin.id
    assert booking.refund_notes.startswith("Goodwill | Policy: NONE")
    assert _slot_available(db, booking) is True
    assert mailer.kinds() == ["refund"]
    assert _last_notification(db).type == NotificationType.REFUND_PROCESSED


def test_admin_refund_twice_conflicts(db, court, admin, notifier, mailer):
    booking = make_booking(db, make_slot(db, court))
    booking_actions.refund(db, booking.id, admin, 100_000, "CASH", notifier, mailer, now=START)
    with pytest.raises(ConflictError):
        booking_actions.refund(db, booking.id, admin, 100_000, "CASH", notifier, mailer, now=START)


@pytest.mark.parametrize("amount", [0, 400_001])
def test_admin_refund_amount_bounds(db, court, admin, notifier, mailer, amount):
    booking = make_booking(db, make_slot(db, court))
    with pytest.raises(ValidationError):
        booking_actions.refund(db, booking.id, admin, amount, "CASH", notifier, mailer, now=START)
    db.refresh(booking)
    assert booking.payment_status == PaymentStatus.PAID


def test_admin_refund_requires_paid_booking(db, court, admin, notifier, mailer):
    booking = make_booking(db, make_slot(db, court), payment_status=PaymentStatus.PENDING)
    with pytest.raises(PreconditionError):
        booking_actions.refund(db, booking.id, admin, 100_000, "CASH", notifier, mailer, now=START)


def test_refund_after_admin_cancel_leaves_reclaimed_slot_alone(db, court, admin, notifier, mailer):
    slot = make_slot(db, court)
    first = make_booking(db, slot)
    booking_actions.admin_cancel(db, first.id, notifier)

    # Slot is re-sold before the refund goes through
    make_booking(db, db.get(TimeSlot, slot.id), customer_email="second@example.com")
    booking_actions.refund(db, first.id, admin, 400_000, "BANK_TRANSFER", notifier, mailer, now=START)

    assert _slot_available(db, first) is False


# ---------------------------------------------------------------------
# VENUE PAYMENT
# ---------------------------------------------------------------------
def test_record_venue_payment(db, court, admin, notifier):
    booking = make_booking(db, make_slot(db, court), deposit=True)

    payment = booking_actions.record_venue_payment(
        db, booking.id, admin, 200_000, "CASH", notifier, notes="Paid at counter", now=START,
    )

    assert payment.amount == 200_000
    assert payment.received_by == admin.id
    db.expire_all()
    booking = db.get(Booking, booking.id)
    assert booking.venue_payment_received is True
    assert booking.remaining_balance == 0
    assert booking.venue_payment_amount == 200_000
    assert booking.deposit_outstanding is False
    assert _last_notification(db).type == NotificationType.PAYMENT_RECEIVED

    # Balance settled, so check-in now goes through
    booking = booking_actions.check_in(db, booking.id, notifier, now=START)
    assert booking.session_status == SessionStatus.IN_PROGRESS


def test_venue_payment_amount_must_match_balance(db, court, admin, notifier):
    booking = make_booking(db, make_slot(db, court), deposit=True)
    with pytest.raises(ValidationError):
        booking_actions.record_venue_payment(db, booking.id, admin, 150_000, "CASH", notifier, now=START)
    assert db.query(VenuePayment).count() == 0


def test_venue_payment_only_once(db, court, admin, notifier):
    booking = make_booking(db, make_slot(db, court), deposit=True)
    booking_actions.record_venue_payment(db, booking.id, admin, 200_000, "CASH", notifier, now=START)
    with pytest.raises(ConflictError):
        booking_actions.record_venue_payment(db, booking.id, admin, 200_000, "CASH", notifier, now=START)
    assert db.query(VenuePayment).count() == 1


def test_venue_payment_after_session_end_expires(db, court, admin, notifier):
    booking = make_booking(db, make_slot(db, court), deposit=True)
    with pytest.raises(GoneError):
        booking_actions.record_venue_payment(
            db, booking.id, admin, 200_000, "CASH", notifier, now=END + timedelta(minutes=1),
        )
    db.expire_all()
    assert db.get(Booking, booking.id).venue_payment_expired is True
    assert db.query(VenuePayment).count() == 0
    stored = db.get(Booking, booking.id)
    assert stored.session_status == SessionStatus.CANCELLED
    assert stored.payment_status == PaymentStatus.PAID
    assert _last_notification(db).type == NotificationType.CANCELLATION


def test_expired_venue_payment_is_not_completed_by_sweep(db, court, admin, notifier):
    booking = make_booking(db, make_slot(db, court), deposit=True)
    later = END + timedelta(minutes=1)
    with pytest.raises(GoneError):
        booking_actions.record_venue_payment(db, booking.id, admin, 200_000, "CASH", notifier, now=later)

    summary = run_sweep(db, notifier, now=later + timedelta(minutes=5))

    assert sum(summary.counts.values()) == 0
    db.expire_all()
    assert db.get(Booking, booking.id).session_status == SessionStatus.CANCELLED


def test_late_venue_payment_on_completed_session_only_flags_expiry(db, court, admin, notifier):
    booking = make_booking(db, make_slot(db, court), deposit=True, session_status=SessionStatus.COMPLETED)
    with pytest.raises(GoneError):
        booking_actions.record_venue_payment(
            db, booking.id, admin, 200_000, "CASH", notifier, now=END + timedelta(minutes=1),
        )
    db.expire_all()
    stored = db.get(Booking, booking.id)
    assert stored.venue_payment_expired is True
    assert stored.session_status == SessionStatus.COMPLETED


def test_venue_payment_needs_deposit_booking(db, court, admin, notifier):
    booking = make_booking(db, make_slot(db, court))
    with pytest.raises(PreconditionError):
        booking_actions.record_venue_payment(db, booking.id, admin, 0, "CASH", notifier, now=START)


def test_venue_payment_rolled_back_when_booking_update_lost(db, court, admin, notifier, monkeypatch):
    booking = make_booking(db, make_slot(db, court), deposit=True)
    monkeypatch.setattr(booking_actions, "_conditional_update", lambda *args, **kwargs: False)

    with pytest.raises(ConflictError):
        booking_actions.record_venue_payment(db, booking.id, admin, 200_000, "CASH", notifier, now=START)

    assert db.query(VenuePayment).count() == 0
    db.expire_all()
    assert db.get(Booking, booking.id).venue_payment_received is False


# ---------------------------------------------------------------------
# CONFIRMATION RESEND
# ---------------------------------------------------------------------
def test_resend_confirmation(db, court, mailer):
    booking = make_booking(db, make_slot(db, court))
    assert booking_actions.resend_confirmation(db, booking.id, mailer) is True
    assert mailer.kinds() == ["confirmation"]
    assert mailer.sent[0][1].booking_ref == booking.booking_ref


def test_resend_confirmation_requires_paid(db, court, mailer):
    booking = make_booking(db, make_slot(db, court), payment_status=PaymentStatus.PENDING)
    with pytest.raises(PreconditionError):
        booking_actions.resend_confirmation(db, booking.id, mailer)
