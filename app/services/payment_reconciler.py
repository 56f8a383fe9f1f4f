"""Converges a booking's payment status with the gateway.

Webhook pushes, redirect polls and client-reported failures all end in
``PaymentReconciler._apply``. Only a PENDING booking can move; the move is a
conditional update on ``payment_status == PENDING``, so whichever channel
lands second finds nothing to do and produces no side effects.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import IMMEDIATE_REMINDER_HOURS
from app.core.exceptions import (
    ConflictError, GatewayError, PersistenceError, TransactionNotFoundError,
)
from app.core.logging_config import get_logger
from app.models.booking import Booking
from app.models.enums import (
    NotificationType, PaymentRecordStatus, PaymentStatus, SessionStatus,
)
from app.models.payment import Payment
from app.services import slot_ledger
from app.services.booking_service import get_booking_by_ref
from app.services.email import EmailSender, booking_email_data
from app.services.notifications import NotificationEmitter
from app.utils.midtrans_client import GatewayStatus, PaymentGateway
from app.utils.pricing import calculate_payment_fee, format_idr
from app.utils.time_window import hours_until, session_window

logger = get_logger("payment")

ORDER_PREFIX = "BOOKING-"


class GatewayOutcome(str, Enum):
    SUCCESS = "success"
    PENDING = "pending"
    FAILED = "failed"


FAILURE_STATUSES = ("deny", "cancel", "expire", "failure")
FAILURE_FRAUD_STATUSES = ("deny", "challenge")


def classify(transaction_status: str, fraud_status: str | None) -> GatewayOutcome:
    if fraud_status in FAILURE_FRAUD_STATUSES:
        return GatewayOutcome.FAILED
    if transaction_status == "settlement":
        return GatewayOutcome.SUCCESS
    if transaction_status == "capture" and fraud_status in (None, "accept"):
        return GatewayOutcome.SUCCESS
    if transaction_status in FAILURE_STATUSES:
        return GatewayOutcome.FAILED
    if transaction_status != "pending":
        logger.warning(f"Unhandled gateway status {transaction_status!r} (fraud={fraud_status!r}), leaving PENDING")
    return GatewayOutcome.PENDING


def booking_ref_from_order_id(order_id: str) -> str:
    if order_id.startswith(ORDER_PREFIX):
        return order_id[len(ORDER_PREFIX):]
    return order_id


@dataclass
class ReconcileOutcome:
    booking: Booking
    status: PaymentStatus
    message: str
    changed: bool = False


class PaymentReconciler:
    def __init__(self, db: Session, gateway: PaymentGateway, notifier: NotificationEmitter, mailer: EmailSender):
        self.db = db
        self.gateway = gateway
        self.notifier = notifier
        self.mailer = mailer

    # ------------------------------------------------------------------
    # CHANNELS
    # ------------------------------------------------------------------
    def handle_notification(self, payload: dict, now: datetime | None = None) -> ReconcileOutcome | None:
        """Webhook push. Returns None when the gateway could not verify it."""
        try:
            signal = self.gateway.verify_notification(payload)
        except GatewayError as e:
            logger.warning(f"Webhook for {payload.get('order_id')} not verified ({e.message}); left for the poll")
            return None

        logger.info(
            f"Webhook | {signal.order_id} | status={signal.transaction_status} | fraud={signal.fraud_status}"
        )
        booking = get_booking_by_ref(self.db, booking_ref_from_order_id(signal.order_id))
        return self._apply(booking, signal, now)

    def poll(self, booking_ref: str, now: datetime | None = None) -> ReconcileOutcome:
        """Redirect-time status check. Always ends terminal unless still pending."""
        booking = get_booking_by_ref(self.db, booking_ref)
        if booking.payment_status != PaymentStatus.PENDING:
            return self._already_processed(booking)

        try:
            signal = self.gateway.query_status(booking.order_id)
        except TransactionNotFoundError:
            return self._mark_cancelled(booking, "failed to initialize (transaction not found)", None, now)
        except GatewayError:
            return self._mark_cancelled(booking, "could not be verified (payment gateway error)", None, now)

        logger.info(f"Poll | {booking.order_id} | status={signal.transaction_status} | fraud={signal.fraud_status}")
        return self._apply(booking, signal, now)

    def apply(self, booking_ref: str, signal: GatewayStatus, now: datetime | None = None) -> ReconcileOutcome:
        return self._apply(get_booking_by_ref(self.db, booking_ref), signal, now)

    def cancel_failed(self, booking_ref: str, status_code: str | None = None,
                      reason: str | None = None, now: datetime | None = None) -> ReconcileOutcome:
        """Failure reported by the client when the payment page errors out."""
        booking = get_booking_by_ref(self.db, booking_ref)
        if booking.payment_status == PaymentStatus.PAID:
            raise ConflictError("Cannot cancel a paid booking through this endpoint", code="ALREADY_PAID")
        if booking.payment_status != PaymentStatus.PENDING:
            return self._already_processed(booking)

        detail = reason or "User cancelled or payment page error"
        if status_code:
            detail = f"failed (Error {status_code}). {detail}"
        else:
            detail = f"failed. {detail}"
        return self._mark_cancelled(booking, detail, None, now)

    # ------------------------------------------------------------------
    # TRANSITION
    # ------------------------------------------------------------------
    def _apply(self, booking: Booking, signal: GatewayStatus, now: datetime | None) -> ReconcileOutcome:
        if booking.payment_status != PaymentStatus.PENDING:
            return self._already_processed(booking)

        outcome = classify(signal.transaction_status, signal.fraud_status)

        if outcome == GatewayOutcome.SUCCESS:
            return self._mark_paid(booking, signal, now)
        if outcome == GatewayOutcome.FAILED:
            return self._mark_cancelled(booking, signal.transaction_status, signal, now)

        try:
            self._update_payment_records(booking, signal, None, now)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to store pending gateway response for {booking.booking_ref}")
        return ReconcileOutcome(booking, PaymentStatus.PENDING, "Payment is pending")

    def _already_processed(self, booking: Booking) -> ReconcileOutcome:
        logger.info(f"{booking.booking_ref} already {booking.payment_status.value}, signal ignored")
        return ReconcileOutcome(
            booking, booking.payment_status, f"Booking is already {booking.payment_status.value}"
        )

    def _won_transition(self, booking: Booking, values: dict) -> bool:
        won = (
            self.db.query(Booking)
            .filter(Booking.id == booking.id, Booking.payment_status == PaymentStatus.PENDING)
            .update(values, synchronize_session=False)
        )
        return won == 1

    def _update_payment_records(self, booking, signal, status, now):
        values = {}
        if signal is not None:
            values.update({
                Payment.transaction_id: signal.transaction_id,
                Payment.payment_type: signal.payment_type,
                Payment.gateway_response: signal.raw,
            })
        query = self.db.query(Payment).filter(Payment.order_id == booking.order_id)
        if status == PaymentRecordStatus.SUCCESS:
            values.update({Payment.status: status, Payment.completed_at: now})
            if signal is not None:
                values[Payment.gateway_fee] = calculate_payment_fee(booking.total_amount, signal.payment_type)
        elif status == PaymentRecordStatus.FAILED:
            values[Payment.status] = status
            query = query.filter(Payment.status == PaymentRecordStatus.PENDING)
        if values:
            query.update(values, synchronize_session=False)

    def _mark_paid(self, booking: Booking, signal: GatewayStatus, now: datetime | None) -> ReconcileOutcome:
        now = now or datetime.now(timezone.utc)
        try:
            if not self._won_transition(booking, {
                Booking.payment_status: PaymentStatus.PAID,
                Booking.paid_at: now,
                Booking.payment_method: signal.payment_type or booking.payment_method,
            }):
                self.db.rollback()
                self.db.refresh(booking)
                return self._already_processed(booking)
            slot_ledger.confirm_held(self.db, booking.time_slot_id)
            self._update_payment_records(booking, signal, PaymentRecordStatus.SUCCESS, now)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to mark {booking.booking_ref} as PAID")
            raise PersistenceError("Failed to record payment")

        self.db.refresh(booking)
        logger.info(f"PAID | {booking.booking_ref} | {format_idr(booking.total_amount)} via {booking.payment_method}")

        kind = "Deposit" if booking.require_deposit else "Full Payment"
        self.notifier.notify(
            booking.id,
            NotificationType.PAYMENT_RECEIVED,
            "New Payment Received",
            f"Booking {booking.booking_ref} has been paid. Total: {format_idr(booking.total_amount)} "
            f"via {booking.payment_method}. Type: {kind}. Customer: {booking.customer_name}.",
        )
        self.mailer.send_confirmation(booking_email_data(booking))
        self._send_immediate_reminder(booking, now)

        return ReconcileOutcome(booking, PaymentStatus.PAID, "Payment confirmed", changed=True)

    def _mark_cancelled(self, booking: Booking, reason: str, signal: GatewayStatus | None,
                        now: datetime | None) -> ReconcileOutcome:
        try:
            if not self._won_transition(booking, {
                Booking.payment_status: PaymentStatus.CANCELLED,
                Booking.session_status: SessionStatus.CANCELLED,
            }):
                self.db.rollback()
                self.db.refresh(booking)
                return self._already_processed(booking)
            slot_ledger.release(self.db, booking.time_slot_id)
            self._update_payment_records(booking, signal, PaymentRecordStatus.FAILED, now)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to cancel {booking.booking_ref}")
            raise PersistenceError("Failed to cancel booking")

        self.db.refresh(booking)
        logger.info(f"CANCELLED | {booking.booking_ref} | payment {reason} | slot {booking.time_slot_id} released")

        self.notifier.notify(
            booking.id,
            NotificationType.PAYMENT_FAILED,
            "Payment Failed",
            f"Booking {booking.booking_ref} payment {reason}. Slot released.",
        )
        return ReconcileOutcome(booking, PaymentStatus.CANCELLED, "Payment failed", changed=True)

    def _send_immediate_reminder(self, booking: Booking, now: datetime):
        start, _ = session_window(booking.date, booking.time)
        hours = hours_until(start, now)
        if not 0 < hours < IMMEDIATE_REMINDER_HOURS:
            return

        if not self.mailer.send_reminder(booking_email_data(booking)):
            return
        try:
            self.db.query(Booking).filter(
                Booking.id == booking.id, Booking.reminder_sent.is_(False)
            ).update({Booking.reminder_sent: True, Booking.reminder_sent_at: now}, synchronize_session=False)
            self.db.commit()
            logger.info(f"Immediate reminder sent for {booking.booking_ref} ({hours:.1f}hrs away)")
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to flag reminder for {booking.booking_ref}")
