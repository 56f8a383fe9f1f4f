"""Time-driven session transitions.

``next_transition`` is pure: given a booking and ``now`` it names the single
rule that applies, checked in this order:

1. deposit expiry   PAID, deposit unpaid at venue, session over -> CANCELLED
2. no-show          PAID, UPCOMING, session over                -> COMPLETED
3. auto-start       PAID, UPCOMING, inside the window           -> IN_PROGRESS
                    (skipped while a deposit balance is outstanding)
4. auto-complete    IN_PROGRESS, session over                   -> COMPLETED

``run_sweep`` applies it to every PAID booking whose session is not
terminal, writing each change only if the row is still in the state the
rule was derived from.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.logging_config import get_logger
from app.models.booking import Booking
from app.models.enums import NotificationType, PaymentStatus, SessionStatus
from app.services.notifications import NotificationEmitter
from app.utils.pricing import format_idr
from app.utils.time_window import session_window

logger = get_logger("scheduler")


class SweepRule(str, Enum):
    DEPOSIT_EXPIRED = "deposit_expired"
    COMPLETED_FROM_UPCOMING = "completed_from_upcoming"
    STARTED = "started"
    COMPLETED_FROM_IN_PROGRESS = "completed_from_in_progress"


@dataclass(frozen=True)
class SessionTransition:
    rule: SweepRule
    session_status: SessionStatus


def next_transition(booking: Booking, now: datetime) -> SessionTransition | None:
    if booking.payment_status != PaymentStatus.PAID:
        return None
    if booking.session_status not in (SessionStatus.UPCOMING, SessionStatus.IN_PROGRESS):
        return None

    start, end = session_window(booking.date, booking.time)
    ended = now > end

    if (
        ended
        and booking.require_deposit
        and not booking.venue_payment_received
        and not booking.venue_payment_expired
    ):
        return SessionTransition(SweepRule.DEPOSIT_EXPIRED, SessionStatus.CANCELLED)

    if booking.session_status == SessionStatus.UPCOMING:
        if ended:
            return SessionTransition(SweepRule.COMPLETED_FROM_UPCOMING, SessionStatus.COMPLETED)
        if start <= now <= end and not booking.deposit_outstanding:
            return SessionTransition(SweepRule.STARTED, SessionStatus.IN_PROGRESS)
        return None

    if ended:
        return SessionTransition(SweepRule.COMPLETED_FROM_IN_PROGRESS, SessionStatus.COMPLETED)
    return None


def derive_session_state(booking: Booking, now: datetime) -> SessionStatus:
    transition = next_transition(booking, now)
    return transition.session_status if transition else booking.session_status


@dataclass
class SweepSummary:
    timestamp: datetime
    counts: dict = field(default_factory=lambda: {rule: 0 for rule in SweepRule})
    skipped: int = 0
    failed: int = 0

    @property
    def sessions_completed(self) -> int:
        return (
            self.counts[SweepRule.COMPLETED_FROM_UPCOMING]
            + self.counts[SweepRule.COMPLETED_FROM_IN_PROGRESS]
        )

    @property
    def total_updates(self) -> int:
        return sum(self.counts.values())

    def as_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "venue_payments_expired": self.counts[SweepRule.DEPOSIT_EXPIRED],
            "sessions_started": self.counts[SweepRule.STARTED],
            "sessions_completed": self.sessions_completed,
            "sessions_completed_from_upcoming": self.counts[SweepRule.COMPLETED_FROM_UPCOMING],
            "sessions_completed_from_in_progress": self.counts[SweepRule.COMPLETED_FROM_IN_PROGRESS],
            "skipped": self.skipped,
            "failed": self.failed,
            "total_updates": self.total_updates,
        }


def _changes_for(transition: SessionTransition, now: datetime) -> dict:
    values = {Booking.session_status: transition.session_status}
    if transition.rule == SweepRule.DEPOSIT_EXPIRED:
        values[Booking.venue_payment_expired] = True
    elif transition.rule == SweepRule.STARTED:
        values[Booking.checked_in_at] = now
    else:
        values[Booking.checked_out_at] = now
    return values


def transition_notification(booking: Booking, transition: SessionTransition):
    if transition.rule == SweepRule.DEPOSIT_EXPIRED:
        return (
            NotificationType.CANCELLATION,
            "Venue Payment Expired",
            f"Booking {booking.booking_ref} - {booking.customer_name} failed to pay "
            f"{format_idr(booking.remaining_balance)} remaining balance. Session cancelled automatically.",
        )
    if transition.rule == SweepRule.STARTED:
        return (
            NotificationType.SESSION_STARTED,
            "Session Auto-Started",
            f"Booking {booking.booking_ref} - {booking.customer_name}'s session at {booking.time} started automatically.",
        )
    return (
        NotificationType.SESSION_COMPLETED,
        "Session Auto-Completed",
        f"Booking {booking.booking_ref} - {booking.customer_name}'s session at {booking.time} was automatically completed.",
    )


def apply_transition(db: Session, booking: Booking, transition: SessionTransition, now: datetime) -> bool:
    """Conditional write; False when another writer moved the booking first."""
    query = db.query(Booking).filter(
        Booking.id == booking.id,
        Booking.payment_status == PaymentStatus.PAID,
        Booking.session_status == booking.session_status,
    )
    if transition.rule == SweepRule.DEPOSIT_EXPIRED:
        query = query.filter(
            Booking.venue_payment_received.is_(False),
            Booking.venue_payment_expired.is_(False),
        )
    updated = query.update(_changes_for(transition, now), synchronize_session=False)
    db.commit()
    return updated == 1


def run_sweep(db: Session, notifier: NotificationEmitter, now: datetime | None = None) -> SweepSummary:
    now = now or datetime.now(timezone.utc)
    summary = SweepSummary(timestamp=now)

    candidates = (
        db.query(Booking)
        .filter(
            Booking.payment_status == PaymentStatus.PAID,
            Booking.session_status.in_([SessionStatus.UPCOMING, SessionStatus.IN_PROGRESS]),
        )
        .order_by(Booking.date, Booking.id)
        .all()
    )
    logger.info(f"Sweep started at {now.isoformat()} | {len(candidates)} active bookings")

    for booking in candidates:
        ref = booking.booking_ref
        try:
            transition = next_transition(booking, now)
            if transition is None:
                continue
            previous = booking.session_status
            if not apply_transition(db, booking, transition, now):
                summary.skipped += 1
                logger.info(f"{ref} changed concurrently, skipped {transition.rule.value}")
                continue
        except (SQLAlchemyError, ValueError):
            db.rollback()
            summary.failed += 1
            logger.exception(f"Sweep failed for booking {ref}")
            continue

        summary.counts[transition.rule] += 1
        logger.info(f"{ref} | {previous.value} -> {transition.session_status.value} ({transition.rule.value})")
        notifier.notify(booking.id, *transition_notification(booking, transition))

    logger.info(f"Sweep finished | {summary.as_dict()}")
    return summary
