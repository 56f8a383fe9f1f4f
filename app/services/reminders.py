"""Pre-session reminder emails, sent once per booking."""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import REMINDER_WINDOW_HOURS, VENUE_TIMEZONE
from app.core.logging_config import get_logger
from app.models.booking import Booking
from app.models.enums import PaymentStatus, SessionStatus
from app.services.email import EmailSender, booking_email_data
from app.utils.time_window import hours_until, session_window

logger = get_logger("notification")


@dataclass
class ReminderSummary:
    timestamp: datetime
    sent: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "sent": self.sent,
            "skipped": self.skipped,
            "failed": self.failed,
            "total": self.sent + self.skipped + self.failed,
        }


def _claim_reminder(db: Session, booking: Booking, now: datetime) -> bool:
    updated = db.query(Booking).filter(
        Booking.id == booking.id, Booking.reminder_sent.is_(False)
    ).update({Booking.reminder_sent: True, Booking.reminder_sent_at: now}, synchronize_session=False)
    db.commit()
    return updated == 1


def _unclaim_reminder(db: Session, booking: Booking):
    db.query(Booking).filter(Booking.id == booking.id).update(
        {Booking.reminder_sent: False, Booking.reminder_sent_at: None}, synchronize_session=False
    )
    db.commit()


def send_due_reminders(db: Session, mailer: EmailSender, now: datetime | None = None,
                       window_hours: tuple = REMINDER_WINDOW_HOURS) -> ReminderSummary:
    now = now or datetime.now(timezone.utc)
    low, high = window_hours
    summary = ReminderSummary(timestamp=now)

    local_today = now.astimezone(ZoneInfo(VENUE_TIMEZONE)).date()
    candidates = (
        db.query(Booking)
        .filter(
            Booking.payment_status == PaymentStatus.PAID,
            Booking.session_status == SessionStatus.UPCOMING,
            Booking.reminder_sent.is_(False),
            Booking.date.in_([local_today, local_today + timedelta(days=1)]),
        )
        .all()
    )

    for booking in candidates:
        ref = booking.booking_ref
        try:
            start, _ = session_window(booking.date, booking.time)
        except ValueError:
            summary.failed += 1
            logger.exception(f"Unreadable session time for {ref}")
            continue

        hours = hours_until(start, now)
        if not low <= hours <= high:
            continue

        try:
            if not _claim_reminder(db, booking, now):
                summary.skipped += 1
                continue
        except SQLAlchemyError:
            db.rollback()
            summary.failed += 1
            logger.exception(f"Could not flag reminder for {ref}")
            continue

        if mailer.send_reminder(booking_email_data(booking)):
            summary.sent += 1
            logger.info(f"Reminder sent for {ref} ({hours:.1f}hrs before session)")
            continue

        summary.failed += 1
        try:
            _unclaim_reminder(db, booking)
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Could not reset reminder flag for {ref}")

    logger.info(f"Reminder run finished | {summary.as_dict()}")
    return summary
