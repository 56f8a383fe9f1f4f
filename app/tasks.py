"""Celery tasks for the periodic booking sweeps."""
from app.core.celery_app import celery_app
from app.core.dependencies import get_email_sender
from app.core.logging_config import get_logger
from app.db.session import SessionLocal
import app.db.base  # noqa: F401  registers every model on the metadata
from app.services.notifications import DbNotificationEmitter
from app.services.reminders import send_due_reminders
from app.services.session_scheduler import run_sweep

logger = get_logger("scheduler")


@celery_app.task(name="bookings.update_session_statuses")
def update_session_statuses() -> dict:
    """Runs one sweep; each run re-reads storage, so a missed beat is harmless."""
    db = SessionLocal()
    try:
        summary = run_sweep(db, DbNotificationEmitter(db))
    finally:
        db.close()
    result = summary.as_dict()
    result["timestamp"] = result["timestamp"].isoformat()
    return result


@celery_app.task(name="bookings.send_booking_reminders")
def send_booking_reminders() -> dict:
    db = SessionLocal()
    try:
        summary = send_due_reminders(db, get_email_sender())
    finally:
        db.close()
    result = summary.as_dict()
    result["timestamp"] = result["timestamp"].isoformat()
    logger.info(f"Reminder task finished | sent={result['sent']} failed={result['failed']}")
    return result
