from celery import Celery
from celery.schedules import crontab

from app.core.config import CELERY_BROKER_URL, SWEEP_INTERVAL_SECONDS, VENUE_TIMEZONE

celery_app = Celery("padel_booking", broker=CELERY_BROKER_URL, include=["app.tasks"])


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

celery_app.conf.beat_schedule = {
    # Session status sweep
    "update-session-statuses": {
        "task": "bookings.update_session_statuses",
        "schedule": float(SWEEP_INTERVAL_SECONDS),
        "options": {"expires": SWEEP_INTERVAL_SECONDS},
    },
    # Pre-session reminders, hourly on the hour
    "send-booking-reminders": {
        "task": "bookings.send_booking_reminders",
        "schedule": crontab(minute=0),
    },
}

celery_app.conf.timezone = VENUE_TIMEZONE
