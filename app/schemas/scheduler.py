from pydantic import BaseModel
from datetime import datetime


class SweepSummaryOut(BaseModel):
    timestamp: datetime
    venue_payments_expired: int
    sessions_started: int
    sessions_completed: int
    sessions_completed_from_upcoming: int
    sessions_completed_from_in_progress: int
    skipped: int
    failed: int
    total_updates: int


class ReminderSummaryOut(BaseModel):
    timestamp: datetime
    sent: int
    skipped: int
    failed: int
    total: int
