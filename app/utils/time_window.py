from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from app.core.config import VENUE_TIMEZONE


def parse_time_range(label: str):
    """"14:00 - 15:00" -> (time(14, 0), time(15, 0))"""
    try:
        start_str, end_str = [part.strip() for part in label.split("-")]
        start = time.fromisoformat(start_str)
        end = time.fromisoformat(end_str)
    except ValueError:
        raise ValueError(f"Invalid time range: {label!r}")
    return start, end


def session_window(booking_date: date, label: str, tz_name: str = VENUE_TIMEZONE):
    """Aware start/end datetimes of a session in the venue timezone.

    An end at or before the start (e.g. "23:00 - 00:00") rolls into the
    next day.
    """
    tz = ZoneInfo(tz_name)
    start_t, end_t = parse_time_range(label)
    start = datetime.combine(booking_date, start_t, tzinfo=tz)
    end = datetime.combine(booking_date, end_t, tzinfo=tz)
    if end <= start:
        end += timedelta(days=1)
    return start, end


def hours_until(moment: datetime, now: datetime) -> float:
    return (moment - now).total_seconds() / 3600
