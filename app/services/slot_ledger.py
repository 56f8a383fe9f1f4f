"""Single place where a slot's ``available`` flag changes.

None of these functions commit; they run inside the caller's transaction.
"""
from enum import Enum

from sqlalchemy import event
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.core.logging_config import get_logger
from app.core.redis import delete_cache
from app.models.time_slot import TimeSlot

logger = get_logger("booking")


class ClaimResult(str, Enum):
    CLAIMED = "claimed"
    ALREADY_TAKEN = "already_taken"


def availability_cache_key(court_id: int, slot_date) -> str:
    return f"available_slots:{court_id}:{slot_date.isoformat()}"


STALE_CACHE_KEYS = "stale_availability_keys"


def _forget_cached_availability(db: Session, slot_id: int):
    # Dropped once the caller commits, so a concurrent read cannot re-cache
    # the pre-commit state.
    slot = db.get(TimeSlot, slot_id)
    if slot:
        db.info.setdefault(STALE_CACHE_KEYS, set()).add(availability_cache_key(slot.court_id, slot.date))


@event.listens_for(Session, "after_commit")
def _drop_stale_availability(session):
    for key in session.info.pop(STALE_CACHE_KEYS, ()):
        delete_cache(key)


@event.listens_for(Session, "after_rollback")
def _keep_cached_availability(session):
    session.info.pop(STALE_CACHE_KEYS, None)


def claim(db: Session, slot_id: int) -> ClaimResult:
    # Compare-and-swap: only one concurrent caller sees rowcount == 1
    claimed = (
        db.query(TimeSlot)
        .filter(TimeSlot.id == slot_id, TimeSlot.available.is_(True))
        .update({TimeSlot.available: False}, synchronize_session=False)
    )
    if claimed == 1:
        _forget_cached_availability(db, slot_id)
        return ClaimResult.CLAIMED

    if not db.query(TimeSlot.id).filter(TimeSlot.id == slot_id).first():
        raise NotFoundError("Time slot not found")

    logger.info(f"Slot {slot_id} already taken")
    return ClaimResult.ALREADY_TAKEN


def release(db: Session, slot_id: int) -> None:
    released = (
        db.query(TimeSlot)
        .filter(TimeSlot.id == slot_id, TimeSlot.available.is_(False))
        .update({TimeSlot.available: True}, synchronize_session=False)
    )
    if released:
        _forget_cached_availability(db, slot_id)
        logger.info(f"Slot {slot_id} released")


def confirm_held(db: Session, slot_id: int) -> None:
    """Re-assert that a paid booking's slot is unavailable."""
    db.query(TimeSlot).filter(TimeSlot.id == slot_id).update(
        {TimeSlot.available: False}, synchronize_session=False
    )
