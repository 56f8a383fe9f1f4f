import pytest

from app.core.exceptions import NotFoundError
from app.models.time_slot import TimeSlot
from app.services import slot_ledger
from app.services.slot_ledger import ClaimResult
from conftest import make_slot


def _available(db, slot_id):
    db.expire_all()
    return db.get(TimeSlot, slot_id).available


def test_claim_flips_available_once(db, court):
    slot = make_slot(db, court)

    assert slot_ledger.claim(db, slot.id) == ClaimResult.CLAIMED
    db.commit()
    assert _available(db, slot.id) is False

    assert slot_ledger.claim(db, slot.id) == ClaimResult.ALREADY_TAKEN


def test_claim_unknown_slot(db):
    with pytest.raises(NotFoundError):
        slot_ledger.claim(db, 9999)


def test_release_is_idempotent(db, court):
    slot = make_slot(db, court, available=False)

    slot_ledger.release(db, slot.id)
    db.commit()
    assert _available(db, slot.id) is True

    slot_ledger.release(db, slot.id)
    db.commit()
    assert _available(db, slot.id) is True


def test_claim_rolled_back_with_transaction(db, court):
    slot = make_slot(db, court)

    assert slot_ledger.claim(db, slot.id) == ClaimResult.CLAIMED
    db.rollback()
    assert _available(db, slot.id) is True


def test_confirm_held_keeps_slot_unavailable(db, court):
    slot = make_slot(db, court, available=False)
    slot_ledger.confirm_held(db, slot.id)
    db.commit()
    assert _available(db, slot.id) is False


def test_cache_key_format(court):
    from conftest import SESSION_DATE
    assert slot_ledger.availability_cache_key(court.id, SESSION_DATE) == f"available_slots:{court.id}:2030-06-15"


@pytest.fixture
def deleted_keys(monkeypatch):
    keys = []
    monkeypatch.setattr(slot_ledger, "delete_cache", keys.append)
    return keys


def test_cached_availability_dropped_after_commit(db, court, deleted_keys):
    slot = make_slot(db, court)
    key = slot_ledger.availability_cache_key(court.id, slot.date)

    slot_ledger.claim(db, slot.id)
    assert deleted_keys == []

    db.commit()
    assert deleted_keys == [key]

    db.commit()
    assert deleted_keys == [key]


def test_cached_availability_kept_on_rollback(db, court, deleted_keys):
    slot = make_slot(db, court, available=False)

    slot_ledger.release(db, slot.id)
    db.rollback()
    db.commit()

    assert deleted_keys == []
