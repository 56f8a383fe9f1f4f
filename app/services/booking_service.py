from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import AVAILABLE_SLOTS_CACHE_TTL, DEPOSIT_PERCENTAGE
from app.core.exceptions import (
    NotFoundError, PersistenceError, SlotUnavailableError, ValidationError,
)
from app.core.logging_config import get_logger
from app.core.redis import get_cache, set_cache
from app.models.booking import Booking
from app.models.court import Court
from app.models.enums import NotificationType, PaymentChoice, PaymentStatus, SessionStatus
from app.models.time_slot import TimeSlot
from app.schemas.booking import BookingCreate
from app.services import slot_ledger
from app.services.notifications import NotificationEmitter
from app.utils.pricing import PaymentSplit, compute_payment_split
from app.utils.time_window import session_window

logger = get_logger("booking")

REF_PREFIX = "BAP"
MAX_REF_ATTEMPTS = 20


# ---------------------------------------------------------------------
# REFERENCE CODE
# ---------------------------------------------------------------------
def generate_booking_ref(db: Session, now: datetime) -> str:
    """BAP + last 8 digits of the millisecond clock, bumped until unused."""
    base = int(now.timestamp() * 1000) % 10**8
    for offset in range(MAX_REF_ATTEMPTS):
        ref = f"{REF_PREFIX}{(base + offset) % 10**8:08d}"
        if not db.query(Booking.id).filter(Booking.booking_ref == ref).first():
            return ref
    raise PersistenceError("Could not allocate a booking reference")


# ---------------------------------------------------------------------
# VALIDATION
# ---------------------------------------------------------------------
def _validate_amounts(data: BookingCreate) -> dict:
    if data.payment_choice == PaymentChoice.DEPOSIT:
        full_amount = data.full_amount if data.full_amount is not None else data.subtotal
        if data.deposit_amount == 0 and data.remaining_balance == 0:
            split = compute_payment_split(full_amount, DEPOSIT_PERCENTAGE, PaymentChoice.DEPOSIT)
        else:
            split = PaymentSplit(data.deposit_amount, data.remaining_balance)
        if split.deposit_amount <= 0 or split.remaining_balance <= 0:
            raise ValidationError("Deposit bookings need a deposit and a remaining balance")
        if split.deposit_amount + split.remaining_balance != full_amount:
            raise ValidationError("Deposit amount plus remaining balance must equal the full amount")
        if data.total_amount != split.deposit_amount:
            raise ValidationError("Deposit bookings charge exactly the deposit amount online")
        return {
            "full_amount": full_amount,
            "deposit_amount": split.deposit_amount,
            "remaining_balance": split.remaining_balance,
            "require_deposit": True,
        }

    if data.deposit_amount or data.remaining_balance:
        raise ValidationError("Deposit fields are only allowed for deposit bookings")
    if data.total_amount != data.subtotal + data.payment_fee:
        raise ValidationError("Total amount must equal subtotal plus payment fee")
    return {
        "full_amount": data.full_amount if data.full_amount is not None else data.subtotal,
        "deposit_amount": 0,
        "remaining_balance": 0,
        "require_deposit": False,
    }


# ---------------------------------------------------------------------
# CREATE BOOKING
# ---------------------------------------------------------------------
def create_booking(db: Session, data: BookingCreate, notifier: NotificationEmitter,
                   now: datetime | None = None) -> Booking:
    now = now or datetime.now(timezone.utc)

    if not data.customer_name.strip() or not data.customer_phone.strip():
        raise ValidationError("Missing required fields")

    money = _validate_amounts(data)

    slot = db.get(TimeSlot, data.time_slot_id)
    if not slot:
        raise NotFoundError("Time slot not found")
    if slot.court_id != data.court_id:
        raise ValidationError("Time slot does not belong to this court")

    _, slot_end = session_window(slot.date, slot.label)
    if slot_end <= now:
        raise ValidationError("Cannot book a time slot in the past")

    try:
        if slot_ledger.claim(db, slot.id) != slot_ledger.ClaimResult.CLAIMED:
            db.rollback()
            raise SlotUnavailableError("Time slot is no longer available")

        booking = Booking(
            booking_ref=generate_booking_ref(db, now),
            court_id=data.court_id,
            time_slot_id=slot.id,
            date=slot.date,
            time=slot.label,
            customer_name=data.customer_name.strip(),
            customer_email=data.customer_email.lower().strip(),
            customer_phone=data.customer_phone.strip(),
            customer_whatsapp=data.customer_whatsapp,
            number_of_players=data.number_of_players,
            notes=data.notes,
            subtotal=data.subtotal,
            payment_fee=data.payment_fee,
            total_amount=data.total_amount,
            payment_method=data.payment_method,
            payment_choice=data.payment_choice,
            payment_status=PaymentStatus.PENDING,
            session_status=SessionStatus.UPCOMING,
            **money,
        )
        db.add(booking)
        db.commit()
    except SQLAlchemyError:
        # Claim and insert share the transaction, so the slot is free again
        db.rollback()
        logger.exception(f"Failed to create booking for slot {slot.id}")
        raise PersistenceError("Failed to create booking")

    db.refresh(booking)
    logger.info(
        f"Booking Created | Ref={booking.booking_ref} | Slot={slot.id} | "
        f"Choice={booking.payment_choice.value if booking.payment_choice else 'FULL'} | Total={booking.total_amount}"
    )

    notifier.notify(
        booking.id,
        NotificationType.NEW_BOOKING,
        "New Booking Created",
        f"Booking {booking.booking_ref} created. Customer: {booking.customer_name}. Waiting for payment.",
    )
    return booking


# ---------------------------------------------------------------------
# LOOKUPS
# ---------------------------------------------------------------------
def get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def get_booking_by_ref(db: Session, booking_ref: str) -> Booking:
    booking = db.query(Booking).filter(Booking.booking_ref == booking_ref.upper().strip()).first()
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def lookup_booking(db: Session, email: str, booking_ref: str) -> Booking:
    booking = db.query(Booking).filter(
        Booking.customer_email == email.lower().strip(),
        Booking.booking_ref == booking_ref.upper().strip(),
    ).first()
    if not booking:
        raise NotFoundError("Booking not found. Please check your email and booking reference.")
    return booking


def list_available_slots(db: Session, court_id: int, slot_date) -> list[dict]:
    key = slot_ledger.availability_cache_key(court_id, slot_date)
    cached = get_cache(key)
    if cached is not None:
        return cached

    if not db.get(Court, court_id):
        raise NotFoundError("Court not found")

    slots = (
        db.query(TimeSlot)
        .filter(
            TimeSlot.court_id == court_id,
            TimeSlot.date == slot_date,
            TimeSlot.available.is_(True),
        )
        .order_by(TimeSlot.time_start)
        .all()
    )
    result = [
        {
            "id": s.id,
            "time": s.label,
            "available": s.available,
            "period": s.period,
            "price_per_person": s.price_per_person,
        }
        for s in slots
    ]
    set_cache(key, result, ttl=AVAILABLE_SLOTS_CACHE_TTL)
    return result
