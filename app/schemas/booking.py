from pydantic import BaseModel, EmailStr, Field
from datetime import date, datetime

from app.models.enums import PaymentChoice, PaymentStatus, SessionStatus, RefundStatus


class BookingCreate(BaseModel):
    court_id: int
    time_slot_id: int

    customer_name: str = Field(min_length=1)
    customer_email: EmailStr
    customer_phone: str = Field(min_length=1)
    customer_whatsapp: str | None = None
    number_of_players: int = Field(default=4, ge=1)
    notes: str | None = None

    subtotal: int = Field(gt=0)
    payment_fee: int = Field(default=0, ge=0)
    total_amount: int = Field(gt=0)
    payment_method: str | None = None

    payment_choice: PaymentChoice | None = None
    full_amount: int | None = None
    deposit_amount: int = Field(default=0, ge=0)
    remaining_balance: int = Field(default=0, ge=0)


class BookingCreated(BaseModel):
    id: int
    booking_ref: str
    payment_status: PaymentStatus
    session_status: SessionStatus


class VenuePaymentOut(BaseModel):
    id: int
    booking_id: int
    amount: int
    payment_method: str
    notes: str | None = None
    received_by: int | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingOut(BaseModel):
    id: int
    booking_ref: str
    court_id: int
    time_slot_id: int
    date: date
    time: str

    customer_name: str
    customer_email: str
    customer_phone: str
    number_of_players: int

    subtotal: int
    payment_fee: int
    total_amount: int
    full_amount: int
    deposit_amount: int
    remaining_balance: int
    payment_choice: PaymentChoice | None = None
    require_deposit: bool

    payment_status: PaymentStatus
    session_status: SessionStatus
    payment_method: str | None = None
    paid_at: datetime | None = None

    venue_payment_received: bool
    venue_payment_amount: int
    venue_payment_method: str | None = None
    venue_payment_expired: bool

    checked_in_at: datetime | None = None
    checked_out_at: datetime | None = None
    session_notes: str | None = None

    refund_status: RefundStatus | None = None
    refund_amount: int
    refund_date: datetime | None = None
    refund_reason: str | None = None
    refund_method: str | None = None
    refund_notes: str | None = None

    venue_payment: VenuePaymentOut | None = None

    model_config = {"from_attributes": True}


class SlotOut(BaseModel):
    id: int
    time: str
    available: bool
    period: str | None = None
    price_per_person: int


class LookupRequest(BaseModel):
    email: EmailStr
    booking_ref: str = Field(min_length=1)


class CustomerCancelRequest(BaseModel):
    email: EmailStr
    booking_ref: str = Field(min_length=1)
    reason: str | None = None


class CancellationResult(BaseModel):
    booking: BookingOut
    refund_type: str
    refund_amount: int
    hours_until_session: float
    message: str


class SessionNotes(BaseModel):
    notes: str | None = None


class AdminCancelRequest(BaseModel):
    reason: str | None = None


class RefundRequest(BaseModel):
    refund_amount: int
    refund_method: str = Field(min_length=1)
    reason: str | None = None
    notes: str | None = None


class VenuePaymentCreate(BaseModel):
    amount: int
    payment_method: str = Field(min_length=1)
    notes: str | None = None
