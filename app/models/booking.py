from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, ForeignKey, Text, Enum as SAEnum,
)
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.models.enums import PaymentStatus, SessionStatus, PaymentChoice, RefundStatus


def _utcnow():
    return datetime.now(timezone.utc)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_ref = Column(String, unique=True, index=True, nullable=False)

    court_id = Column(Integer, ForeignKey("courts.id"), nullable=False)
    time_slot_id = Column(Integer, ForeignKey("time_slots.id"), nullable=False, index=True)

    date = Column(Date, nullable=False)
    time = Column(String, nullable=False)  # "14:00 - 15:00", venue local time

    # ---- CUSTOMER ----
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=False, index=True)
    customer_phone = Column(String, nullable=False)
    customer_whatsapp = Column(String, nullable=True)
    number_of_players = Column(Integer, nullable=False, default=4)
    notes = Column(Text, nullable=True)

    # ---- MONEY (IDR, whole units) ----
    subtotal = Column(Integer, nullable=False)
    payment_fee = Column(Integer, nullable=False, default=0)
    total_amount = Column(Integer, nullable=False)
    full_amount = Column(Integer, nullable=False)
    deposit_amount = Column(Integer, nullable=False, default=0)
    remaining_balance = Column(Integer, nullable=False, default=0)
    payment_choice = Column(SAEnum(PaymentChoice, name="paymentchoice"), nullable=True)
    require_deposit = Column(Boolean, nullable=False, default=False)

    # ---- STATUS ----
    payment_status = Column(
        SAEnum(PaymentStatus, name="paymentstatus"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    session_status = Column(
        SAEnum(SessionStatus, name="sessionstatus"),
        nullable=False,
        default=SessionStatus.UPCOMING,
    )
    payment_method = Column(String, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    payment_url = Column(String, nullable=True)
    payment_token = Column(String, nullable=True)

    # ---- VENUE PAYMENT ----
    venue_payment_received = Column(Boolean, nullable=False, default=False)
    venue_payment_amount = Column(Integer, nullable=False, default=0)
    venue_payment_date = Column(DateTime(timezone=True), nullable=True)
    venue_payment_method = Column(String, nullable=True)
    venue_payment_expired = Column(Boolean, nullable=False, default=False)

    # ---- SESSION ----
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    checked_out_at = Column(DateTime(timezone=True), nullable=True)
    session_notes = Column(Text, nullable=True)
    reminder_sent = Column(Boolean, nullable=False, default=False)
    reminder_sent_at = Column(DateTime(timezone=True), nullable=True)

    # ---- REFUND ----
    refund_status = Column(SAEnum(RefundStatus, name="refundstatus"), nullable=True)
    refund_amount = Column(Integer, nullable=False, default=0)
    refund_date = Column(DateTime(timezone=True), nullable=True)
    refund_reason = Column(String, nullable=True)
    refund_method = Column(String, nullable=True)
    refunded_by = Column(Integer, ForeignKey("admins.id"), nullable=True)
    refund_notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    court = relationship("Court", back_populates="bookings")
    time_slot = relationship("TimeSlot")
    payments = relationship("Payment", back_populates="booking")
    venue_payment = relationship("VenuePayment", back_populates="booking", uselist=False)

    @property
    def order_id(self) -> str:
        return f"BOOKING-{self.booking_ref}"

    @property
    def deposit_outstanding(self) -> bool:
        return self.require_deposit and not self.venue_payment_received
