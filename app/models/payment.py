from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Enum as SAEnum
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.models.booking import _utcnow
from app.models.enums import PaymentRecordStatus


class Payment(Base):
    """One gateway transaction attempt for a booking."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    order_id = Column(String, nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    status = Column(
        SAEnum(PaymentRecordStatus, name="paymentrecordstatus"),
        nullable=False,
        default=PaymentRecordStatus.PENDING,
    )

    transaction_id = Column(String, nullable=True)
    payment_type = Column(String, nullable=True)
    gateway_response = Column(JSON, nullable=True)
    # Fee the gateway keeps, recorded at settlement
    gateway_fee = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    booking = relationship("Booking", back_populates="payments")
