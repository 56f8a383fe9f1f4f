from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.models.booking import _utcnow


class VenuePayment(Base):
    __tablename__ = "venue_payments"

    id = Column(Integer, primary_key=True, index=True)
    # At most one settlement per booking
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)
    amount = Column(Integer, nullable=False)
    payment_method = Column(String, nullable=False)
    notes = Column(Text, nullable=True)
    received_by = Column(Integer, ForeignKey("admins.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    booking = relationship("Booking", back_populates="venue_payment")
