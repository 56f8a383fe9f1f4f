from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import relationship
from app.db.session import Base


class Court(Base):
    __tablename__ = "courts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(String)
    available = Column(Boolean, nullable=False, default=True)

    time_slots = relationship("TimeSlot", back_populates="court")
    bookings = relationship("Booking", back_populates="court")
