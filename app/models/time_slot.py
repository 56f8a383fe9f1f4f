from sqlalchemy import Column, Integer, String, Boolean, Date, Time, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.db.session import Base


class TimeSlot(Base):
    __tablename__ = "time_slots"

    id = Column(Integer, primary_key=True, index=True)
    court_id = Column(Integer, ForeignKey("courts.id"), nullable=False, index=True)

    date = Column(Date, nullable=False, index=True)
    time_start = Column(Time, nullable=False)
    time_end = Column(Time, nullable=False)

    # Price tier: MORNING / AFTERNOON / EVENING
    period = Column(String, nullable=True)
    price_per_person = Column(Integer, nullable=False, default=0)

    # Only ever flipped through app.services.slot_ledger
    available = Column(Boolean, nullable=False, default=True)

    court = relationship("Court", back_populates="time_slots")

    __table_args__ = (
        UniqueConstraint("court_id", "date", "time_start", name="uq_court_slot"),
    )

    @property
    def label(self) -> str:
        return f"{self.time_start.strftime('%H:%M')} - {self.time_end.strftime('%H:%M')}"
