from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ticketing.models.database import Base

PRICING_FIXED = "fixed"
PRICING_FLEXIBLE = "flexible"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    base_price_cents = Column(Integer, nullable=False)
    pricing_model = Column(String(20), nullable=False, default=PRICING_FIXED)  # fixed | flexible
    minimum_price_cents = Column(Integer, nullable=False, default=0)
    suggested_price_cents = Column(Integer, nullable=True)
    tippable = Column(Boolean, nullable=False, default=False)
    quantity = Column(Integer, nullable=False)  # total inventory for this ticket type
    currency = Column(String(3), nullable=False, default="usd")
    starts_at = Column(DateTime(timezone=True), nullable=True)
    ends_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    event = relationship("Event", back_populates="tickets")

    def on_sale(self, now: datetime) -> bool:
        now = _as_utc(now)
        if self.starts_at is not None and now < _as_utc(self.starts_at):
            return False
        if self.ends_at is not None and now > _as_utc(self.ends_at):
            return False
        return True
