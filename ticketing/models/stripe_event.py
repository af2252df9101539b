"""Ledger of Stripe webhook events that were handled to completion.

Redeliveries of a recorded event id are acknowledged without touching
orders. Order state stays correct without this table because confirmation
is itself idempotent.
"""

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from ticketing.models.database import Base


class StripeEvent(Base):
    __tablename__ = "stripe_events"

    id = Column(Integer, primary_key=True, index=True)
    stripe_event_id = Column(String(255), unique=True, nullable=False, index=True)  # e.g. "evt_1Abc..."
    event_type = Column(String(255), nullable=False)
    outcome = Column(String(50), nullable=False)
    processed_at = Column(DateTime(timezone=True), server_default=func.now())
