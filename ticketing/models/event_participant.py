from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from ticketing.models.database import Base

ROLE_TICKET_HOLDER = "ticket_holder"
STATUS_CONFIRMED_WITH_ORDER = "confirmed_with_order"
SOURCE_TICKET_PURCHASE = "ticket_purchase"


class EventParticipant(Base):
    """A user's attendance record for an event, one row per (event, user).

    Rows may also be written by the RSVP side of the platform; a confirmed
    ticket order upgrades an existing row instead of adding a second one.
    """

    __tablename__ = "event_participants"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_participants_event_user"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(30), nullable=False, default=ROLE_TICKET_HOLDER)
    status = Column(String(30), nullable=False, default=STATUS_CONFIRMED_WITH_ORDER)
    source = Column(String(50), nullable=True)  # ticket_purchase | rsvp | ...
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
