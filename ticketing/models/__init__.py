from ticketing.models.database import Base, get_db
from ticketing.models.user import User
from ticketing.models.event import Event
from ticketing.models.ticket import Ticket
from ticketing.models.order import Order
from ticketing.models.event_participant import EventParticipant
from ticketing.models.stripe_event import StripeEvent

__all__ = ["Base", "get_db", "User", "Event", "Ticket", "Order", "EventParticipant", "StripeEvent"]
