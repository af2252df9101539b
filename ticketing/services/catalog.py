"""Read-only access to the event/ticket catalog owned by another subsystem."""

from sqlalchemy.orm import Session

from ticketing.models import Event, Ticket


def get_ticket(db: Session, ticket_id: int) -> Ticket | None:
    return db.query(Ticket).filter(Ticket.id == ticket_id).first()


def get_event(db: Session, event_id: int) -> Event | None:
    return db.query(Event).filter(Event.id == event_id).first()
