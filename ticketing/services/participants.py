import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ticketing.models import EventParticipant, Order
from ticketing.models.event_participant import (
    ROLE_TICKET_HOLDER,
    SOURCE_TICKET_PURCHASE,
    STATUS_CONFIRMED_WITH_ORDER,
)

logger = logging.getLogger(__name__)


def get_participant(db: Session, event_id: int, user_id: int) -> EventParticipant | None:
    return (
        db.query(EventParticipant)
        .filter(EventParticipant.event_id == event_id, EventParticipant.user_id == user_id)
        .first()
    )


def register_ticket_holder(db: Session, order: Order, confirmed_at: datetime) -> EventParticipant:
    """Record the buyer of a just-confirmed ``order`` as a ticket holder of its event.

    Joins the caller's transaction and does not commit. An existing row for
    the same event and user is upgraded and its details merged.
    """
    details = {
        "order_id": order.id,
        "ticket_id": order.ticket_id,
        "quantity": order.quantity,
        "confirmed_at": confirmed_at.isoformat(),
    }

    participant = get_participant(db, order.event_id, order.user_id)
    if participant is None:
        participant = EventParticipant(
            event_id=order.event_id,
            user_id=order.user_id,
            role=ROLE_TICKET_HOLDER,
            status=STATUS_CONFIRMED_WITH_ORDER,
            source=SOURCE_TICKET_PURCHASE,
            details=details,
        )
        db.add(participant)
        logger.info(
            "Registered user %s as ticket holder for event %s (order %s)",
            order.user_id,
            order.event_id,
            order.id,
        )
    else:
        participant.role = ROLE_TICKET_HOLDER
        participant.status = STATUS_CONFIRMED_WITH_ORDER
        participant.details = {**(participant.details or {}), **details}
        logger.info("Upgraded participant %s to ticket holder (order %s)", participant.id, order.id)

    db.flush()
    return participant
