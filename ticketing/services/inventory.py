import logging
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from ticketing.config import settings
from ticketing.errors import InventoryReason, InventoryViolation
from ticketing.models import Order, Ticket
from ticketing.models.order import INVENTORY_HOLDING_STATUSES

logger = logging.getLogger(__name__)


def count_reserved(db: Session, ticket_id: int) -> int:
    """Units held by pending and confirmed orders for ``ticket_id``."""
    reserved = (
        db.query(func.coalesce(func.sum(Order.quantity), 0))
        .filter(Order.ticket_id == ticket_id, Order.status.in_(INVENTORY_HOLDING_STATUSES))
        .scalar()
    )
    return int(reserved or 0)


def available_quantity(db: Session, ticket: Ticket) -> int:
    return max(0, ticket.quantity - count_reserved(db, ticket.id))


def lock_ticket(db: Session, ticket_id: int) -> Ticket | None:
    """Take the row lock that serialises order creation for one ticket.

    Held until the surrounding transaction commits or rolls back.
    """
    return db.query(Ticket).filter(Ticket.id == ticket_id).with_for_update().first()


def check_and_reserve(
    db: Session,
    ticket: Ticket,
    quantity: int,
    now: datetime | None = None,
) -> int:
    """Validate that ``quantity`` units of ``ticket`` can be ordered right now.

    Must run inside the transaction that inserts the order, after
    ``lock_ticket``; the count read here is only meaningful while that lock
    is held. Returns the remaining count before this order.
    """
    now = now or datetime.now(timezone.utc)

    if not ticket.on_sale(now):
        logger.info("Ticket %s is outside its sale window", ticket.id)
        raise InventoryViolation(InventoryReason.SALE_NOT_ACTIVE, "Ticket is not on sale")

    max_per_order = settings.MAX_TICKETS_PER_ORDER
    if quantity > max_per_order:
        raise InventoryViolation(
            InventoryReason.PER_ORDER_LIMIT_EXCEEDED,
            f"Maximum {max_per_order} tickets per order",
        )

    remaining = available_quantity(db, ticket)
    if quantity > remaining:
        logger.info(
            "Ticket %s sold out for request: %s requested, %s remaining",
            ticket.id,
            quantity,
            remaining,
        )
        raise InventoryViolation(InventoryReason.SOLD_OUT, "Ticket is no longer available")

    return remaining
