import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from ticketing.errors import CheckoutUnavailable, NotFound, ProviderError
from ticketing.models import Order, Ticket, User
from ticketing.services import catalog, order_store
from ticketing.services.payment_gateways import LineItem, PaymentGatewayClient
from ticketing.services.pricing import PricingSnapshot, calculate_pricing

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    checkout_url: str
    session_id: str


def build_line_items(ticket: Ticket, snapshot: PricingSnapshot, event_title: str | None = None) -> list[LineItem]:
    name = f"{event_title} - {ticket.title}" if event_title else ticket.title
    items = [LineItem(name=name, unit_amount_cents=snapshot.unit_price_cents, quantity=snapshot.quantity)]
    if snapshot.tip_cents:
        items.append(LineItem(name="Tip", unit_amount_cents=snapshot.tip_cents, quantity=1))
    return items


def create_checkout_session(
    db: Session,
    user: User,
    ticket_id: int,
    quantity: int,
    gateway: PaymentGatewayClient,
    custom_price_cents: int | None = None,
    tip_cents: int | None = None,
) -> CheckoutResult:
    """Price the request, reserve inventory with a pending order, then open a provider session.

    Pricing and inventory failures raise before any order row exists. A
    provider failure after the order is created raises CheckoutUnavailable;
    the pending order is kept and can be retried.
    """
    ticket = catalog.get_ticket(db, ticket_id)
    if ticket is None:
        raise NotFound("Ticket not found")

    snapshot = calculate_pricing(
        ticket,
        quantity,
        custom_price_cents=custom_price_cents,
        tip_cents=tip_cents,
    )
    order = order_store.create_pending_order(db, user, ticket, snapshot)

    event = catalog.get_event(db, ticket.event_id)
    line_items = build_line_items(ticket, snapshot, event.title if event else None)
    try:
        session = gateway.create_checkout_session(order, line_items)
    except ProviderError as exc:
        logger.error("Could not start payment for order %s: %s", order.id, exc)
        raise CheckoutUnavailable("Could not start payment") from exc

    order = order_store.attach_checkout_session(
        db,
        order,
        session_id=session.session_id,
        payment_reference=session.payment_reference,
    )
    return CheckoutResult(order=order, checkout_url=session.checkout_url, session_id=session.session_id)
