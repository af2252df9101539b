"""On-demand reconciliation of an order against the payment provider.

Sync is the buyer-triggered fallback for a webhook that has not arrived
yet. The database is the source of truth: when the provider cannot be
reached the caller gets the stored status, never an error.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from ticketing.errors import AccessDenied, NotFound, ProviderError
from ticketing.models import Order, User
from ticketing.services import order_store
from ticketing.services.payment_gateways import PaymentGatewayClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncResult:
    order: Order
    status: str
    confirmed: bool


def _result(order: Order) -> SyncResult:
    return SyncResult(order=order, status=order.status, confirmed=order.is_confirmed)


def _provider_says_paid(order: Order, gateway: PaymentGatewayClient) -> tuple[bool, str | None, str | None]:
    """Ask the provider about ``order``; returns (paid, reference used, payment intent id)."""
    if order.payment_reference:
        intent = gateway.get_payment_intent(order.payment_reference, None)
        return intent.succeeded, order.payment_reference, order.payment_reference

    if order.stripe_session_id:
        session = gateway.get_checkout_session(order.stripe_session_id)
        return session.paid, order.stripe_session_id, session.payment_reference

    return False, None, None


def sync_order(
    db: Session,
    order_id: int,
    user: User,
    gateway: PaymentGatewayClient,
) -> SyncResult:
    order = order_store.get_order(db, order_id)
    if order is None:
        raise NotFound("Order not found")
    if order.user_id != user.id:
        raise AccessDenied("Access denied")

    if order.is_confirmed:
        return _result(order)

    try:
        paid, reference, payment_intent_id = _provider_says_paid(order, gateway)
    except ProviderError as exc:
        logger.warning("Sync for order %s could not reach the provider: %s", order.id, exc)
        return _result(order)

    if reference is None:
        logger.info("Order %s has no provider reference yet, nothing to sync", order.id)
        return _result(order)

    if paid:
        order, _ = order_store.confirm_order(
            db,
            order,
            event_id=f"sync:{reference}",
            payment_reference=payment_intent_id,
        )
    else:
        logger.info("Order %s still awaiting payment at provider", order.id)

    return _result(order)
