"""Parsing and dispatch of verified Stripe webhook events.

``parse_event`` turns the raw event into one of a closed set of variants;
``handle_event`` dispatches on the variant. Webhooks are delivered at least
once and in any order, so every branch is safe to repeat.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ticketing.models import Order, StripeEvent
from ticketing.services import order_store
from ticketing.services.payment_gateways import CHECKOUT_SESSION_PAID

logger = logging.getLogger(__name__)

PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"
CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
CHECKOUT_SESSION_EXPIRED = "checkout.session.expired"


@dataclass(frozen=True)
class PaymentSucceeded:
    event_id: str
    payment_intent_id: str | None
    order_id: int | None = None


@dataclass(frozen=True)
class PaymentFailed:
    event_id: str
    payment_intent_id: str | None
    order_id: int | None = None


@dataclass(frozen=True)
class SessionCompleted:
    event_id: str
    session_id: str | None
    payment_status: str | None
    payment_intent_id: str | None = None
    order_id: int | None = None


@dataclass(frozen=True)
class SessionExpired:
    event_id: str
    session_id: str | None
    order_id: int | None = None


@dataclass(frozen=True)
class Unhandled:
    event_id: str
    raw_type: str


WebhookEvent = Union[PaymentSucceeded, PaymentFailed, SessionCompleted, SessionExpired, Unhandled]


class Outcome(str, Enum):
    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"
    NOT_PAID = "not_paid"
    PAYMENT_FAILED = "payment_failed"
    SESSION_EXPIRED = "session_expired"
    ORDER_NOT_FOUND = "order_not_found"
    UNHANDLED = "unhandled"
    DUPLICATE = "duplicate"


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def _metadata_order_id(obj: Any) -> int | None:
    raw = _get(_get(obj, "metadata"), "order_id")
    if raw is None:
        return None
    try:
        order_id = int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid order_id in webhook metadata: %s", raw)
        return None
    return order_id if order_id > 0 else None


def _id_of(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return _get(value, "id")


def event_type_of(event: Mapping[str, Any]) -> str:
    return str(_get(event, "type") or "")


def parse_event(event: Mapping[str, Any]) -> WebhookEvent:
    event_id = str(_get(event, "id") or "")
    event_type = event_type_of(event)
    obj = _get(_get(event, "data"), "object")

    if event_type == PAYMENT_INTENT_SUCCEEDED:
        return PaymentSucceeded(event_id, _get(obj, "id"), _metadata_order_id(obj))
    if event_type == PAYMENT_INTENT_FAILED:
        return PaymentFailed(event_id, _get(obj, "id"), _metadata_order_id(obj))
    if event_type == CHECKOUT_SESSION_COMPLETED:
        return SessionCompleted(
            event_id,
            _get(obj, "id"),
            _get(obj, "payment_status"),
            _id_of(_get(obj, "payment_intent")),
            _metadata_order_id(obj),
        )
    if event_type == CHECKOUT_SESSION_EXPIRED:
        return SessionExpired(event_id, _get(obj, "id"), _metadata_order_id(obj))
    return Unhandled(event_id, event_type)


def _order_from_metadata(db: Session, order_id: int | None) -> Order | None:
    if order_id is None:
        return None
    return order_store.get_order(db, order_id)


def find_order_for_payment_intent(db: Session, payment_intent_id: str | None, order_id: int | None) -> Order | None:
    order = order_store.get_order_by_payment_reference(db, payment_intent_id)
    if order is not None:
        return order
    # Checkout creates the intent lazily, so the first event can precede our copy of its id.
    order = _order_from_metadata(db, order_id)
    if order is not None and order.payment_reference not in (None, payment_intent_id):
        logger.warning(
            "Payment intent %s names order %s, which belongs to intent %s",
            payment_intent_id,
            order.id,
            order.payment_reference,
        )
        return None
    return order


def find_order_for_session(db: Session, session_id: str | None, order_id: int | None) -> Order | None:
    order = order_store.get_order_by_session_id(db, session_id)
    if order is not None:
        return order
    order = _order_from_metadata(db, order_id)
    if order is not None and order.stripe_session_id not in (None, session_id):
        logger.warning(
            "Checkout session %s names order %s, which belongs to session %s",
            session_id,
            order.id,
            order.stripe_session_id,
        )
        return None
    return order


def _confirm(db: Session, order: Order, event_id: str, payment_intent_id: str | None) -> Outcome:
    _, transitioned = order_store.confirm_order(db, order, event_id, payment_reference=payment_intent_id)
    return Outcome.CONFIRMED if transitioned else Outcome.ALREADY_CONFIRMED


def handle_event(db: Session, event: WebhookEvent) -> Outcome:
    if isinstance(event, PaymentSucceeded):
        order = find_order_for_payment_intent(db, event.payment_intent_id, event.order_id)
        if order is None:
            logger.warning("No order found for payment intent %s (event %s)", event.payment_intent_id, event.event_id)
            return Outcome.ORDER_NOT_FOUND
        return _confirm(db, order, event.event_id, event.payment_intent_id)

    if isinstance(event, SessionCompleted):
        order = find_order_for_session(db, event.session_id, event.order_id)
        if order is None:
            logger.warning("No order found for checkout session %s (event %s)", event.session_id, event.event_id)
            return Outcome.ORDER_NOT_FOUND
        if event.payment_status != CHECKOUT_SESSION_PAID:
            logger.info(
                "Checkout session %s completed with payment_status=%s, order %s stays %s",
                event.session_id,
                event.payment_status,
                order.id,
                order.status,
            )
            return Outcome.NOT_PAID
        return _confirm(db, order, event.event_id, event.payment_intent_id)

    if isinstance(event, PaymentFailed):
        order = find_order_for_payment_intent(db, event.payment_intent_id, event.order_id)
        if order is None:
            logger.warning("No order found for failed payment intent %s", event.payment_intent_id)
            return Outcome.ORDER_NOT_FOUND
        logger.info("Payment failed for order %s, order stays %s for retry", order.id, order.status)
        return Outcome.PAYMENT_FAILED

    if isinstance(event, SessionExpired):
        order = find_order_for_session(db, event.session_id, event.order_id)
        if order is None:
            logger.warning("No order found for expired checkout session %s", event.session_id)
            return Outcome.ORDER_NOT_FOUND
        logger.info("Checkout session %s expired, order %s stays %s", event.session_id, order.id, order.status)
        return Outcome.SESSION_EXPIRED

    if isinstance(event, Unhandled):
        logger.info("Received unhandled webhook event %s (%s)", event.raw_type, event.event_id)
        return Outcome.UNHANDLED

    raise TypeError(f"Unknown webhook event variant: {event!r}")


def already_processed(db: Session, event_id: str) -> bool:
    if not event_id:
        return False
    return db.query(StripeEvent).filter(StripeEvent.stripe_event_id == event_id).first() is not None


def record_processed(db: Session, event_id: str, event_type: str, outcome: Outcome) -> None:
    if not event_id:
        return
    db.add(StripeEvent(stripe_event_id=event_id, event_type=event_type, outcome=outcome.value))
    try:
        db.commit()
    except IntegrityError:
        # A concurrent delivery of the same event recorded it first.
        db.rollback()
        logger.info("Stripe event %s already recorded", event_id)
