"""Persistence and state machine for ticket orders.

Orders start ``pending`` and move to ``confirmed`` exactly once. There is no
failed state: a failed or expired payment leaves the order pending so the
buyer can retry. ``confirm_order`` is the only code path that writes
``Order.status``.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ticketing.errors import NotFound
from ticketing.models import Order, Ticket, User
from ticketing.models.order import ORDER_CONFIRMED, ORDER_PENDING
from ticketing.services.inventory import check_and_reserve, lock_ticket
from ticketing.services.participants import register_ticket_holder
from ticketing.services.pricing import PricingSnapshot

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_pending_order(
    db: Session,
    user: User,
    ticket: Ticket,
    snapshot: PricingSnapshot,
    now: datetime | None = None,
) -> Order:
    """Check inventory and insert a pending order in one transaction.

    The ticket row stays locked from the availability check until the
    insert commits, so two buyers racing for the last units cannot both
    pass the check. Nothing is persisted when the check fails.
    """
    try:
        locked_ticket = lock_ticket(db, ticket.id)
        if locked_ticket is None:
            raise NotFound("Ticket not found")

        check_and_reserve(db, locked_ticket, snapshot.quantity, now=now)

        order = Order(
            user_id=user.id,
            ticket_id=locked_ticket.id,
            event_id=locked_ticket.event_id,
            quantity=snapshot.quantity,
            status=ORDER_PENDING,
            pricing_snapshot=snapshot.as_dict(),
            subtotal_cents=snapshot.subtotal_cents,
            tip_cents=snapshot.tip_cents,
            total_cents=snapshot.total_cents,
            currency=locked_ticket.currency,
        )
        db.add(order)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info(
        "Created pending order %s for user %s: ticket %s x%s, total %s %s",
        order.id,
        user.id,
        order.ticket_id,
        order.quantity,
        order.total_cents,
        order.currency,
    )
    return order


def attach_checkout_session(
    db: Session,
    order: Order,
    session_id: str,
    payment_reference: str | None = None,
) -> Order:
    order.stripe_session_id = session_id
    if payment_reference and not order.payment_reference:
        order.payment_reference = payment_reference
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(order)
    return order


def confirm_order(
    db: Session,
    order: Order,
    event_id: str,
    payment_reference: str | None = None,
    now: datetime | None = None,
) -> tuple[Order, bool]:
    """Move ``order`` to confirmed; safe to call any number of times.

    Uses a conditional update guarded on ``status = 'pending'``. The
    affected-row count tells concurrent callers (webhook deliveries, sync
    requests) which one performed the transition. Only that caller registers
    the buyer as a ticket holder of the event, in the same commit. Returns
    the refreshed order and whether this call confirmed it.
    """
    if order.status == ORDER_CONFIRMED:
        logger.info("Order %s already confirmed, skipping (event %s)", order.id, event_id)
        return order, False

    now = now or utcnow()
    values = {
        "status": ORDER_CONFIRMED,
        "confirmed_at": func.coalesce(Order.confirmed_at, now),
        "confirmation_event_id": event_id,
    }
    if payment_reference:
        values["payment_reference"] = func.coalesce(Order.payment_reference, payment_reference)

    statement = (
        update(Order)
        .where(Order.id == order.id, Order.status == ORDER_PENDING)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.execute(statement)
        transitioned = result.rowcount == 1
        if transitioned:
            register_ticket_holder(db, order, confirmed_at=now)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(order)
    if transitioned:
        logger.info("Order %s confirmed by event %s", order.id, event_id)
    else:
        logger.info(
            "Order %s was confirmed concurrently, event %s made no change",
            order.id,
            event_id,
        )
    return order, transitioned


def get_order(db: Session, order_id: int) -> Order | None:
    return db.query(Order).filter(Order.id == order_id).first()


def get_order_by_payment_reference(db: Session, payment_reference: str) -> Order | None:
    if not payment_reference:
        return None
    return db.query(Order).filter(Order.payment_reference == payment_reference).first()


def get_order_by_session_id(db: Session, session_id: str) -> Order | None:
    if not session_id:
        return None
    return db.query(Order).filter(Order.stripe_session_id == session_id).first()


def get_user_order(db: Session, user: User, order_id: int) -> Order:
    order = get_order(db, order_id)
    if order is None or order.user_id != user.id:
        raise NotFound("Order not found")
    return order


def list_orders_for_user(db: Session, user: User) -> list[Order]:
    return db.query(Order).filter(Order.user_id == user.id).order_by(Order.created_at.desc(), Order.id.desc()).all()
