from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ticketing.dependencies import get_current_user, get_payment_gateway
from ticketing.models import User, get_db
from ticketing.schemas.checkout import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    ErrorResponse,
    SyncResponse,
)
from ticketing.services import checkout, reconciliation
from ticketing.services.payment_gateways import PaymentGatewayClient

router = APIRouter()


@router.post(
    "/sessions",
    response_model=CheckoutSessionResponse,
    summary="Create order and get checkout URL",
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
def create_checkout_session(
    body: CheckoutSessionRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    gateway: Annotated[PaymentGatewayClient, Depends(get_payment_gateway)],
):
    """
    Price the requested tickets, hold inventory with a pending order and open a
    hosted Stripe Checkout session for it. Redirect the buyer to `checkout_url`.
    """
    result = checkout.create_checkout_session(
        db,
        current_user,
        ticket_id=body.ticket_id,
        quantity=body.quantity,
        gateway=gateway,
        custom_price_cents=body.custom_price_cents,
        tip_cents=body.tip_cents,
    )
    return CheckoutSessionResponse(
        success=True,
        checkout_url=result.checkout_url,
        session_id=result.session_id,
        order_id=result.order.id,
    )


@router.post(
    "/sync/{order_id}",
    response_model=SyncResponse,
    summary="Reconcile order with payment provider",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def sync_order(
    order_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    gateway: Annotated[PaymentGatewayClient, Depends(get_payment_gateway)],
):
    """
    Ask the provider whether the order has been paid and confirm it if so.
    Provider outages are not errors here: the stored status is returned.
    """
    result = reconciliation.sync_order(db, order_id, current_user, gateway)
    return SyncResponse(order_id=result.order.id, status=result.status, confirmed=result.confirmed)
