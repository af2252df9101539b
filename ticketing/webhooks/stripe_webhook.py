import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ticketing.config import settings
from ticketing.dependencies import get_payment_gateway
from ticketing.errors import InvalidSignature
from ticketing.models import get_db
from ticketing.services import webhook_events
from ticketing.services.payment_gateways import PaymentGatewayClient

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/stripe",
    summary="Stripe webhook",
)
async def stripe_webhook(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    gateway: Annotated[PaymentGatewayClient, Depends(get_payment_gateway)],
):
    """
    Stripe sends events here. Payment succeeded and paid checkout sessions
    confirm the matching order; failed payments and expired sessions leave it
    pending. Every verified event is acknowledged with 200, including unknown
    types and events for orders we do not have, so Stripe does not retry them.
    Idempotent: redelivered events never change a confirmed order.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    secret = settings.STRIPE_WEBHOOK_SECRET
    if not secret:
        logger.error("STRIPE_WEBHOOK_SECRET is not set, refusing to process webhook")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook verification is not configured",
        )

    try:
        raw_event = gateway.verify_webhook_signature(payload, sig_header, secret)
    except InvalidSignature as e:
        logger.error("Webhook signature verification failed: %s", e)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid signature format"},
        )

    event = webhook_events.parse_event(raw_event)
    event_type = webhook_events.event_type_of(raw_event)
    logger.info("Received Stripe event %s (%s)", event.event_id, event_type)

    try:
        if webhook_events.already_processed(db, event.event_id):
            logger.info("Duplicate Stripe event %s ignored", event.event_id)
            return {"received": True}

        outcome = webhook_events.handle_event(db, event)
        webhook_events.record_processed(db, event.event_id, event_type, outcome)
    except SQLAlchemyError as e:
        logger.error("Error processing Stripe event %s: %s", event.event_id, e, exc_info=True)
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")

    logger.info("Stripe event %s handled: %s", event.event_id, outcome.value)
    return {"received": True}
