import logging
import re
import time

import stripe

from ticketing.config import settings
from ticketing.errors import InvalidSignature, ProviderError
from ticketing.services.url_utils import append_query_param

logger = logging.getLogger(__name__)

CHECKOUT_SESSION_TTL_SECONDS = 30 * 60
WEBHOOK_TOLERANCE_SECONDS = 300
# "t=<unix ts>,v1=<hex hmac>[,v0=<hex>...]"
_SIGNATURE_HEADER_RE = re.compile(r"^t=\d+(,v\d+=[0-9a-f]+)+$", re.IGNORECASE)

_http_client = None
_http_client_timeout = None


def _configure() -> None:
    """Point the SDK at our key with a bounded, non-retrying HTTP client."""
    global _http_client, _http_client_timeout

    if not settings.STRIPE_SECRET_KEY:
        raise ProviderError("STRIPE_SECRET_KEY is not set")
    stripe.api_key = settings.STRIPE_SECRET_KEY
    stripe.max_network_retries = 0

    timeout = settings.STRIPE_TIMEOUT_SECONDS
    if _http_client is None or _http_client_timeout != timeout:
        _http_client = stripe.RequestsClient(timeout=timeout)
        _http_client_timeout = timeout
    stripe.default_http_client = _http_client


def create_checkout_session(
    order_id: int,
    line_items: list[dict],
    success_url: str,
    cancel_url: str,
    customer_email: str | None = None,
) -> tuple[str, str, str | None]:
    """Create Stripe Checkout Session and return (checkout URL, session ID, payment intent ID)."""
    _configure()
    metadata = {"order_id": str(order_id)}
    params = {
        "payment_method_types": ["card"],
        "line_items": line_items,
        "mode": "payment",
        "success_url": append_query_param(success_url, "order_id", order_id),
        "cancel_url": cancel_url,
        "expires_at": int(time.time()) + CHECKOUT_SESSION_TTL_SECONDS,
        "metadata": metadata,
        "payment_intent_data": {"metadata": metadata},
    }
    if customer_email:
        params["customer_email"] = customer_email

    try:
        session = stripe.checkout.Session.create(
            idempotency_key=f"order-{order_id}-checkout",
            **params,
        )
    except stripe.StripeError as exc:
        logger.error("Stripe checkout session creation failed for order %s: %s", order_id, exc)
        raise ProviderError(str(exc)) from exc

    logger.info("Created Stripe checkout session %s for order %s", session.id, order_id)
    return session.url, session.id, _payment_intent_id(session)


def retrieve_payment_intent_status(payment_intent_id: str, stripe_account: str | None = None) -> str:
    _configure()
    try:
        if stripe_account:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id, stripe_account=stripe_account)
        else:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)
    except stripe.StripeError as exc:
        logger.error("Stripe payment intent %s retrieval failed: %s", payment_intent_id, exc)
        raise ProviderError(str(exc)) from exc
    return intent.status


def retrieve_checkout_session_status(session_id: str) -> tuple[str, str | None]:
    """Return (payment_status, payment intent ID) of a Checkout Session."""
    _configure()
    try:
        session = stripe.checkout.Session.retrieve(session_id)
    except stripe.StripeError as exc:
        logger.error("Stripe checkout session %s retrieval failed: %s", session_id, exc)
        raise ProviderError(str(exc)) from exc
    return session.payment_status, _payment_intent_id(session)


def construct_webhook_event(payload: bytes, sig_header: str | None, secret: str):
    """Authenticate a webhook body and return the parsed event.

    Raises InvalidSignature for a malformed header, a bad HMAC, a stale
    timestamp or a body that is not JSON.
    """
    if not sig_header or not _SIGNATURE_HEADER_RE.match(sig_header) or ",v1=" not in sig_header:
        raise InvalidSignature("Invalid signature format")
    try:
        return stripe.Webhook.construct_event(
            payload, sig_header, secret, tolerance=WEBHOOK_TOLERANCE_SECONDS
        )
    except ValueError as exc:
        raise InvalidSignature(f"Invalid payload: {exc}") from exc
    except stripe.SignatureVerificationError as exc:
        raise InvalidSignature(f"Invalid signature: {exc}") from exc


def _payment_intent_id(session) -> str | None:
    payment_intent = getattr(session, "payment_intent", None)
    if payment_intent is None or isinstance(payment_intent, str):
        return payment_intent
    return getattr(payment_intent, "id", None)
