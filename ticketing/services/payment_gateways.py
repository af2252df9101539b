from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from ticketing.config import settings
from ticketing.models import Order
from ticketing.services import stripe_service

PAYMENT_INTENT_SUCCEEDED = "succeeded"
CHECKOUT_SESSION_PAID = "paid"


@dataclass(frozen=True)
class LineItem:
    name: str
    unit_amount_cents: int
    quantity: int


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    checkout_url: str
    payment_reference: str | None = None


@dataclass(frozen=True)
class PaymentIntentStatus:
    status: str

    @property
    def succeeded(self) -> bool:
        return self.status == PAYMENT_INTENT_SUCCEEDED


@dataclass(frozen=True)
class CheckoutSessionStatus:
    payment_status: str
    payment_reference: str | None = None

    @property
    def paid(self) -> bool:
        return self.payment_status == CHECKOUT_SESSION_PAID


class PaymentGatewayClient(Protocol):
    """What checkout, sync and webhooks need from a payment provider.

    Every method raises ``ProviderError`` on provider failure or timeout;
    ``verify_webhook_signature`` raises ``InvalidSignature`` instead.
    """

    def create_checkout_session(self, order: Order, line_items: list[LineItem]) -> CheckoutSession: ...

    def get_payment_intent(self, reference: str, opts: Mapping[str, Any] | None = None) -> PaymentIntentStatus: ...

    def get_checkout_session(self, session_id: str) -> CheckoutSessionStatus: ...

    def verify_webhook_signature(self, body: bytes, sig_header: str | None, secret: str) -> Mapping[str, Any]: ...


class StripeGateway:
    def __init__(self, success_url: str, cancel_url: str):
        self.success_url = success_url
        self.cancel_url = cancel_url

    def create_checkout_session(self, order: Order, line_items: list[LineItem]) -> CheckoutSession:
        checkout_url, session_id, payment_reference = stripe_service.create_checkout_session(
            order_id=order.id,
            line_items=[_stripe_line_item(item, order.currency) for item in line_items],
            success_url=self.success_url,
            cancel_url=self.cancel_url,
        )
        return CheckoutSession(
            session_id=session_id,
            checkout_url=checkout_url,
            payment_reference=payment_reference,
        )

    def get_payment_intent(self, reference: str, opts: Mapping[str, Any] | None = None) -> PaymentIntentStatus:
        stripe_account = (opts or {}).get("stripe_account")
        status = stripe_service.retrieve_payment_intent_status(reference, stripe_account=stripe_account)
        return PaymentIntentStatus(status=status)

    def get_checkout_session(self, session_id: str) -> CheckoutSessionStatus:
        payment_status, payment_reference = stripe_service.retrieve_checkout_session_status(session_id)
        return CheckoutSessionStatus(payment_status=payment_status, payment_reference=payment_reference)

    def verify_webhook_signature(self, body: bytes, sig_header: str | None, secret: str) -> Mapping[str, Any]:
        return stripe_service.construct_webhook_event(body, sig_header, secret)


def _stripe_line_item(item: LineItem, currency: str) -> dict:
    return {
        "price_data": {
            "currency": currency,
            "product_data": {"name": item.name},
            "unit_amount": item.unit_amount_cents,
        },
        "quantity": item.quantity,
    }


def get_stripe_gateway() -> StripeGateway:
    return StripeGateway(
        success_url=settings.STRIPE_SUCCESS_URL,
        cancel_url=settings.STRIPE_CANCEL_URL,
    )
