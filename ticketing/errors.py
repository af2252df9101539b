"""Domain errors raised by the checkout and reconciliation services.

Every error carries the HTTP status it maps to and a message that is safe to
show to the buyer. ``ticketing.main`` renders them as ``{"error": message}``.
"""

from enum import Enum


class CheckoutError(Exception):
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CheckoutError):
    status_code = 400
    default_message = "Invalid request"


class PricingViolation(CheckoutError):
    status_code = 422
    default_message = "Price is below minimum required amount"


class InventoryReason(str, Enum):
    SOLD_OUT = "sold_out"
    PER_ORDER_LIMIT_EXCEEDED = "per_order_limit_exceeded"
    SALE_NOT_ACTIVE = "sale_not_active"


class InventoryViolation(CheckoutError):
    status_code = 422
    default_message = "Ticket is no longer available"

    def __init__(self, reason: InventoryReason, message: str | None = None):
        self.reason = reason
        super().__init__(message)


class NotFound(CheckoutError):
    status_code = 404
    default_message = "Not found"


class AccessDenied(CheckoutError):
    status_code = 403
    default_message = "Access denied"


class CheckoutUnavailable(CheckoutError):
    status_code = 502
    default_message = "Could not start payment"


class ProviderError(Exception):
    """The payment provider failed, timed out or returned something unusable."""


class InvalidSignature(Exception):
    """A webhook payload could not be authenticated."""
