from ticketing.schemas.checkout import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    ErrorResponse,
    SyncResponse,
)
from ticketing.schemas.orders import OrderResponse, PricingSnapshotResponse

__all__ = [
    "CheckoutSessionRequest",
    "CheckoutSessionResponse",
    "ErrorResponse",
    "SyncResponse",
    "OrderResponse",
    "PricingSnapshotResponse",
]
