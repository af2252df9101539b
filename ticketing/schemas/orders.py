from datetime import datetime

from pydantic import BaseModel


class PricingSnapshotResponse(BaseModel):
    unit_price_cents: int
    quantity: int
    subtotal_cents: int
    tip_cents: int
    total_cents: int
    pricing_model: str
    custom_price_cents: int | None = None
    minimum_price_cents: int


class OrderResponse(BaseModel):
    id: int
    ticket_id: int
    event_id: int
    quantity: int
    status: str
    subtotal_cents: int
    tip_cents: int
    total_cents: int
    currency: str
    pricing_snapshot: PricingSnapshotResponse
    confirmed_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
