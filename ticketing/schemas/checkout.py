from pydantic import BaseModel, ConfigDict


class CheckoutSessionRequest(BaseModel):
    ticket_id: int
    quantity: int = 1
    custom_price_cents: int | None = None
    tip_cents: int | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "ticket_id": 1,
                    "quantity": 2,
                    "custom_price_cents": None,
                    "tip_cents": 300,
                }
            ]
        }
    )


class CheckoutSessionResponse(BaseModel):
    success: bool = True
    checkout_url: str
    session_id: str
    order_id: int


class SyncResponse(BaseModel):
    order_id: int
    status: str
    confirmed: bool


class ErrorResponse(BaseModel):
    error: str
