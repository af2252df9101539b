"""Price snapshot computation for ticket orders.

The snapshot is computed once when the order is created and stored verbatim
on the order. Receipts and reconciliation read the stored snapshot and never
recompute it from the live ticket price.
"""

from dataclasses import asdict, dataclass

from ticketing.errors import PricingViolation, ValidationError
from ticketing.models.ticket import PRICING_FIXED, PRICING_FLEXIBLE, Ticket


@dataclass(frozen=True)
class PricingSnapshot:
    unit_price_cents: int
    quantity: int
    subtotal_cents: int
    tip_cents: int
    total_cents: int
    pricing_model: str
    custom_price_cents: int | None
    minimum_price_cents: int
    base_price_cents: int
    ticket_tippable: bool

    def as_dict(self) -> dict:
        return asdict(self)


def _require_int(value, field_name: str) -> int:
    # bool is an int subclass; "true" is never a valid amount.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer")
    return value


def _unit_price(ticket: Ticket, custom_price_cents: int | None) -> int:
    pricing_model = ticket.pricing_model or PRICING_FIXED

    if pricing_model == PRICING_FIXED:
        if custom_price_cents is not None:
            raise ValidationError("Custom price is not allowed for fixed price tickets")
        return ticket.base_price_cents

    if pricing_model == PRICING_FLEXIBLE:
        if custom_price_cents is None:
            raise ValidationError("Custom price is required for flexible pricing")
        custom_price_cents = _require_int(custom_price_cents, "custom_price_cents")
        if custom_price_cents < (ticket.minimum_price_cents or 0):
            raise PricingViolation("Price is below minimum required amount")
        return custom_price_cents

    raise ValidationError(f"Unsupported pricing model: {pricing_model}")


def _tip(ticket: Ticket, tip_cents: int | None) -> int:
    if tip_cents is None or tip_cents == 0:
        return 0
    tip_cents = _require_int(tip_cents, "tip_cents")
    if tip_cents < 0:
        raise ValidationError("Tip cannot be negative")
    if not ticket.tippable:
        raise ValidationError("Tips are not accepted for this ticket")
    return tip_cents


def calculate_pricing(
    ticket: Ticket,
    quantity: int,
    custom_price_cents: int | None = None,
    tip_cents: int | None = None,
) -> PricingSnapshot:
    """Compute the immutable price snapshot for ``quantity`` units of ``ticket``.

    Raises ValidationError for malformed input (non-positive quantity, custom
    price on a fixed ticket, tip on a non-tippable ticket) and
    PricingViolation when a flexible price is below the ticket minimum.
    The tip is charged once per order, not per ticket.
    """
    quantity = _require_int(quantity, "quantity")
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than 0")

    unit_price_cents = _unit_price(ticket, custom_price_cents)
    tip = _tip(ticket, tip_cents)
    subtotal_cents = unit_price_cents * quantity

    return PricingSnapshot(
        unit_price_cents=unit_price_cents,
        quantity=quantity,
        subtotal_cents=subtotal_cents,
        tip_cents=tip,
        total_cents=subtotal_cents + tip,
        pricing_model=ticket.pricing_model or PRICING_FIXED,
        custom_price_cents=custom_price_cents,
        minimum_price_cents=ticket.minimum_price_cents or 0,
        base_price_cents=ticket.base_price_cents,
        ticket_tippable=bool(ticket.tippable),
    )
