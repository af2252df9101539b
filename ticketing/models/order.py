from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from ticketing.models.database import Base

ORDER_PENDING = "pending"
ORDER_CONFIRMED = "confirmed"
INVENTORY_HOLDING_STATUSES = (ORDER_PENDING, ORDER_CONFIRMED)


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("status IN ('pending', 'confirmed')", name="ck_orders_status"),
        CheckConstraint("quantity > 0", name="ck_orders_quantity_positive"),
        CheckConstraint("total_cents = subtotal_cents + tip_cents", name="ck_orders_total"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=ORDER_PENDING)  # pending | confirmed
    pricing_snapshot = Column(JSON, nullable=False)
    subtotal_cents = Column(Integer, nullable=False)
    tip_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    payment_reference = Column(String(255), nullable=True, index=True)  # Stripe payment intent id
    stripe_session_id = Column(String(255), nullable=True, unique=True, index=True)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    confirmation_event_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_confirmed(self) -> bool:
        return self.status == ORDER_CONFIRMED
