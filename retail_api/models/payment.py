"""
Payment model and Stripe webhook event ledger
"""

from sqlmodel import Field, SQLModel, Relationship
from sqlalchemy import Column, JSON
from datetime import datetime
from typing import Optional, TYPE_CHECKING
import uuid

from retail_api.models.base import UTCDateTime, enum_type, utcnow
from retail_api.models.order import PaymentStatus

if TYPE_CHECKING:
    from retail_api.models.order import Order


class Payment(SQLModel, table=True):
    """Payment attempt against an order through an external gateway"""

    __tablename__ = "payments"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(
        foreign_key="tenants.id",
        index=True,
        description="Tenant ID for multi-tenant isolation"
    )
    order_id: uuid.UUID = Field(foreign_key="orders.id", index=True)

    amount_cents: int = Field(description="Amount charged in cents")
    refunded_cents: int = Field(default=0)
    currency: str = Field(default="usd", max_length=3)

    gateway: str = Field(default="stripe", max_length=50)
    gateway_transaction_id: Optional[str] = Field(
        default=None,
        unique=True,
        index=True,
        max_length=255,
        description="Stripe PaymentIntent id"
    )
    status: PaymentStatus = Field(default=PaymentStatus.PENDING, index=True, sa_type=enum_type(PaymentStatus))
    failure_code: Optional[str] = Field(default=None, max_length=100)
    failure_message: Optional[str] = Field(default=None, max_length=1000)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    paid_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    refunded_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    order: Optional["Order"] = Relationship(back_populates="payments")

    @property
    def refundable_cents(self) -> int:
        return max(self.amount_cents - self.refunded_cents, 0)


class StripeWebhookEvent(SQLModel, table=True):
    """One row per processed Stripe event; the unique event_id is the idempotency guard"""

    __tablename__ = "stripe_webhook_events"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    event_id: str = Field(unique=True, index=True, max_length=255)
    event_type: str = Field(max_length=100, index=True)
    payload: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))
    processed_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
