"""
Order, order item and status history models
All monetary amounts are integer cents
"""

from sqlmodel import Field, SQLModel, Relationship
from sqlalchemy import Column, JSON, UniqueConstraint
from datetime import datetime
from enum import Enum
from typing import Optional, List, TYPE_CHECKING
import uuid

from retail_api.models.base import UTCDateTime, enum_type, utcnow

if TYPE_CHECKING:
    from retail_api.models.payment import Payment


class OrderStatus(str, Enum):
    """Lifecycle status of an order"""
    DRAFT = "draft"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    """Payment state shared by orders and payments"""
    PENDING = "pending"
    AUTHORIZED = "authorized"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"


class FulfillmentStatus(str, Enum):
    """Shipping / pickup progress"""
    UNFULFILLED = "unfulfilled"
    PARTIALLY_FULFILLED = "partially_fulfilled"
    FULFILLED = "fulfilled"


class Order(SQLModel, table=True):
    """Customer order placed with a tenant"""

    __tablename__ = "orders"
    __table_args__ = (UniqueConstraint("tenant_id", "order_number", name="uq_order_tenant_number"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(
        foreign_key="tenants.id",
        index=True,
        description="Tenant ID for multi-tenant isolation"
    )
    order_number: str = Field(max_length=50, index=True, description="Human-facing number, ORD-YYYYMMDD-NNNN")

    # Customer
    customer_email: str = Field(max_length=255, index=True)
    customer_name: Optional[str] = Field(default=None, max_length=255)
    customer_phone: Optional[str] = Field(default=None, max_length=50)
    shipping_address: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))
    billing_address: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))

    # Financial amounts
    subtotal_cents: int = Field(default=0, description="Sum of line totals")
    tax_cents: int = Field(default=0)
    shipping_cents: int = Field(default=0)
    discount_cents: int = Field(default=0, description="Order-level discount")
    total_cents: int = Field(default=0, description="subtotal + tax + shipping - discount")
    currency: str = Field(default="usd", max_length=3)

    # Status
    order_status: OrderStatus = Field(default=OrderStatus.DRAFT, index=True, sa_type=enum_type(OrderStatus))
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING, index=True, sa_type=enum_type(PaymentStatus))
    fulfillment_status: FulfillmentStatus = Field(default=FulfillmentStatus.UNFULFILLED, sa_type=enum_type(FulfillmentStatus))

    source: str = Field(default="web", max_length=50)
    notes: Optional[str] = Field(default=None, max_length=2000)
    internal_notes: Optional[str] = Field(default=None, max_length=2000)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)
    updated_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    confirmed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    paid_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    fulfilled_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    cancelled_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    # Relationships
    items: List["OrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    status_history: List["OrderStatusHistory"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "OrderStatusHistory.created_at"}
    )
    payments: List["Payment"] = Relationship(back_populates="order")

    def record_status_change(
        self,
        to_status: str,
        changed_by: Optional[str] = None,
        reason: Optional[str] = None,
        from_status: Optional[str] = None,
    ) -> "OrderStatusHistory":
        """Append an audit row; transitions are not validated"""
        entry = OrderStatusHistory(
            order_id=self.id,
            from_status=from_status,
            to_status=to_status,
            changed_by=changed_by,
            reason=reason,
        )
        self.status_history.append(entry)
        return entry

    def stamp_status(self, new_status: OrderStatus) -> None:
        """Set the first-reached timestamp for milestone statuses"""
        now = utcnow()
        if new_status == OrderStatus.CONFIRMED and not self.confirmed_at:
            self.confirmed_at = now
        elif new_status == OrderStatus.PAID and not self.paid_at:
            self.paid_at = now
        elif new_status == OrderStatus.DELIVERED and not self.fulfilled_at:
            self.fulfilled_at = now
        elif new_status == OrderStatus.CANCELLED and not self.cancelled_at:
            self.cancelled_at = now


class OrderItem(SQLModel, table=True):
    """Line item of an order; prices are snapshotted at order time"""

    __tablename__ = "order_items"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    order_id: uuid.UUID = Field(foreign_key="orders.id", index=True)
    inventory_item_id: Optional[uuid.UUID] = Field(default=None, foreign_key="inventory_items.id", index=True)

    sku: Optional[str] = Field(default=None, max_length=100)
    name: str = Field(max_length=500)
    quantity: int = Field(default=1)
    unit_price_cents: int = Field(default=0)
    discount_cents: int = Field(default=0)
    tax_cents: int = Field(default=0)
    line_total_cents: int = Field(default=0, description="quantity * unit_price - discount")

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    order: Optional[Order] = Relationship(back_populates="items")


class OrderStatusHistory(SQLModel, table=True):
    """Append-only audit trail of order status changes"""

    __tablename__ = "order_status_history"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    order_id: uuid.UUID = Field(foreign_key="orders.id", index=True)
    from_status: Optional[str] = Field(default=None, max_length=32)
    to_status: str = Field(max_length=32)
    changed_by: Optional[str] = Field(default=None, max_length=255, description="User id, 'system' or 'stripe_webhook'")
    reason: Optional[str] = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    order: Optional[Order] = Relationship(back_populates="status_history")
