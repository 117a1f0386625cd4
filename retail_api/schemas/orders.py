"""
Order and payment schemas
"""

from datetime import datetime
from typing import List, Optional
import uuid

from pydantic import Field

from retail_api.models import FulfillmentStatus, OrderStatus, PaymentStatus
from retail_api.schemas.common import CamelModel, Pagination, RequestModel


# ============================================================================
# Requests
# ============================================================================

class CustomerIn(RequestModel):
    email: Optional[str] = Field(default=None, max_length=255)
    name: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)


class OrderItemCreate(RequestModel):
    inventory_item_id: Optional[uuid.UUID] = None
    sku: Optional[str] = None
    name: Optional[str] = Field(default=None, max_length=500)
    quantity: int = Field(default=1, ge=1)
    unit_price_cents: Optional[int] = Field(default=None, ge=0)
    discount_cents: int = Field(default=0, ge=0)


class OrderCreate(RequestModel):
    """Presence of tenant, email and items is checked in the handler for specific error codes"""
    tenant_id: Optional[uuid.UUID] = None
    customer: Optional[CustomerIn] = None
    items: Optional[List[OrderItemCreate]] = None
    shipping_address: Optional[dict] = None
    billing_address: Optional[dict] = None
    shipping_cents: int = Field(default=0, ge=0)
    discount_cents: int = Field(default=0, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    notes: Optional[str] = Field(default=None, max_length=2000)
    source: str = Field(default="web", max_length=50)


class OrderUpdate(RequestModel):
    order_status: Optional[OrderStatus] = None
    fulfillment_status: Optional[FulfillmentStatus] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    internal_notes: Optional[str] = Field(default=None, max_length=2000)
    reason: Optional[str] = Field(default=None, max_length=1000)


class ChargeRequest(RequestModel):
    payment_method_id: str = Field(..., min_length=1, description="Stripe PaymentMethod id, e.g. pm_card_visa")
    amount_cents: Optional[int] = Field(default=None, gt=0, description="Defaults to the order balance")


class RefundRequest(RequestModel):
    amount_cents: Optional[int] = Field(default=None, gt=0, description="Defaults to the refundable balance")
    reason: Optional[str] = Field(default=None, max_length=500)


# ============================================================================
# Responses
# ============================================================================

class OrderItemRead(CamelModel):
    id: uuid.UUID
    inventory_item_id: Optional[uuid.UUID] = None
    sku: Optional[str] = None
    name: str
    quantity: int
    unit_price_cents: int
    discount_cents: int
    tax_cents: int
    line_total_cents: int


class StatusHistoryRead(CamelModel):
    id: uuid.UUID
    from_status: Optional[str] = None
    to_status: str
    changed_by: Optional[str] = None
    reason: Optional[str] = None
    created_at: datetime


class PaymentRead(CamelModel):
    id: uuid.UUID
    order_id: uuid.UUID
    tenant_id: uuid.UUID
    amount_cents: int
    refunded_cents: int
    currency: str
    gateway: str
    gateway_transaction_id: Optional[str] = None
    status: PaymentStatus
    failure_code: Optional[str] = None
    failure_message: Optional[str] = None
    created_at: datetime
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None


class OrderRead(CamelModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    order_number: str
    customer_email: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    shipping_address: Optional[dict] = None
    billing_address: Optional[dict] = None
    subtotal_cents: int
    tax_cents: int
    shipping_cents: int
    discount_cents: int
    total_cents: int
    currency: str
    order_status: OrderStatus
    payment_status: PaymentStatus
    fulfillment_status: FulfillmentStatus
    source: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    fulfilled_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class OrderDetail(OrderRead):
    internal_notes: Optional[str] = None
    items: List[OrderItemRead] = []
    payments: List[PaymentRead] = []
    status_history: List[StatusHistoryRead] = []


class OrderListResponse(CamelModel):
    orders: List[OrderRead]
    pagination: Pagination
