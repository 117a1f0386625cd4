"""
Order totals and order lifecycle

Money is integer cents throughout:
    line_total = quantity * unit_price - line_discount
    subtotal   = sum(line_total)
    total      = subtotal + tax + shipping - order_discount
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence
import uuid

from fastapi import status
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select
import structlog

from retail_api.core.config import Settings
from retail_api.core.errors import ApiError, bad_request, not_found
from retail_api.models import (
    InventoryItem,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    FulfillmentStatus,
    Tenant,
)
from retail_api.models.base import utcnow
from retail_api.schemas.orders import OrderCreate, OrderItemCreate, OrderUpdate

logger = structlog.get_logger(__name__)


@dataclass
class LineTotals:
    line_total_cents: int
    tax_cents: int


@dataclass
class OrderTotals:
    subtotal_cents: int
    tax_cents: int
    shipping_cents: int
    discount_cents: int
    total_cents: int


def tax_for(amount_cents: int, tax_rate_bps: int) -> int:
    """Tax in cents, rounded half up; the rate is in basis points"""
    if tax_rate_bps <= 0 or amount_cents <= 0:
        return 0
    return (amount_cents * tax_rate_bps + 5000) // 10000


def calculate_line(quantity: int, unit_price_cents: int, discount_cents: int = 0, tax_rate_bps: int = 0) -> LineTotals:
    gross = quantity * unit_price_cents
    if discount_cents > gross:
        raise ValueError("line discount exceeds line amount")
    line_total = gross - discount_cents
    return LineTotals(line_total_cents=line_total, tax_cents=tax_for(line_total, tax_rate_bps))


def calculate_order_totals(
    lines: Iterable[LineTotals],
    shipping_cents: int = 0,
    discount_cents: int = 0,
) -> OrderTotals:
    lines = list(lines)
    subtotal = sum(line.line_total_cents for line in lines)
    tax = sum(line.tax_cents for line in lines)
    if discount_cents > subtotal + tax + shipping_cents:
        raise ValueError("order discount exceeds order amount")
    return OrderTotals(
        subtotal_cents=subtotal,
        tax_cents=tax,
        shipping_cents=shipping_cents,
        discount_cents=discount_cents,
        total_cents=subtotal + tax + shipping_cents - discount_cents,
    )


def generate_order_number(session: Session, tenant_id: uuid.UUID, now: Optional[datetime] = None) -> str:
    """ORD-YYYYMMDD-NNNN, sequential per tenant per day"""
    now = now or utcnow()
    prefix = f"ORD-{now:%Y%m%d}-"
    existing = session.exec(
        select(func.count()).select_from(Order).where(
            Order.tenant_id == tenant_id,
            Order.order_number.startswith(prefix),
        )
    ).one()
    return f"{prefix}{existing + 1:04d}"


class OrderService:
    """Creates and updates orders inside a single session"""

    def __init__(self, session: Session, settings: Settings):
        self.session = session
        self.settings = settings

    def _resolve_item(self, tenant_id: uuid.UUID, item: OrderItemCreate) -> Optional[InventoryItem]:
        if item.inventory_item_id:
            inventory = self.session.get(InventoryItem, item.inventory_item_id)
            if inventory is None or inventory.tenant_id != tenant_id:
                raise bad_request("item_not_found", f"Inventory item {item.inventory_item_id} not found")
            return inventory
        if item.sku:
            inventory = self.session.exec(
                select(InventoryItem).where(InventoryItem.tenant_id == tenant_id, InventoryItem.sku == item.sku)
            ).first()
            if inventory is None:
                raise bad_request("item_not_found", f"No inventory item with sku {item.sku}")
            return inventory
        return None

    def build_items(self, tenant_id: uuid.UUID, items: Sequence[OrderItemCreate]) -> List[OrderItem]:
        tax_rate = self.settings.DEFAULT_TAX_RATE_BPS
        order_items = []
        for item in items:
            inventory = self._resolve_item(tenant_id, item)
            unit_price = item.unit_price_cents
            if unit_price is None:
                if inventory is None:
                    raise bad_request("item_not_found", f"No price for item {item.sku or item.name}")
                unit_price = inventory.effective_price_cents
            name = item.name or (inventory.name if inventory else None)
            if not name:
                raise bad_request("item_name_required")

            try:
                line = calculate_line(item.quantity, unit_price, item.discount_cents, tax_rate)
            except ValueError as e:
                raise bad_request("invalid_line_discount", str(e))

            order_items.append(OrderItem(
                inventory_item_id=inventory.id if inventory else None,
                sku=item.sku or (inventory.sku if inventory else None),
                name=name,
                quantity=item.quantity,
                unit_price_cents=unit_price,
                discount_cents=item.discount_cents,
                tax_cents=line.tax_cents,
                line_total_cents=line.line_total_cents,
            ))
        return order_items

    def create_order(self, data: OrderCreate, actor: Optional[str] = None) -> Order:
        """Validate, price and persist an order with its items and first history row"""
        if data.tenant_id is None:
            raise bad_request("tenant_id_required")
        if data.customer is None or not data.customer.email:
            raise bad_request("customer_email_required")
        if not data.items:
            raise bad_request("items_required")

        tenant = self.session.get(Tenant, data.tenant_id)
        if tenant is None:
            raise not_found("tenant_not_found")

        items = self.build_items(tenant.id, data.items)
        try:
            totals = calculate_order_totals(
                [LineTotals(i.line_total_cents, i.tax_cents) for i in items],
                shipping_cents=data.shipping_cents,
                discount_cents=data.discount_cents,
            )
        except ValueError as e:
            raise bad_request("invalid_discount", str(e))

        try:
            order = Order(
                tenant_id=tenant.id,
                order_number=generate_order_number(self.session, tenant.id),
                customer_email=data.customer.email.lower(),
                customer_name=data.customer.name,
                customer_phone=data.customer.phone,
                shipping_address=data.shipping_address,
                billing_address=data.billing_address,
                subtotal_cents=totals.subtotal_cents,
                tax_cents=totals.tax_cents,
                shipping_cents=totals.shipping_cents,
                discount_cents=totals.discount_cents,
                total_cents=totals.total_cents,
                currency=(data.currency or self.settings.DEFAULT_CURRENCY).lower(),
                order_status=OrderStatus.DRAFT,
                payment_status=PaymentStatus.PENDING,
                fulfillment_status=FulfillmentStatus.UNFULFILLED,
                source=data.source,
                notes=data.notes,
            )
            order.items = items
            order.record_status_change(OrderStatus.DRAFT.value, changed_by=actor or "system", reason="Order created")
            self.session.add(order)
            self.session.commit()
            self.session.refresh(order)
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error creating order: {e}")
            raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "order_creation_failed")

        logger.info(f"Order created: {order.order_number}", order_id=str(order.id), total_cents=order.total_cents)
        return order

    def update_order(self, order: Order, data: OrderUpdate, actor: Optional[str] = None) -> Order:
        """Apply field updates; a status change appends a history row without validating the transition"""
        previous = _value(order.order_status)
        if data.order_status is not None and data.order_status.value != previous:
            order.order_status = data.order_status
            order.stamp_status(data.order_status)
            order.record_status_change(
                data.order_status.value,
                changed_by=actor,
                reason=data.reason or "Status updated",
                from_status=previous,
            )
        if data.fulfillment_status is not None:
            order.fulfillment_status = data.fulfillment_status
        if data.notes is not None:
            order.notes = data.notes
        if data.internal_notes is not None:
            order.internal_notes = data.internal_notes
        order.updated_at = utcnow()

        try:
            self.session.add(order)
            self.session.commit()
            self.session.refresh(order)
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error updating order {order.id}: {e}")
            raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "order_update_failed")

        logger.info(f"Order updated: {order.order_number}", status=_value(order.order_status))
        return order


def _value(status_value) -> Optional[str]:
    return getattr(status_value, "value", status_value)


def apply_payment_status(order: Order, payment_status: PaymentStatus, changed_by: str, reason: str) -> bool:
    """Set the order payment status and log it to history; False when unchanged"""
    current = _value(order.payment_status)
    if current == payment_status.value:
        return False
    order.payment_status = payment_status
    if payment_status == PaymentStatus.PAID and not order.paid_at:
        order.paid_at = utcnow()
    order.updated_at = utcnow()
    order_status = _value(order.order_status)
    order.record_status_change(
        order_status,
        changed_by=changed_by,
        reason=f"{reason} (payment {current} -> {payment_status.value})",
        from_status=order_status,
    )
    return True
