"""
Inventory item model
Catalog products owned by a tenant; SKU is unique per tenant
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import UniqueConstraint
from datetime import datetime
from enum import Enum
from typing import Optional
import uuid

from retail_api.models.base import UTCDateTime, enum_type, utcnow


class ItemStatus(str, Enum):
    """Catalog lifecycle of an item"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    DRAFT = "draft"
    ARCHIVED = "archived"


class ItemVisibility(str, Enum):
    """Whether the item is shown on the public storefront"""
    PUBLIC = "public"
    PRIVATE = "private"


class InventoryItem(SQLModel, table=True):
    """Product belonging to a tenant"""

    __tablename__ = "inventory_items"
    __table_args__ = (UniqueConstraint("tenant_id", "sku", name="uq_inventory_tenant_sku"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(
        foreign_key="tenants.id",
        index=True,
        description="Tenant ID for multi-tenant isolation"
    )

    sku: str = Field(max_length=100, index=True)
    name: str = Field(max_length=500)
    description: Optional[str] = Field(default=None, max_length=5000)
    brand: Optional[str] = Field(default=None, max_length=255)

    # Pricing in integer cents
    price_cents: int = Field(default=0, ge=0)
    sale_price_cents: Optional[int] = Field(default=None, ge=0)
    currency: str = Field(default="usd", max_length=3)

    # Stock
    stock: int = Field(default=0, ge=0)
    reorder_level: int = Field(default=5, ge=0, description="Low-stock alert threshold")

    item_status: ItemStatus = Field(default=ItemStatus.ACTIVE, sa_type=enum_type(ItemStatus))
    visibility: ItemVisibility = Field(default=ItemVisibility.PUBLIC, sa_type=enum_type(ItemVisibility))

    directory_category_id: Optional[uuid.UUID] = Field(default=None, foreign_key="platform_categories.id", index=True)
    image_url: Optional[str] = Field(default=None, max_length=2000)

    # Featuring
    is_featured: bool = Field(default=False, index=True)
    featured_priority: int = Field(default=0)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    @property
    def effective_price_cents(self) -> int:
        if self.sale_price_cents is not None and self.sale_price_cents < self.price_cents:
            return self.sale_price_cents
        return self.price_cents

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.reorder_level
