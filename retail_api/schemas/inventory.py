"""
Inventory schemas
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
import uuid

from pydantic import Field

from retail_api.models import ItemStatus, ItemVisibility
from retail_api.schemas.common import CamelModel, Pagination, RequestModel


class StockOperation(str, Enum):
    SET = "set"
    ADD = "add"
    SUBTRACT = "subtract"


class InventoryItemCreate(RequestModel):
    tenant_id: uuid.UUID
    sku: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(default=None, max_length=5000)
    brand: Optional[str] = Field(default=None, max_length=255)
    price_cents: int = Field(default=0, ge=0)
    sale_price_cents: Optional[int] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    stock: int = Field(default=0, ge=0)
    reorder_level: int = Field(default=5, ge=0)
    item_status: ItemStatus = ItemStatus.ACTIVE
    visibility: ItemVisibility = ItemVisibility.PUBLIC
    directory_category_id: Optional[uuid.UUID] = None
    image_url: Optional[str] = Field(default=None, max_length=2000)
    is_featured: bool = False
    featured_priority: int = 0


class InventoryItemUpdate(RequestModel):
    sku: Optional[str] = Field(default=None, min_length=1, max_length=100)
    name: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[str] = Field(default=None, max_length=5000)
    brand: Optional[str] = Field(default=None, max_length=255)
    price_cents: Optional[int] = Field(default=None, ge=0)
    sale_price_cents: Optional[int] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    reorder_level: Optional[int] = Field(default=None, ge=0)
    item_status: Optional[ItemStatus] = None
    visibility: Optional[ItemVisibility] = None
    directory_category_id: Optional[uuid.UUID] = None
    is_featured: Optional[bool] = None
    featured_priority: Optional[int] = None


class StockAdjustment(RequestModel):
    operation: StockOperation
    quantity: int = Field(..., ge=0)


class ImageUrlRequest(RequestModel):
    url: str = Field(..., min_length=1, max_length=2000)


class InventoryItemRead(CamelModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    sku: str
    name: str
    description: Optional[str] = None
    brand: Optional[str] = None
    price_cents: int
    sale_price_cents: Optional[int] = None
    currency: str
    stock: int
    reorder_level: int
    item_status: ItemStatus
    visibility: ItemVisibility
    directory_category_id: Optional[uuid.UUID] = None
    image_url: Optional[str] = None
    is_featured: bool
    featured_priority: int
    is_low_stock: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class InventoryListResponse(CamelModel):
    items: List[InventoryItemRead]
    pagination: Pagination


class InventoryStats(CamelModel):
    total_items: int
    by_status: Dict[str, int]
    total_stock: int
    total_value_cents: int
    low_stock_count: int


class LowStockResponse(CamelModel):
    items: List[InventoryItemRead]
    total: int
