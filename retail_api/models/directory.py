"""
Directory read models

These map onto Postgres materialized views created by the alembic migrations
and refreshed by scripts/refresh_directory_views.py. The application only reads
them; the refresh log is the one regular table here.
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON
from datetime import datetime
from typing import List, Optional
import uuid

from retail_api.models.base import UTCDateTime, utcnow


class DirectoryListing(SQLModel, table=True):
    """Denormalized public storefront projection (materialized view)"""

    __tablename__ = "directory_listings_list"

    tenant_id: uuid.UUID = Field(primary_key=True)
    business_name: str = Field(index=True)
    slug: str = Field(unique=True, index=True)
    description: Optional[str] = None

    # Address
    address: Optional[str] = None
    city: Optional[str] = Field(default=None, index=True)
    state: Optional[str] = Field(default=None, index=True)
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Categories
    primary_category: Optional[str] = Field(default=None, index=True)
    secondary_categories: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    logo_url: Optional[str] = None
    rating_avg: Optional[float] = None
    rating_count: int = Field(default=0)
    product_count: int = Field(default=0)
    is_featured: bool = Field(default=False)
    is_published: bool = Field(default=True, index=True)
    subscription_tier: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)
    updated_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    @property
    def categories(self) -> List[str]:
        names = [self.primary_category] if self.primary_category else []
        return names + [c for c in (self.secondary_categories or []) if c and c not in names]


class DirectoryCategoryListing(SQLModel, table=True):
    """One row per (listing, category) pair (materialized view)"""

    __tablename__ = "directory_category_listings"

    tenant_id: uuid.UUID = Field(primary_key=True)
    category_slug: str = Field(primary_key=True)
    category_name: str = Field(index=True)
    category_id: Optional[uuid.UUID] = Field(default=None, index=True)
    is_primary: bool = Field(default=False)
    product_count: int = Field(default=0)


class DirectoryFeaturedProduct(SQLModel, table=True):
    """Featured in-stock product with its store's location (materialized view)"""

    __tablename__ = "directory_featured_products"

    id: uuid.UUID = Field(primary_key=True, description="Inventory item id")
    tenant_id: uuid.UUID = Field(index=True)
    store_name: str
    store_slug: str
    name: str
    sku: Optional[str] = None
    price_cents: int = Field(default=0)
    sale_price_cents: Optional[int] = None
    currency: str = Field(default="usd")
    image_url: Optional[str] = None
    stock: int = Field(default=0)
    featured_priority: int = Field(default=0)
    category_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    featured_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)


class DirectoryRefreshLog(SQLModel, table=True):
    """Materialized view refresh bookkeeping"""

    __tablename__ = "directory_mv_refresh_log"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    view_name: str = Field(index=True, max_length=100)
    started_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)
    finished_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    duration_ms: Optional[int] = None
    status: str = Field(default="running", max_length=20, description="running, success, failed, skipped")
    error: Optional[str] = Field(default=None, max_length=2000)
