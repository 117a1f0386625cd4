"""
Directory response schemas (camelCase on the wire)
"""

from datetime import datetime
from typing import List, Optional
import uuid

from retail_api.schemas.common import CamelModel, Pagination


# ============================================================================
# Listings
# ============================================================================

class ListingResponse(CamelModel):
    tenant_id: uuid.UUID
    business_name: str
    slug: str
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    primary_category: Optional[str] = None
    secondary_categories: List[str] = []
    logo_url: Optional[str] = None
    rating_avg: float = 0.0
    rating_count: int = 0
    product_count: int = 0
    is_featured: bool = False
    subscription_tier: Optional[str] = None
    created_at: Optional[datetime] = None


class SearchResponse(CamelModel):
    listings: List[ListingResponse]
    pagination: Pagination


class ScoredListingResponse(ListingResponse):
    score: int = 0
    category_overlap: int = 0
    same_location: bool = False


class RelatedStoresResponse(CamelModel):
    source_slug: str
    method: str
    listings: List[ScoredListingResponse]


# ============================================================================
# Categories
# ============================================================================

class DirectoryCategory(CamelModel):
    id: Optional[uuid.UUID] = None
    name: str
    slug: str
    icon_emoji: Optional[str] = None
    google_category_id: Optional[str] = None
    store_count: int = 0
    primary_store_count: int = 0
    product_count: int = 0


class DirectoryCategoriesResponse(CamelModel):
    categories: List[DirectoryCategory]
    total: int


class CategoryDetailResponse(CamelModel):
    category: DirectoryCategory
    listings: List[ListingResponse]
    pagination: Pagination


class DirectoryStats(CamelModel):
    total_listings: int
    featured_listings: int
    total_products: int
    total_categories: int
    total_cities: int


class ViewHealth(CamelModel):
    view_name: str
    status: str
    last_refreshed_at: Optional[datetime] = None
    last_duration_ms: Optional[int] = None
    minutes_since_refresh: Optional[float] = None
    error: Optional[str] = None


class DirectoryHealthResponse(CamelModel):
    healthy: bool
    views: List[ViewHealth]


class RefreshResult(CamelModel):
    view_name: str
    status: str
    duration_ms: Optional[int] = None
    error: Optional[str] = None


# ============================================================================
# Featured products
# ============================================================================

class FeaturedProductResponse(CamelModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    store_name: str
    store_slug: str
    name: str
    sku: Optional[str] = None
    price_cents: int = 0
    sale_price_cents: Optional[int] = None
    currency: str = "usd"
    image_url: Optional[str] = None
    stock: int = 0
    category_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    distance_km: Optional[float] = None


class FeaturedProductsResponse(CamelModel):
    products: List[FeaturedProductResponse]
    page: int
    limit: int
    has_location: bool
