"""
Taxonomy and platform category schemas
"""

from datetime import datetime
from typing import List, Optional
import uuid

from pydantic import Field

from retail_api.schemas.common import CamelModel, RequestModel


class TaxonomyNode(CamelModel):
    id: int
    name: str
    path: str
    level: int
    parent_path: Optional[str] = None


class TaxonomySearchResponse(CamelModel):
    query: str
    results: List[TaxonomyNode]
    total: int


class TaxonomyChild(CamelModel):
    id: int
    name: str
    path: str
    level: int
    has_children: bool


class TaxonomyBrowseResponse(CamelModel):
    path: Optional[str] = None
    children: List[TaxonomyChild]


class PlatformCategoryCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    google_category_id: Optional[str] = Field(default=None, max_length=255)
    icon_emoji: Optional[str] = Field(default=None, max_length=16)
    sort_order: int = 0
    is_active: bool = True


class PlatformCategoryUpdate(RequestModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    google_category_id: Optional[str] = Field(default=None, max_length=255)
    icon_emoji: Optional[str] = Field(default=None, max_length=16)
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class PlatformCategoryRead(CamelModel):
    id: uuid.UUID
    name: str
    slug: str
    description: Optional[str] = None
    google_category_id: Optional[str] = None
    icon_emoji: Optional[str] = None
    sort_order: int
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class PlatformCategoryListResponse(CamelModel):
    categories: List[PlatformCategoryRead]
    total: int


class CategoryActivityResponse(CamelModel):
    slug: str
    store_count: int
    activity_score: int
    newest_listing_at: Optional[datetime] = None
