"""
Platform categories and the Google product taxonomy
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from typing import Optional
import uuid

from retail_api.models.base import UTCDateTime, utcnow


class PlatformCategory(SQLModel, table=True):
    """Store category curated by the platform, mirrored from GBP categories"""

    __tablename__ = "platform_categories"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, max_length=255)
    slug: str = Field(unique=True, index=True, max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    google_category_id: Optional[str] = Field(default=None, max_length=255, description="GBP category id, e.g. gcid:grocery_store")
    icon_emoji: Optional[str] = Field(default=None, max_length=16)
    sort_order: int = Field(default=0)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)


class TaxonomyCategory(SQLModel, table=True):
    """Google product taxonomy node; path is the full "A > B > C" string"""

    __tablename__ = "taxonomy_categories"

    id: int = Field(primary_key=True, description="Google taxonomy id")
    name: str = Field(index=True, max_length=255)
    path: str = Field(unique=True, index=True, max_length=1000)
    parent_path: Optional[str] = Field(default=None, index=True, max_length=1000)
    level: int = Field(default=1, index=True)
