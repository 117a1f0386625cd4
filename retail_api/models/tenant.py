"""
Tenant model - Multi-tenancy foundation
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from enum import Enum
from typing import Optional
import uuid

from retail_api.models.base import UTCDateTime, enum_type, utcnow


class SubscriptionStatus(str, Enum):
    """Billing state mirrored from Stripe subscriptions"""
    TRIAL = "trial"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    EXPIRED = "expired"


class LocationStatus(str, Enum):
    """Physical location lifecycle"""
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"
    CLOSED = "closed"
    ARCHIVED = "archived"


class Tenant(SQLModel, table=True):
    """Tenant (store / business) in the multi-tenant platform"""

    __tablename__ = "tenants"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, max_length=255)
    slug: str = Field(unique=True, index=True, max_length=100, description="URL-safe store identifier")
    subdomain: Optional[str] = Field(default=None, unique=True, index=True, max_length=30, description="Storefront subdomain")

    # Subscription
    subscription_tier: str = Field(default="starter", max_length=50, description="Tier key: starter, professional, enterprise")
    subscription_status: SubscriptionStatus = Field(default=SubscriptionStatus.TRIAL, sa_type=enum_type(SubscriptionStatus))
    location_status: LocationStatus = Field(default=LocationStatus.ACTIVE, sa_type=enum_type(LocationStatus))

    # Stripe linkage
    stripe_customer_id: Optional[str] = Field(default=None, index=True, max_length=255)
    stripe_subscription_id: Optional[str] = Field(default=None, index=True, max_length=255)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
