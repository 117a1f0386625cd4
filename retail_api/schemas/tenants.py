"""
Tenant schemas
"""

from datetime import datetime
from typing import List, Optional
import uuid

from pydantic import Field

from retail_api.models import LocationStatus, SubscriptionStatus
from retail_api.schemas.common import CamelModel, RequestModel


class TenantCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=100, description="Derived from name when omitted")
    subscription_tier: str = Field(default="starter", max_length=50)


class TenantUpdate(RequestModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    location_status: Optional[LocationStatus] = None
    subscription_tier: Optional[str] = Field(default=None, max_length=50)


class SubdomainUpdate(RequestModel):
    subdomain: str = Field(..., min_length=1, max_length=63)


class TenantRead(CamelModel):
    id: uuid.UUID
    name: str
    slug: str
    subdomain: Optional[str] = None
    subscription_tier: str
    subscription_status: SubscriptionStatus
    location_status: LocationStatus
    created_at: datetime
    updated_at: Optional[datetime] = None


class TenantMembershipRead(TenantRead):
    role: Optional[str] = None


class TenantListResponse(CamelModel):
    tenants: List[TenantMembershipRead]
    total: int


class SubdomainCheckResponse(CamelModel):
    subdomain: str
    valid: bool
    available: bool
    reason: Optional[str] = None


class SubdomainResolveResponse(CamelModel):
    tenant_id: uuid.UUID
    name: str
    slug: str
    subdomain: str
