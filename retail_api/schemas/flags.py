"""
Feature flag schemas
"""

from datetime import datetime
from typing import List, Optional
import uuid

from pydantic import Field

from retail_api.schemas.common import CamelModel, RequestModel


class FlagUpdate(RequestModel):
    enabled: bool
    description: Optional[str] = Field(default=None, max_length=500)


class RuntimeOverrideUpdate(RequestModel):
    """value null clears the override"""
    flag: str = Field(..., min_length=1, max_length=100)
    tenant_id: Optional[uuid.UUID] = None
    value: Optional[bool] = None


class FeatureOverrideCreate(RequestModel):
    tenant_id: uuid.UUID
    feature: str = Field(..., min_length=1, max_length=100)
    granted: bool = True
    reason: Optional[str] = Field(default=None, max_length=1000)
    expires_at: Optional[datetime] = None


class FeatureOverrideUpdate(RequestModel):
    granted: Optional[bool] = None
    reason: Optional[str] = Field(default=None, max_length=1000)
    expires_at: Optional[datetime] = None


class FlagResolutionResponse(CamelModel):
    flag: str
    tenant_id: Optional[uuid.UUID] = None
    enabled: bool
    source: str


class PlatformFlagRead(CamelModel):
    flag: str
    enabled: bool
    description: Optional[str] = None
    effective: bool
    source: str
    updated_at: Optional[datetime] = None


class PlatformFlagListResponse(CamelModel):
    flags: List[PlatformFlagRead]


class TenantFlagRead(CamelModel):
    tenant_id: uuid.UUID
    flag: str
    enabled: bool
    updated_at: Optional[datetime] = None


class RuntimeOverrideRead(CamelModel):
    flag: str
    tenant_id: Optional[uuid.UUID] = None
    value: bool
    set_at: datetime


class RuntimeOverrideListResponse(CamelModel):
    overrides: List[RuntimeOverrideRead]


class FeatureOverrideRead(CamelModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    feature: str
    granted: bool
    reason: Optional[str] = None
    expires_at: Optional[datetime] = None
    granted_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    is_expired: bool
    is_active: bool


class FeatureOverrideListResponse(CamelModel):
    overrides: List[FeatureOverrideRead]
    total: int
