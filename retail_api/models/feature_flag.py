"""
Feature flag models
Persisted platform and tenant flags plus admin-granted tenant overrides
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import UniqueConstraint
from datetime import datetime
from typing import Optional
import uuid

from retail_api.models.base import UTCDateTime, as_utc, utcnow


class PlatformFeatureFlag(SQLModel, table=True):
    """Platform-scoped persisted flag"""

    __tablename__ = "platform_feature_flags"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    flag: str = Field(unique=True, index=True, max_length=100)
    enabled: bool = Field(default=False)
    description: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)


class TenantFeatureFlag(SQLModel, table=True):
    """Tenant-scoped persisted flag"""

    __tablename__ = "tenant_feature_flags"
    __table_args__ = (UniqueConstraint("tenant_id", "flag", name="uq_tenant_feature_flag"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", index=True)
    flag: str = Field(index=True, max_length=100)
    enabled: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)


class TenantFeatureOverride(SQLModel, table=True):
    """Admin grant or revocation of a feature for one tenant, optionally expiring"""

    __tablename__ = "tenant_feature_overrides"
    __table_args__ = (UniqueConstraint("tenant_id", "feature", name="uq_tenant_feature_override"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", index=True)
    feature: str = Field(index=True, max_length=100)
    granted: bool = Field(default=True)
    reason: Optional[str] = Field(default=None, max_length=1000)
    expires_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    granted_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = as_utc(now) or utcnow()
        return self.expires_at is not None and as_utc(self.expires_at) <= now

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return not self.is_expired(now)
