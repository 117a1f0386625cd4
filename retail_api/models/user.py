"""
User model with platform role and tenant memberships
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import UniqueConstraint
from datetime import datetime
from typing import Optional
import uuid

from retail_api.core.permissions import PlatformRole, TenantRole
from retail_api.models.base import UTCDateTime, enum_type, utcnow


class User(SQLModel, table=True):
    """Platform user; credentials live with the identity provider"""

    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(unique=True, index=True, max_length=255)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=50)

    role: PlatformRole = Field(default=PlatformRole.USER, sa_type=enum_type(PlatformRole))
    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    last_login_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)


class UserTenant(SQLModel, table=True):
    """Membership of a user in a tenant"""

    __tablename__ = "user_tenants"
    __table_args__ = (UniqueConstraint("user_id", "tenant_id", name="uq_user_tenant"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", index=True)
    role: TenantRole = Field(default=TenantRole.MEMBER, sa_type=enum_type(TenantRole))
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
