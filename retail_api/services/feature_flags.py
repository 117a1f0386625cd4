"""
Feature flag resolution

Precedence, highest first:
    runtime override for the tenant
    runtime override for the platform
    tenant persisted flag (an active admin grant, then the tenant flag row)
    platform persisted flag
    FEATURE_FLAG_DEFAULTS from the environment
    False
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional
import uuid

from sqlmodel import Session, select
import structlog

from retail_api.core.state import FlagOverrideStore
from retail_api.models import PlatformFeatureFlag, TenantFeatureFlag, TenantFeatureOverride
from retail_api.models.base import utcnow

logger = structlog.get_logger(__name__)


class FlagSource(str, Enum):
    """Where an effective flag value came from"""
    TENANT_RUNTIME_OVERRIDE = "tenant_runtime_override"
    PLATFORM_RUNTIME_OVERRIDE = "platform_runtime_override"
    TENANT_GRANT = "tenant_grant"
    TENANT_FLAG = "tenant_flag"
    PLATFORM_FLAG = "platform_flag"
    ENVIRONMENT_DEFAULT = "environment_default"
    DEFAULT = "default"


@dataclass
class FlagResolution:
    flag: str
    enabled: bool
    source: FlagSource
    tenant_id: Optional[uuid.UUID] = None


class FeatureFlagResolver:
    """Computes effective flag values for the platform or a tenant"""

    def __init__(self, session: Session, overrides: FlagOverrideStore, defaults: Optional[Dict[str, bool]] = None):
        self.session = session
        self.overrides = overrides
        self.defaults = defaults or {}

    def resolve(self, flag: str, tenant_id: Optional[uuid.UUID] = None) -> FlagResolution:
        if tenant_id is not None:
            value = self.overrides.get(flag, tenant_id)
            if value is not None:
                return FlagResolution(flag, value, FlagSource.TENANT_RUNTIME_OVERRIDE, tenant_id)

        value = self.overrides.get(flag)
        if value is not None:
            return FlagResolution(flag, value, FlagSource.PLATFORM_RUNTIME_OVERRIDE, tenant_id)

        if tenant_id is not None:
            grant = self.session.exec(
                select(TenantFeatureOverride).where(
                    TenantFeatureOverride.tenant_id == tenant_id,
                    TenantFeatureOverride.feature == flag,
                )
            ).first()
            if grant is not None and grant.is_active():
                return FlagResolution(flag, grant.granted, FlagSource.TENANT_GRANT, tenant_id)

            tenant_flag = self.session.exec(
                select(TenantFeatureFlag).where(
                    TenantFeatureFlag.tenant_id == tenant_id,
                    TenantFeatureFlag.flag == flag,
                )
            ).first()
            if tenant_flag is not None:
                return FlagResolution(flag, tenant_flag.enabled, FlagSource.TENANT_FLAG, tenant_id)

        platform_flag = self.session.exec(
            select(PlatformFeatureFlag).where(PlatformFeatureFlag.flag == flag)
        ).first()
        if platform_flag is not None:
            return FlagResolution(flag, platform_flag.enabled, FlagSource.PLATFORM_FLAG, tenant_id)

        if flag in self.defaults:
            return FlagResolution(flag, bool(self.defaults[flag]), FlagSource.ENVIRONMENT_DEFAULT, tenant_id)

        return FlagResolution(flag, False, FlagSource.DEFAULT, tenant_id)

    def is_enabled(self, flag: str, tenant_id: Optional[uuid.UUID] = None) -> bool:
        return self.resolve(flag, tenant_id).enabled


def set_platform_flag(session: Session, flag: str, enabled: bool, description: Optional[str] = None) -> PlatformFeatureFlag:
    row = session.exec(select(PlatformFeatureFlag).where(PlatformFeatureFlag.flag == flag)).first()
    if row is None:
        row = PlatformFeatureFlag(flag=flag, enabled=enabled, description=description)
    else:
        row.enabled = enabled
        if description is not None:
            row.description = description
        row.updated_at = utcnow()
    session.add(row)
    session.commit()
    session.refresh(row)
    logger.info(f"Platform flag {flag} set to {enabled}")
    return row


def set_tenant_flag(session: Session, tenant_id: uuid.UUID, flag: str, enabled: bool) -> TenantFeatureFlag:
    row = session.exec(
        select(TenantFeatureFlag).where(TenantFeatureFlag.tenant_id == tenant_id, TenantFeatureFlag.flag == flag)
    ).first()
    if row is None:
        row = TenantFeatureFlag(tenant_id=tenant_id, flag=flag, enabled=enabled)
    else:
        row.enabled = enabled
        row.updated_at = utcnow()
    session.add(row)
    session.commit()
    session.refresh(row)
    logger.info(f"Tenant flag {flag} set to {enabled}", tenant_id=str(tenant_id))
    return row
