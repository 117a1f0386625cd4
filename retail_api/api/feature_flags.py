"""
Feature flag API endpoints
Effective flag lookup plus admin management of persisted flags, runtime
overrides and per-tenant feature grants
"""

from typing import Optional
import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog

from retail_api.core.config import Settings
from retail_api.core.database import get_session
from retail_api.core.dependencies import (
    CurrentUser,
    check_tenant_access,
    get_app_settings,
    get_current_user,
    get_override_store,
    require_platform_admin,
)
from retail_api.core.errors import conflict, not_found
from retail_api.core.state import FlagOverrideStore
from retail_api.models import PlatformFeatureFlag, Tenant, TenantFeatureFlag, TenantFeatureOverride
from retail_api.models.base import utcnow
from retail_api.schemas.flags import (
    FeatureOverrideCreate,
    FeatureOverrideListResponse,
    FeatureOverrideRead,
    FeatureOverrideUpdate,
    FlagResolutionResponse,
    FlagUpdate,
    PlatformFlagListResponse,
    PlatformFlagRead,
    RuntimeOverrideListResponse,
    RuntimeOverrideRead,
    RuntimeOverrideUpdate,
    TenantFlagRead,
)
from retail_api.services.feature_flags import FeatureFlagResolver, set_platform_flag, set_tenant_flag

logger = structlog.get_logger(__name__)
router = APIRouter(tags=["feature-flags"])


def _override_read(row: TenantFeatureOverride) -> FeatureOverrideRead:
    now = utcnow()
    return FeatureOverrideRead(
        id=row.id,
        tenant_id=row.tenant_id,
        feature=row.feature,
        granted=row.granted,
        reason=row.reason,
        expires_at=row.expires_at,
        granted_by=row.granted_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
        is_expired=row.is_expired(now),
        is_active=row.is_active(now),
    )


def _require_tenant(session: Session, tenant_id: uuid.UUID) -> Tenant:
    tenant = session.get(Tenant, tenant_id)
    if tenant is None:
        raise not_found("tenant_not_found")
    return tenant


# ============================================================================
# Effective value
# ============================================================================

@router.get("/feature-flags/{flag}", response_model=FlagResolutionResponse)
def get_feature_flag(
    flag: str,
    tenant_id: Optional[uuid.UUID] = None,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    overrides: FlagOverrideStore = Depends(get_override_store),
    settings: Settings = Depends(get_app_settings),
):
    """Effective value of a flag for the platform or one tenant, with its source"""
    if tenant_id is not None:
        check_tenant_access(session, user, tenant_id)
    resolution = FeatureFlagResolver(session, overrides, settings.FEATURE_FLAG_DEFAULTS).resolve(flag, tenant_id)
    return FlagResolutionResponse(
        flag=resolution.flag,
        tenant_id=resolution.tenant_id,
        enabled=resolution.enabled,
        source=resolution.source.value,
    )


# ============================================================================
# Runtime overrides (declared before /admin/feature-flags/{flag})
# ============================================================================

@router.get("/admin/feature-flags/overrides", response_model=RuntimeOverrideListResponse)
def list_runtime_overrides(
    admin: CurrentUser = Depends(require_platform_admin),
    overrides: FlagOverrideStore = Depends(get_override_store),
):
    return RuntimeOverrideListResponse(
        overrides=[RuntimeOverrideRead(**entry) for entry in overrides.items()]
    )


@router.put("/admin/feature-flags/overrides", response_model=RuntimeOverrideListResponse)
def set_runtime_override(
    data: RuntimeOverrideUpdate,
    admin: CurrentUser = Depends(require_platform_admin),
    overrides: FlagOverrideStore = Depends(get_override_store),
):
    """Set or clear (value null) a runtime override; not persisted"""
    overrides.set(data.flag, data.value, data.tenant_id)
    logger.info(
        f"Runtime override for {data.flag} set to {data.value}",
        tenant_id=str(data.tenant_id) if data.tenant_id else None,
        user_id=str(admin.id),
    )
    return RuntimeOverrideListResponse(
        overrides=[RuntimeOverrideRead(**entry) for entry in overrides.items()]
    )


# ============================================================================
# Persisted flags
# ============================================================================

@router.get("/admin/feature-flags", response_model=PlatformFlagListResponse)
def list_platform_flags(
    session: Session = Depends(get_session),
    admin: CurrentUser = Depends(require_platform_admin),
    overrides: FlagOverrideStore = Depends(get_override_store),
    settings: Settings = Depends(get_app_settings),
):
    """Persisted platform flags and environment defaults with their effective values"""
    rows = {row.flag: row for row in session.exec(select(PlatformFeatureFlag)).all()}
    names = set(rows) | set(settings.FEATURE_FLAG_DEFAULTS)
    names |= {entry["flag"] for entry in overrides.items() if entry["tenant_id"] is None}

    resolver = FeatureFlagResolver(session, overrides, settings.FEATURE_FLAG_DEFAULTS)
    flags = []
    for name in sorted(names):
        row = rows.get(name)
        resolution = resolver.resolve(name)
        flags.append(PlatformFlagRead(
            flag=name,
            enabled=row.enabled if row else bool(settings.FEATURE_FLAG_DEFAULTS.get(name, False)),
            description=row.description if row else None,
            effective=resolution.enabled,
            source=resolution.source.value,
            updated_at=(row.updated_at or row.created_at) if row else None,
        ))
    return PlatformFlagListResponse(flags=flags)


@router.put("/admin/feature-flags/{flag}", response_model=PlatformFlagRead)
def update_platform_flag(
    flag: str,
    data: FlagUpdate,
    session: Session = Depends(get_session),
    admin: CurrentUser = Depends(require_platform_admin),
    overrides: FlagOverrideStore = Depends(get_override_store),
    settings: Settings = Depends(get_app_settings),
):
    row = set_platform_flag(session, flag, data.enabled, data.description)
    resolution = FeatureFlagResolver(session, overrides, settings.FEATURE_FLAG_DEFAULTS).resolve(flag)
    return PlatformFlagRead(
        flag=row.flag,
        enabled=row.enabled,
        description=row.description,
        effective=resolution.enabled,
        source=resolution.source.value,
        updated_at=row.updated_at or row.created_at,
    )


@router.put("/admin/tenants/{tenant_id}/feature-flags/{flag}", response_model=TenantFlagRead)
def update_tenant_flag(
    tenant_id: uuid.UUID,
    flag: str,
    data: FlagUpdate,
    session: Session = Depends(get_session),
    admin: CurrentUser = Depends(require_platform_admin),
):
    _require_tenant(session, tenant_id)
    row = set_tenant_flag(session, tenant_id, flag, data.enabled)
    return TenantFlagRead(
        tenant_id=row.tenant_id,
        flag=row.flag,
        enabled=row.enabled,
        updated_at=row.updated_at or row.created_at,
    )


@router.delete("/admin/tenants/{tenant_id}/feature-flags/{flag}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tenant_flag(
    tenant_id: uuid.UUID,
    flag: str,
    session: Session = Depends(get_session),
    admin: CurrentUser = Depends(require_platform_admin),
):
    _require_tenant(session, tenant_id)
    row = session.exec(
        select(TenantFeatureFlag).where(TenantFeatureFlag.tenant_id == tenant_id, TenantFeatureFlag.flag == flag)
    ).first()
    if row is None:
        raise not_found("flag_not_found")
    session.delete(row)
    session.commit()
    logger.info(f"Tenant flag {flag} removed", tenant_id=str(tenant_id), user_id=str(admin.id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Tenant feature grants
# ============================================================================

@router.get("/admin/feature-overrides", response_model=FeatureOverrideListResponse)
def list_feature_overrides(
    tenant_id: Optional[uuid.UUID] = None,
    feature: Optional[str] = None,
    session: Session = Depends(get_session),
    admin: CurrentUser = Depends(require_platform_admin),
):
    statement = select(TenantFeatureOverride)
    if tenant_id:
        statement = statement.where(TenantFeatureOverride.tenant_id == tenant_id)
    if feature:
        statement = statement.where(TenantFeatureOverride.feature == feature)
    rows = session.exec(statement.order_by(TenantFeatureOverride.created_at.desc())).all()
    return FeatureOverrideListResponse(overrides=[_override_read(r) for r in rows], total=len(rows))


@router.post(
    "/admin/feature-overrides",
    response_model=FeatureOverrideRead,
    status_code=status.HTTP_201_CREATED,
)
def create_feature_override(
    data: FeatureOverrideCreate,
    session: Session = Depends(get_session),
    admin: CurrentUser = Depends(require_platform_admin),
):
    """Grant or revoke a feature for a tenant, optionally until expires_at"""
    _require_tenant(session, data.tenant_id)
    row = TenantFeatureOverride(**data.model_dump(), granted_by=admin.id)
    try:
        session.add(row)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise conflict("override_exists")
    session.refresh(row)
    logger.info(
        f"Feature override created: {row.feature}",
        tenant_id=str(row.tenant_id),
        granted=row.granted,
        user_id=str(admin.id),
    )
    return _override_read(row)


@router.patch("/admin/feature-overrides/{override_id}", response_model=FeatureOverrideRead)
def update_feature_override(
    override_id: uuid.UUID,
    data: FeatureOverrideUpdate,
    session: Session = Depends(get_session),
    admin: CurrentUser = Depends(require_platform_admin),
):
    row = session.get(TenantFeatureOverride, override_id)
    if row is None:
        raise not_found("override_not_found")
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(row, key, value)
    row.updated_at = utcnow()
    session.add(row)
    session.commit()
    session.refresh(row)
    logger.info(f"Feature override updated: {row.feature}", tenant_id=str(row.tenant_id))
    return _override_read(row)


@router.delete("/admin/feature-overrides/{override_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_feature_override(
    override_id: uuid.UUID,
    session: Session = Depends(get_session),
    admin: CurrentUser = Depends(require_platform_admin),
):
    row = session.get(TenantFeatureOverride, override_id)
    if row is None:
        raise not_found("override_not_found")
    feature, tenant_id = row.feature, row.tenant_id
    session.delete(row)
    session.commit()
    logger.info(f"Feature override removed: {feature}", tenant_id=str(tenant_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
