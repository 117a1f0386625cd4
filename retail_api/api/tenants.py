"""
Tenant API endpoints
Tenant CRUD for members plus storefront subdomain management
"""

import re
from typing import Optional, Tuple
import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog

from retail_api.core.database import get_session
from retail_api.core.dependencies import (
    CurrentUser,
    check_tenant_access,
    get_current_user,
    get_rate_limiter,
)
from retail_api.core.errors import ApiError, bad_request, conflict, not_found
from retail_api.core.permissions import Permission, TenantRole
from retail_api.core.state import ChangeRateLimiter
from retail_api.models import Tenant, UserTenant
from retail_api.models.base import utcnow
from retail_api.schemas.tenants import (
    SubdomainCheckResponse,
    SubdomainResolveResponse,
    SubdomainUpdate,
    TenantCreate,
    TenantListResponse,
    TenantMembershipRead,
    TenantRead,
    TenantUpdate,
)
from retail_api.services.directory import slugify

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/tenants", tags=["tenants"])

SUBDOMAIN_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{1,28}[a-z0-9]$|^[a-z0-9]$")
RESERVED_SUBDOMAINS = frozenset({"www", "api", "admin", "app", "mail", "directory"})


def validate_subdomain(value: str) -> Tuple[str, Optional[str]]:
    """Return (normalized subdomain, error code or None)"""
    subdomain = value.strip().lower()
    if not SUBDOMAIN_PATTERN.match(subdomain):
        return subdomain, "invalid_subdomain"
    if subdomain in RESERVED_SUBDOMAINS:
        return subdomain, "subdomain_reserved"
    return subdomain, None


def _get_tenant(session: Session, tenant_id: uuid.UUID) -> Tenant:
    tenant = session.get(Tenant, tenant_id)
    if tenant is None:
        raise not_found("tenant_not_found")
    return tenant


def _unique_slug(session: Session, base: str) -> str:
    slug = base
    suffix = 2
    while session.exec(select(Tenant.id).where(Tenant.slug == slug)).first() is not None:
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


# ============================================================================
# Public subdomain lookups (declared before /{tenant_id})
# ============================================================================

@router.get("/check-subdomain/{subdomain}", response_model=SubdomainCheckResponse)
def check_subdomain(subdomain: str, session: Session = Depends(get_session)):
    normalized, error = validate_subdomain(subdomain)
    if error:
        return SubdomainCheckResponse(subdomain=normalized, valid=False, available=False, reason=error)
    taken = session.exec(select(Tenant.id).where(Tenant.subdomain == normalized)).first() is not None
    return SubdomainCheckResponse(
        subdomain=normalized,
        valid=True,
        available=not taken,
        reason="subdomain_taken" if taken else None,
    )


@router.get("/resolve-subdomain/{subdomain}", response_model=SubdomainResolveResponse)
def resolve_subdomain(subdomain: str, session: Session = Depends(get_session)):
    tenant = session.exec(select(Tenant).where(Tenant.subdomain == subdomain.strip().lower())).first()
    if tenant is None:
        raise not_found("tenant_not_found")
    return SubdomainResolveResponse(tenant_id=tenant.id, name=tenant.name, slug=tenant.slug, subdomain=tenant.subdomain)


# ============================================================================
# Tenants
# ============================================================================

@router.post("", response_model=TenantRead, status_code=status.HTTP_201_CREATED)
def create_tenant(
    data: TenantCreate,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """Create a new tenant; the creator becomes its owner"""
    base = slugify(data.slug or data.name)
    if not base:
        raise bad_request("invalid_slug")
    if data.slug:
        if session.exec(select(Tenant.id).where(Tenant.slug == base)).first() is not None:
            raise conflict("slug_taken")
        slug = base
    else:
        slug = _unique_slug(session, base)

    tenant = Tenant(name=data.name, slug=slug, subscription_tier=data.subscription_tier)
    try:
        session.add(tenant)
        session.flush()
        session.add(UserTenant(user_id=user.id, tenant_id=tenant.id, role=TenantRole.OWNER))
        session.commit()
    except IntegrityError as e:
        session.rollback()
        logger.error(f"Failed to create tenant: {e}")
        raise conflict("slug_taken")
    session.refresh(tenant)
    logger.info(f"Tenant created: {tenant.id}", slug=tenant.slug, owner_id=str(user.id))
    return tenant


@router.get("", response_model=TenantListResponse)
def list_tenants(
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """All tenants for platform admins, otherwise the caller's memberships"""
    if user.is_platform_admin:
        tenants = session.exec(select(Tenant).order_by(Tenant.name)).all()
        rows = [TenantMembershipRead.model_validate(t) for t in tenants]
    else:
        memberships = session.exec(
            select(Tenant, UserTenant.role)
            .join(UserTenant, UserTenant.tenant_id == Tenant.id)
            .where(UserTenant.user_id == user.id)
            .order_by(Tenant.name)
        ).all()
        rows = []
        for tenant, role in memberships:
            row = TenantMembershipRead.model_validate(tenant)
            row.role = getattr(role, "value", role)
            rows.append(row)
    return TenantListResponse(tenants=rows, total=len(rows))


@router.get("/{tenant_id}", response_model=TenantRead)
def get_tenant(
    tenant_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    check_tenant_access(session, user, tenant_id, Permission.TENANT_VIEW)
    tenant = _get_tenant(session, tenant_id)
    return tenant


@router.patch("/{tenant_id}", response_model=TenantRead)
def update_tenant(
    tenant_id: uuid.UUID,
    data: TenantUpdate,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    check_tenant_access(session, user, tenant_id, Permission.TENANT_EDIT)
    tenant = _get_tenant(session, tenant_id)

    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(tenant, key, value)
    tenant.updated_at = utcnow()
    session.add(tenant)
    session.commit()
    session.refresh(tenant)
    logger.info(f"Tenant updated: {tenant_id}")
    return tenant


# ============================================================================
# Subdomain
# ============================================================================

@router.put("/{tenant_id}/subdomain", response_model=TenantRead)
def set_subdomain(
    tenant_id: uuid.UUID,
    data: SubdomainUpdate,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
    limiter: ChangeRateLimiter = Depends(get_rate_limiter),
):
    """Claim a storefront subdomain; changes are rate limited per tenant"""
    check_tenant_access(session, user, tenant_id, Permission.TENANT_SUBDOMAIN)
    tenant = _get_tenant(session, tenant_id)

    subdomain, error = validate_subdomain(data.subdomain)
    if error:
        raise bad_request(error)
    if tenant.subdomain == subdomain:
        return tenant

    owner = session.exec(select(Tenant.id).where(Tenant.subdomain == subdomain)).first()
    if owner is not None and owner != tenant.id:
        raise conflict("subdomain_taken")

    if not limiter.allowed(str(tenant_id)):
        logger.warning("Subdomain change rate limited", tenant_id=str(tenant_id))
        raise ApiError(status.HTTP_429_TOO_MANY_REQUESTS, "rate_limited", "Too many subdomain changes, try again later")

    previous = tenant.subdomain
    tenant.subdomain = subdomain
    tenant.updated_at = utcnow()
    try:
        session.add(tenant)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise conflict("subdomain_taken")
    limiter.record(str(tenant_id))
    session.refresh(tenant)
    logger.info(f"Subdomain set for tenant {tenant_id}", subdomain=subdomain, previous=previous)
    return tenant


@router.delete("/{tenant_id}/subdomain", status_code=status.HTTP_204_NO_CONTENT)
def delete_subdomain(
    tenant_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    check_tenant_access(session, user, tenant_id, Permission.TENANT_SUBDOMAIN)
    tenant = _get_tenant(session, tenant_id)

    previous = tenant.subdomain
    tenant.subdomain = None
    tenant.updated_at = utcnow()
    session.add(tenant)
    session.commit()
    logger.info(f"Subdomain removed for tenant {tenant_id}", previous=previous)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
