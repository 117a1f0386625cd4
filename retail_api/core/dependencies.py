"""
Authentication and service dependencies for FastAPI

Services are constructed once in create_app() and stored on app.state;
these helpers hand them to route handlers.
"""

from dataclasses import dataclass, field
from typing import List, Optional
import uuid

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session, select
import structlog

from retail_api.core.auth import decode_access_token
from retail_api.core.config import Settings
from retail_api.core.errors import ApiError
from retail_api.core.permissions import Permission, PlatformRole, TenantRole, require_permission
from retail_api.core.state import ChangeRateLimiter, FlagOverrideStore
from retail_api.models.user import UserTenant

logger = structlog.get_logger(__name__)
security = HTTPBearer()


@dataclass
class CurrentUser:
    """Claims of the authenticated caller"""
    id: uuid.UUID
    email: str
    role: str = PlatformRole.USER.value
    tenant_ids: List[uuid.UUID] = field(default_factory=list)

    @property
    def is_platform_admin(self) -> bool:
        return self.role == PlatformRole.PLATFORM_ADMIN.value


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_override_store(request: Request) -> FlagOverrideStore:
    return request.app.state.flag_overrides


def get_rate_limiter(request: Request) -> ChangeRateLimiter:
    return request.app.state.subdomain_rate_limiter


def get_featured_sampler(request: Request):
    return request.app.state.featured_sampler


def get_stripe_gateway(request: Request):
    return request.app.state.stripe_gateway


def get_webhook_processor(request: Request):
    return request.app.state.webhook_processor


def get_image_fetcher(request: Request):
    return request.app.state.image_fetcher


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """Get current user from JWT token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_access_token(credentials.credentials, request.app.state.settings)
    if payload is None or not payload.get("sub"):
        raise credentials_exception

    try:
        user = CurrentUser(
            id=uuid.UUID(payload["sub"]),
            email=payload.get("email", ""),
            role=payload.get("role") or PlatformRole.USER.value,
            tenant_ids=[uuid.UUID(t) for t in payload.get("tenant_ids", [])],
        )
    except (ValueError, TypeError):
        raise credentials_exception

    logger.debug(f"User authenticated: {user.id}")
    return user


def require_platform_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Only platform administrators pass"""
    if not user.is_platform_admin:
        raise ApiError(status.HTTP_403_FORBIDDEN, "admin_required")
    return user


def get_tenant_role(session: Session, user: CurrentUser, tenant_id: uuid.UUID) -> Optional[str]:
    """Membership role of the user in the tenant, None when not a member"""
    membership = session.exec(
        select(UserTenant).where(
            UserTenant.user_id == user.id,
            UserTenant.tenant_id == tenant_id,
        )
    ).first()
    if membership:
        return membership.role.value if isinstance(membership.role, TenantRole) else str(membership.role)
    if tenant_id in user.tenant_ids:
        # Token-granted access without a stored membership row
        return TenantRole.MEMBER.value
    return None


def check_tenant_access(
    session: Session,
    user: CurrentUser,
    tenant_id: uuid.UUID,
    permission: Optional[Permission] = None,
) -> None:
    """Raise 403 unless the user may act on the tenant"""
    if user.is_platform_admin:
        return
    role = get_tenant_role(session, user, tenant_id)
    if role is None:
        logger.warning("Tenant access denied", user_id=str(user.id), tenant_id=str(tenant_id))
        raise ApiError(status.HTTP_403_FORBIDDEN, "tenant_access_denied")
    if permission is not None:
        require_permission(permission, role)
