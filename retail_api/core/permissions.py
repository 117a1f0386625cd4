"""
RBAC (Role-Based Access Control) permission system
"""

from enum import Enum
from typing import Optional, Set

from fastapi import status

from retail_api.core.errors import ApiError


class PlatformRole(str, Enum):
    """Platform-wide roles carried in the access token"""
    PLATFORM_ADMIN = "PLATFORM_ADMIN"
    PLATFORM_SUPPORT = "PLATFORM_SUPPORT"
    USER = "USER"


class TenantRole(str, Enum):
    """Membership roles inside a tenant"""
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"
    VIEWER = "VIEWER"


class Permission(str, Enum):
    """Permission definitions"""
    # Tenant permissions
    TENANT_VIEW = "tenant:view"
    TENANT_EDIT = "tenant:edit"
    TENANT_SUBDOMAIN = "tenant:subdomain"

    # Inventory permissions
    INVENTORY_VIEW = "inventory:view"
    INVENTORY_EDIT = "inventory:edit"

    # Order permissions
    ORDER_VIEW = "order:view"
    ORDER_MANAGE = "order:manage"

    # Payment permissions
    PAYMENT_CHARGE = "payment:charge"
    PAYMENT_REFUND = "payment:refund"


_VIEW = {Permission.TENANT_VIEW, Permission.INVENTORY_VIEW, Permission.ORDER_VIEW}

ROLE_PERMISSIONS = {
    TenantRole.OWNER: set(Permission),
    TenantRole.ADMIN: _VIEW | {
        Permission.TENANT_EDIT,
        Permission.INVENTORY_EDIT,
        Permission.ORDER_MANAGE,
        Permission.PAYMENT_CHARGE,
        Permission.PAYMENT_REFUND,
    },
    TenantRole.MEMBER: _VIEW | {
        Permission.INVENTORY_EDIT,
        Permission.ORDER_MANAGE,
        Permission.PAYMENT_CHARGE,
    },
    TenantRole.VIEWER: set(_VIEW),
}


def get_permissions_for_role(role: Optional[str]) -> Set[Permission]:
    """Get permissions for a given tenant role"""
    if not role:
        return set()
    try:
        return set(ROLE_PERMISSIONS[TenantRole(role.upper())])
    except ValueError:
        return set()


def has_permission(required_permission: Permission, user_permissions: Set[Permission]) -> bool:
    """Check if user has required permission"""
    return required_permission in user_permissions


def require_permission(required_permission: Permission, role: Optional[str]) -> None:
    """Raise 403 unless the tenant role grants the permission"""
    if not has_permission(required_permission, get_permissions_for_role(role)):
        raise ApiError(status.HTTP_403_FORBIDDEN, "insufficient_permissions")
