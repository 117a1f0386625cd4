"""
Unit tests for RBAC permission system
"""

import pytest

from retail_api.core.errors import ApiError
from retail_api.core.permissions import (
    Permission,
    TenantRole,
    get_permissions_for_role,
    has_permission,
    require_permission,
)


def test_get_permissions_for_role():
    """Test permission retrieval for all roles"""
    # Owner has every permission
    owner_perms = get_permissions_for_role("OWNER")
    assert owner_perms == set(Permission)

    # Admin can refund but not change the subdomain
    admin_perms = get_permissions_for_role("ADMIN")
    assert Permission.PAYMENT_REFUND in admin_perms
    assert Permission.TENANT_SUBDOMAIN not in admin_perms

    # Member sells but cannot refund
    member_perms = get_permissions_for_role("MEMBER")
    assert Permission.PAYMENT_CHARGE in member_perms
    assert Permission.PAYMENT_REFUND not in member_perms

    # Viewer only reads
    viewer_perms = get_permissions_for_role("VIEWER")
    assert viewer_perms == {Permission.TENANT_VIEW, Permission.INVENTORY_VIEW, Permission.ORDER_VIEW}


def test_role_lookup_is_case_insensitive():
    assert get_permissions_for_role("owner") == get_permissions_for_role("OWNER")


def test_unknown_role_has_no_permissions():
    assert get_permissions_for_role("waiter") == set()
    assert get_permissions_for_role(None) == set()


def test_has_permission():
    """Test permission checking logic"""
    viewer_perms = get_permissions_for_role("VIEWER")

    assert has_permission(Permission.ORDER_VIEW, viewer_perms)
    assert not has_permission(Permission.ORDER_MANAGE, viewer_perms)


def test_require_permission_raises_403():
    require_permission(Permission.INVENTORY_EDIT, "MEMBER")

    with pytest.raises(ApiError) as exc_info:
        require_permission(Permission.INVENTORY_EDIT, "VIEWER")
    assert exc_info.value.status_code == 403
    assert exc_info.value.code == "insufficient_permissions"


def test_non_member_cannot_read_tenant(client, make_tenant, make_user, auth_headers):
    tenant = make_tenant("Shop")
    outsider = make_user()

    response = client.get(f"/api/tenants/{tenant.id}", headers=auth_headers(outsider))

    assert response.status_code == 403
    assert response.json()["error"] == "tenant_access_denied"


def test_viewer_cannot_edit_inventory(client, make_tenant, make_user, auth_headers):
    tenant = make_tenant("Shop")
    viewer = make_user(tenant=tenant, tenant_role=TenantRole.VIEWER)

    response = client.post(
        "/api/inventory",
        json={"tenant_id": str(tenant.id), "sku": "A-1", "name": "Apple"},
        headers=auth_headers(viewer),
    )

    assert response.status_code == 403
    assert response.json()["error"] == "insufficient_permissions"


def test_platform_admin_bypasses_membership(client, make_tenant, admin_user, auth_headers):
    tenant = make_tenant("Shop")

    response = client.get(f"/api/tenants/{tenant.id}", headers=auth_headers(admin_user))

    assert response.status_code == 200
    assert response.json()["id"] == str(tenant.id)
