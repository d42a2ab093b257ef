# tests/services/test_permissions.py
import pytest

from factory_pulse.models import User, UserRole, UserStatus
from factory_pulse.services.permissions import (
    ROLE_PERMISSIONS,
    get_permissions,
    has_permission,
    user_has_permission,
)

def test_every_role_has_a_permission_set():
    assert set(ROLE_PERMISSIONS) == set(UserRole)

@pytest.mark.parametrize("role,resource,action,expected", [
    (UserRole.SALES, "rfq", "create", True),
    (UserRole.SALES, "rfq", "approve", False),
    (UserRole.QA, "rfq", "approve", True),
    (UserRole.ENGINEERING, "documents", "create", True),
    (UserRole.PROCUREMENT, "supplier", "create", True),
    (UserRole.MANAGEMENT, "analytics", "export", True),
    (UserRole.MANAGEMENT, "users", "manage_roles", False),
    (UserRole.ADMIN, "users", "manage_roles", True),
    (UserRole.ADMIN, "unknown_resource", "read", False),
])
def test_has_permission(role, resource, action, expected):
    assert has_permission(role, resource, action) is expected

@pytest.mark.parametrize("user_status", [UserStatus.INACTIVE, UserStatus.LOCKED])
def test_inactive_users_hold_no_permissions(user_status):
    user = User(email="x@example.com", display_name="X", role=UserRole.ADMIN, status=user_status)
    assert not user_has_permission(user, "users", "read")

def test_active_user_permissions():
    user = User(email="x@example.com", display_name="X", role=UserRole.QA, status=UserStatus.ACTIVE)
    assert user_has_permission(user, "audit", "create")
    assert not user_has_permission(None, "audit", "read")

def test_get_permissions_returns_copies():
    permissions = get_permissions(UserRole.SALES)
    permissions["rfq"].append("approve")
    assert not has_permission(UserRole.SALES, "rfq", "approve")
