# backend/factory_pulse/services/permissions.py
from typing import Dict, List

from ..models.user import UserRole, UserStatus

ROLE_PERMISSIONS: Dict[UserRole, Dict[str, List[str]]] = {
    UserRole.SALES: {
        "rfq": ["create", "read", "update", "assign", "delete"],
        "customer": ["read", "create", "update"],
        "dashboard": ["read"],
        "profile": ["read_own", "update_own"],
        "workflow": ["read", "update", "bypass"],
        "notifications": ["read", "create"],
    },
    UserRole.PROCUREMENT: {
        "rfq": ["create", "read", "update", "assign", "delete"],
        "supplier": ["read", "create", "update"],
        "dashboard": ["read"],
        "profile": ["read_own", "update_own"],
        "workflow": ["read", "update"],
        "notifications": ["read", "create"],
    },
    UserRole.ENGINEERING: {
        "rfq": ["read", "update", "review"],
        "technical_specs": ["read", "create", "update"],
        "dashboard": ["read"],
        "profile": ["read_own", "update_own"],
        "documents": ["read", "create", "update"],
        "workflow": ["read", "update"],
    },
    UserRole.QA: {
        "rfq": ["read", "review", "approve", "reject"],
        "quality_specs": ["read", "create", "update"],
        "dashboard": ["read"],
        "profile": ["read_own", "update_own"],
        "audit": ["read", "create"],
        "workflow": ["read", "update"],
    },
    UserRole.PRODUCTION: {
        "rfq": ["read", "update", "schedule"],
        "production_schedule": ["read", "create", "update"],
        "dashboard": ["read"],
        "profile": ["read_own", "update_own"],
        "capacity": ["read", "update"],
        "workflow": ["read", "update"],
    },
    UserRole.MANAGEMENT: {
        "rfq": ["read", "approve", "reject"],
        "users": ["read", "create", "update", "delete"],
        "customer": ["read", "create", "update", "delete", "archive"],
        "supplier": ["read", "create", "update", "delete", "archive"],
        "dashboard": ["read", "admin"],
        "profile": ["read_own", "update_own", "read_all"],
        "analytics": ["read", "export"],
        "audit": ["read", "export"],
        "workflow": ["read", "create", "update", "delete", "bypass"],
        "system_config": ["read", "update"],
    },
    UserRole.ADMIN: {
        "rfq": ["read", "approve", "reject", "delete"],
        "users": ["read", "create", "update", "delete", "manage_roles"],
        "customer": ["read", "create", "update", "delete", "archive"],
        "supplier": ["read", "create", "update", "delete", "archive"],
        "dashboard": ["read", "admin", "system"],
        "profile": ["read_own", "update_own", "read_all", "update_all"],
        "analytics": ["read", "export", "system"],
        "audit": ["read", "export", "system"],
        "workflow": ["read", "create", "update", "delete", "bypass", "configure"],
        "system_config": ["read", "update", "delete"],
        "database": ["read", "backup", "restore"],
    },
}


def has_permission(role: UserRole, resource: str, action: str) -> bool:
    return action in ROLE_PERMISSIONS.get(role, {}).get(resource, [])


def user_has_permission(user, resource: str, action: str) -> bool:
    """Inactive or locked accounts hold no permissions"""
    if user is None or user.status != UserStatus.ACTIVE:
        return False
    return has_permission(user.role, resource, action)


def get_permissions(role: UserRole) -> Dict[str, List[str]]:
    return {resource: list(actions) for resource, actions in ROLE_PERMISSIONS.get(role, {}).items()}
