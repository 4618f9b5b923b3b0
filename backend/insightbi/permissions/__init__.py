# Overview: Permission system package.
# Re-exports all public APIs for backwards-compatible imports.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    INVENTORY_PERMISSIONS,
    SALES_PERMISSIONS,
    COLLECTION_PERMISSIONS,
    ANALYTICS_PERMISSIONS,
    DATA_PERMISSIONS,
    AI_PERMISSIONS,
    COMPANY_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import ROLES, DEFAULT_ROLE_PERMISSIONS
from .helpers import (
    get_all_permission_codes,
    get_role_permissions,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "INVENTORY_PERMISSIONS",
    "SALES_PERMISSIONS",
    "COLLECTION_PERMISSIONS",
    "ANALYTICS_PERMISSIONS",
    "DATA_PERMISSIONS",
    "AI_PERMISSIONS",
    "COMPANY_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "ROLES",
    "DEFAULT_ROLE_PERMISSIONS",
    "get_all_permission_codes",
    "get_role_permissions",
]
