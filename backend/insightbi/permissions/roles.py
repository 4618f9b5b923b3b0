# Overview: Default role -> permission mapping.
# Roles are plain strings on User.role; this table is the only place they are interpreted.

from .helpers import get_all_permission_codes


ROLES = ("super_admin", "company_admin", "manager", "analyst", "sales", "viewer")

_READ_ONLY = {
    "VIEW_INVENTORY",
    "VIEW_SALES",
    "VIEW_COLLECTIONS",
    "VIEW_ANALYTICS",
    "VIEW_COMPANY",
}

DEFAULT_ROLE_PERMISSIONS = {
    "super_admin": set(get_all_permission_codes()),
    "company_admin": set(get_all_permission_codes()) - {"MANAGE_ALL_COMPANIES"},
    "manager": _READ_ONLY | {
        "MANAGE_PRODUCTS",
        "ADJUST_INVENTORY",
        "MANAGE_SALES",
        "MANAGE_COLLECTIONS",
        "RUN_ANALYTICS",
        "IMPORT_DATA",
        "EXPORT_DATA",
        "GENERATE_TEST_DATA",
        "USE_AI",
    },
    "analyst": _READ_ONLY | {"RUN_ANALYTICS", "EXPORT_DATA", "USE_AI"},
    "sales": _READ_ONLY | {"MANAGE_SALES", "MANAGE_COLLECTIONS", "USE_AI"},
    "viewer": set(_READ_ONLY),
}
