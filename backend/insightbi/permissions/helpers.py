# Overview: Utility functions for permission lookups.

from .definitions import PERMISSION_DEFINITIONS


def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_role_permissions(role):
    """Get the set of permission codes granted to a role (empty for unknown roles)."""
    from .roles import DEFAULT_ROLE_PERMISSIONS
    return set(DEFAULT_ROLE_PERMISSIONS.get(role, set()))
