# Overview: Service-layer operations for permission checks and security event logging.

"""
Permission Checking and Security Event Logging with Multi-Tenant Support

WHY: Enforce role-based access control from ONE place. Route handlers never
compare role strings themselves; they declare the permission they need.

MULTI-TENANT: Security events include company_id for tenant-scoped auditing.

DESIGN PRINCIPLES:
- Fail closed: unknown roles have no permissions
- Log denials only: permission grants are not logged
- Roles map to permissions through permissions.DEFAULT_ROLE_PERMISSIONS
"""

from flask import current_app, has_app_context

from ..models import User
from ..permissions import ROLES, get_role_permissions


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def log_security_event(
    *,
    user_id: int | None,
    event_type: str,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    company_id: int | None = None,
) -> None:
    """
    Emit a security event to the application log.

    Events are structured key=value lines so they can be grepped or shipped
    to a log pipeline without a dedicated table.
    """
    if not has_app_context():
        return
    current_app.logger.warning(
        "security_event type=%s user_id=%s company_id=%s resource=%s action=%s ip=%s reason=%s",
        event_type,
        user_id,
        company_id,
        resource,
        action,
        ip_address,
        reason,
    )


def get_user_permissions(user: User) -> set[str]:
    """Effective permission codes for a user (empty when inactive)."""
    if user is None or not user.is_active:
        return set()
    return get_role_permissions(user.role)


def user_has_permission(user: User, permission_code: str) -> bool:
    return permission_code in get_user_permissions(user)


def require_permission(
    *,
    user: User,
    permission_code: str,
    resource: str | None = None,
    ip_address: str | None = None,
    company_id: int | None = None,
) -> None:
    """
    Raise PermissionDeniedError unless the user holds permission_code.

    Denials are logged as PERMISSION_DENIED security events.
    """
    if user_has_permission(user, permission_code):
        return

    log_security_event(
        user_id=user.id if user else None,
        event_type="PERMISSION_DENIED",
        resource=resource,
        action=permission_code,
        reason=f"Role {user.role if user else None!r} lacks {permission_code}",
        ip_address=ip_address,
        company_id=company_id,
    )
    raise PermissionDeniedError(f"Missing permission: {permission_code}")


def validate_role(role: str) -> str:
    role = (role or "").strip()
    if role not in ROLES:
        raise ValueError(f"Invalid role: {role}. Must be one of: {', '.join(ROLES)}")
    return role
