# Overview: Request decorators that resolve the caller's session, company and permissions.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, permission_service
from .services.permission_service import PermissionDeniedError


def bearer_token() -> str | None:
    """Token from "Authorization: Bearer <token>", or None when the header is absent or malformed."""
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def _has_tenant_context() -> bool:
    return getattr(g, "current_user", None) is not None and getattr(g, "company_id", None) is not None


def require_auth(f):
    """
    Resolve the session and pin the request to one company.

    Sets g.current_user, g.company_id and g.session_context. Every service
    call downstream filters by g.company_id, never by a client-supplied id.

    401 when the token is missing, unknown, expired or revoked, or when the
    user or their company has been deactivated since login.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.company_id = context.company_id
        g.session_context = context
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Gate a route on one permission code; apply below @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _has_tenant_context():
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require_permission(
                    user=g.current_user,
                    permission_code=permission_code,
                    resource=f"{request.method} {request.path}",
                    ip_address=request.remote_addr,
                    company_id=g.company_id,
                )
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                    "role": g.current_user.role,
                    "message": str(e),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
