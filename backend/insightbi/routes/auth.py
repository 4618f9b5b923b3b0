# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/insightbi/routes/auth.py
"""
Authentication API routes.

SECURITY:
- Bearer session tokens; only the SHA-256 hash is stored
- Password strength validation on signup
- Signup creates a fresh trial company; joining an existing company is
  invitation-only (see /api/invitations)
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import company_service
from ..services import permission_service
from ..services import session_service
from ..services.auth_service import PasswordValidationError
from ..decorators import bearer_token, require_auth
from ..services import auth_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_payload(user, session, token: str) -> dict:
    return {
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(user)),
        "token": token,
        "session": session.to_dict(),
        "company_id": session.company_id,
    }


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in the Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username/email and password required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                resource=request.path,
                reason=f"Invalid credentials for {username!r}",
                ip_address=request.remote_addr,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        payload = _session_payload(user, session, token)
        payload["message"] = "Login successful"
        return jsonify(payload), 200

    except ValueError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/signup")
def signup_route():
    """
    Create a trial company, its first company_admin and a session.

    Request body: company_name, username, email, password, full_name?
    """
    data = request.get_json(silent=True) or {}
    required = ("company_name", "username", "email", "password")
    missing = [k for k in required if not data.get(k)]
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400

    try:
        company, user = company_service.create_default_company(
            name=data["company_name"],
            owner_username=data["username"],
            owner_email=data["email"],
            owner_password=data["password"],
            owner_full_name=data.get("full_name"),
        )
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to sign up")
        return jsonify({"error": "Internal server error"}), 500

    payload = _session_payload(user, session, token)
    payload["company"] = company.to_dict()
    return jsonify(payload), 201


@auth_bp.post("/logout")
def logout_route():
    """Revoke the session token (Authorization: Bearer <token>)."""
    try:
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user, permissions and company (for UI filtering)."""
    company = company_service.get_company(g.company_id)
    return jsonify({
        "user": g.current_user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(g.current_user)),
        "company": company.to_dict() if company else None,
    }), 200
