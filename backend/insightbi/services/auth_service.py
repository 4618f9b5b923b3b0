# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service with Multi-Tenant Support

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

MULTI-TENANT: Users belong to exactly one company (company_id). User
creation enforces the company's max_users quota.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
- Authentication rejects users of inactive companies
"""

import bcrypt
import re
from ..extensions import db
from ..models import User, Company
from ..time_utils import utcnow
from .permission_service import validate_role


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class UserQuotaError(ValueError):
    """Raised when a company already has max_users active users."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12 (strength validated first)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def count_active_users(company_id: int) -> int:
    return db.session.query(User).filter(
        User.company_id == company_id,
        User.is_active.is_(True),
    ).count()


def ensure_user_quota(company: Company) -> None:
    if count_active_users(company.id) >= company.max_users:
        raise UserQuotaError(f"Company user limit reached ({company.max_users})")


def create_user(
    *,
    username: str,
    email: str,
    password: str,
    company_id: int,
    role: str = "viewer",
    full_name: str | None = None,
    commit: bool = True,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValueError: company missing/inactive, username or email taken, invalid role
        UserQuotaError: company is at max_users
        PasswordValidationError: weak password
    """
    company = db.session.get(Company, company_id)
    if not company:
        raise ValueError("Company not found")
    if not company.is_active:
        raise ValueError("Company is not active")

    role = validate_role(role)

    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email:
        raise ValueError("username and email are required")

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ValueError("Username or email already exists")

    ensure_user_quota(company)

    user = User(
        company_id=company_id,
        username=username,
        email=email,
        full_name=full_name,
        password_hash=hash_password(password),
        role=role,
    )

    db.session.add(user)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with username (or email) and password.

    Returns User if credentials valid and the company is active, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    identifier = (username or "").strip()
    user = db.session.query(User).filter(
        db.or_(User.username == identifier, User.email == identifier.lower()),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    company = db.session.get(Company, user.company_id)
    if not company or not company.is_active:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
