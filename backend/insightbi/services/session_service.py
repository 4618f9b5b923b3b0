# Overview: Service-layer operations for session tokens; encapsulates business logic and database work.

"""
Bearer session tokens.

A session pins one user to one company for its whole life: company_id is
copied from the user at login and every authenticated request runs in that
tenant. Only the SHA-256 of a token is stored.

Lifetimes come from config (SESSION_TTL_HOURS, SESSION_IDLE_HOURS). A
session dies on logout, expiry, idle timeout, or when its user or company
is deactivated.
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User, Company
from ..time_utils import utcnow


def _ttl() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_HOURS", 2))


@dataclass
class SessionContext:
    """What require_auth puts on flask.g: the user and their tenant."""
    user: User
    session: SessionToken
    company_id: int

    @property
    def user_id(self) -> int:
        return self.user.id

    @property
    def role(self) -> str:
        return self.user.role


def generate_token() -> str:
    """64 hex chars; only ever returned to the client, never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # Tokens carry 256 bits of entropy, so a fast hash is enough.
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _find_live(token: str) -> SessionToken | None:
    return db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Open a session for user_id and return (session_record, plaintext_token).

    Raises ValueError if the user is missing or their company is inactive.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    company = db.session.get(Company, user.company_id)
    if not company or not company.is_active:
        raise ValueError("Company is not active")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        company_id=user.company_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _ttl(),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a plaintext token to a SessionContext, or None.

    Touches last_used_at on success. Sessions found idle, or whose user or
    company was deactivated, are revoked on the spot.
    """
    now = utcnow()
    session = _find_live(token)
    if not session or session.expires_at < now:
        return None

    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    company = session.company
    if not company or not company.is_active:
        _revoke(session, "Company deactivated")
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session, company_id=session.company_id)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke a session by plaintext token. Returns False when no live session matched."""
    session = _find_live(token)
    if not session:
        return False
    _revoke(session, reason)
    return True


def purge_expired_sessions(*, older_than: timedelta = timedelta(days=30)) -> int:
    """Delete session rows (revoked or not) that expired before the retention window."""
    cutoff = utcnow() - older_than
    deleted = (
        db.session.query(SessionToken)
        .filter(SessionToken.expires_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
