# Overview: Service-layer operations for session tokens (the token issuer).

"""
Session Token Management Service

WHY: Secure session management with automatic timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Access token: absolute timeout (ACCESS_TOKEN_TTL_MINUTES) and
  idle timeout (SESSION_IDLE_TIMEOUT_MINUTES)
- Refresh token: absolute timeout (REFRESH_TOKEN_TTL_DAYS); mints a new
  access token for the same session
- Revocable on logout, password change, deactivation, deletion
- Tracks client IP and user agent for security monitoring
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..errors import AuthenticationError
from ..models import SessionToken, User
from claimdesk.time_utils import utcnow


DEFAULT_ACCESS_TTL = timedelta(hours=24)
DEFAULT_REFRESH_TTL = timedelta(days=7)
DEFAULT_IDLE_TIMEOUT = timedelta(hours=2)

# Expired or revoked sessions older than this are purged
CLEANUP_RETENTION = timedelta(days=30)


@dataclass
class SessionContext:
    """Resolved caller identity for one request."""
    user: User
    session: SessionToken


@dataclass
class IssuedTokens:
    session: SessionToken
    access_token: str
    refresh_token: str


def _access_ttl() -> timedelta:
    minutes = current_app.config.get("ACCESS_TOKEN_TTL_MINUTES")
    return timedelta(minutes=int(minutes)) if minutes else DEFAULT_ACCESS_TTL


def _refresh_ttl() -> timedelta:
    days = current_app.config.get("REFRESH_TOKEN_TTL_DAYS")
    return timedelta(days=int(days)) if days else DEFAULT_REFRESH_TTL


def _idle_timeout() -> timedelta:
    minutes = current_app.config.get("SESSION_IDLE_TIMEOUT_MINUTES")
    return timedelta(minutes=int(minutes)) if minutes else DEFAULT_IDLE_TIMEOUT


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def create_session(
    user: User,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> IssuedTokens:
    """
    Create a new session for an authenticated user.

    Returns the session record plus the plaintext access and refresh
    tokens. The database stores only their hashes.
    """
    access_token = generate_token()
    refresh_token = generate_token()

    now = utcnow()
    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(access_token),
        refresh_token_hash=hash_token(refresh_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _access_ttl(),
        refresh_expires_at=now + _refresh_ttl(),
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return IssuedTokens(session=session, access_token=access_token, refresh_token=refresh_token)


def validate_access_token(token: str) -> SessionContext:
    """
    Resolve an access token to the calling user.

    Raises AuthenticationError if the token is unknown, expired, idle too
    long, or revoked, or if the user is no longer active. Idle and
    deactivated sessions are revoked as a side effect.

    Updates last_used_at on success (activity tracking).
    """
    if not token or not isinstance(token, str):
        raise AuthenticationError("Authentication required", reason="missing token")

    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        raise AuthenticationError("Invalid or expired token", reason="unknown or revoked token")

    if session.expires_at < now:
        raise AuthenticationError("Invalid or expired token", reason=f"session {session.id} expired")

    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout")
        db.session.commit()
        raise AuthenticationError("Invalid or expired token", reason=f"session {session.id} idle timeout")

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        db.session.commit()
        raise AuthenticationError("Invalid or expired token", reason=f"session {session.id} user inactive")

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session)


def refresh_session(refresh_token: str) -> IssuedTokens:
    """
    Exchange a refresh token for a new access token on the same session.

    The refresh token itself is kept; only the access token rotates.
    """
    if not refresh_token or not isinstance(refresh_token, str):
        raise AuthenticationError("Refresh token is required", reason="missing refresh token")

    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        refresh_token_hash=hash_token(refresh_token),
        is_revoked=False,
    ).first()

    if not session or session.refresh_expires_at < now:
        raise AuthenticationError("Invalid refresh token", reason="unknown, revoked or expired refresh token")

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        db.session.commit()
        raise AuthenticationError("Invalid refresh token", reason=f"session {session.id} user inactive")

    access_token = generate_token()
    session.token_hash = hash_token(access_token)
    session.expires_at = now + _access_ttl()
    session.last_used_at = now
    db.session.commit()

    return IssuedTokens(session=session, access_token=access_token, refresh_token=refresh_token)


def revoke_session(session: SessionToken, reason: str = "User logout") -> bool:
    """Revoke one session. Returns False if it was already revoked."""
    if session.is_revoked:
        return False
    _revoke(session, reason)
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions", *, except_session_id: int | None = None) -> int:
    """
    Revoke all active sessions for a user.

    Returns count of sessions revoked.

    WHY: Security response (password change, deactivation). Forces
    re-authentication on all devices.
    """
    q = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False)
    if except_session_id is not None:
        q = q.filter(SessionToken.id != except_session_id)

    count = 0
    for session in q.all():
        _revoke(session, reason)
        count += 1

    db.session.commit()
    return count


def cleanup_expired_sessions() -> int:
    """
    Delete expired and revoked sessions older than 30 days.

    Returns count of sessions deleted.
    """
    now = utcnow()
    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.refresh_expires_at < now,
            SessionToken.is_revoked.is_(True),
        ),
        SessionToken.created_at < now - CLEANUP_RETENTION,
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
