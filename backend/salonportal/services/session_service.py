# Overview: Service-layer operations for login sessions; issues, validates and revokes bearer tokens.

"""
Session Token Management Service

Every portal login (password, invitation acceptance) gets an opaque bearer
token. Only its SHA-256 hash is stored.

SECURITY:
- 32 random bytes per token, hex encoded for the client
- Absolute lifetime SESSION_ABSOLUTE_TIMEOUT_HOURS (default 24)
- Idle timeout SESSION_IDLE_TIMEOUT_MINUTES (default 120)
- Revoked on logout, password change, role change and deactivation

The user's role and associations are NOT copied into the session. They are
read from the user row on every request, so a role change or a removed
salon link applies to the very next call.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from salonportal.time_utils import utcnow


@dataclass
class SessionContext:
    user: User
    session: SessionToken


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(minutes=current_app.config.get("SESSION_IDLE_TIMEOUT_MINUTES", 120))


def generate_token() -> str:
    """Plaintext token handed to the client; never persisted."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # Tokens are high-entropy, a fast hash is enough
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _revoke(session: SessionToken, reason: str, when=None) -> None:
    session.is_revoked = True
    session.revoked_at = when or utcnow()
    session.revoked_reason = reason


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session for an active user.

    Returns (session_record, plaintext_token).
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User account is deactivated")

    token = generate_token()
    started = utcnow()
    record = SessionToken(
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=started,
        last_used_at=started,
        expires_at=started + _absolute_timeout(),
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(record)
    db.session.commit()
    return record, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its user.

    FLOW:
    1. Unknown, revoked or expired token -> None
    2. Idle too long -> revoke, None
    3. User missing or deactivated -> revoke, None
    4. Otherwise touch last_used_at and return the context
    """
    record = (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .first()
    )
    now = utcnow()
    if record is None or record.expires_at < now:
        return None

    if now - record.last_used_at > _idle_timeout():
        _revoke(record, "Idle timeout", now)
        db.session.commit()
        return None

    user = record.user
    if user is None or not user.is_active:
        _revoke(record, "User account deactivated", now)
        db.session.commit()
        return None

    record.last_used_at = now
    db.session.commit()
    return SessionContext(user=user, session=record)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """False when the token is unknown or already revoked."""
    record = (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .first()
    )
    if record is None:
        return False
    _revoke(record, reason)
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Revoke every open session of the user; returns how many were open."""
    now = utcnow()
    open_sessions = (
        db.session.query(SessionToken)
        .filter(SessionToken.user_id == user_id, SessionToken.is_revoked.is_(False))
        .all()
    )
    for record in open_sessions:
        _revoke(record, reason, now)
    db.session.commit()
    return len(open_sessions)


def cleanup_expired_sessions() -> int:
    """
    Delete sessions that are expired or revoked and were created more than
    SESSION_RETENTION_DAYS (default 30) ago.
    """
    now = utcnow()
    cutoff = now - timedelta(days=current_app.config.get("SESSION_RETENTION_DAYS", 30))
    deleted = (
        db.session.query(SessionToken)
        .filter(
            db.or_(SessionToken.expires_at < now, SessionToken.is_revoked.is_(True)),
            SessionToken.created_at < cutoff,
        )
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
