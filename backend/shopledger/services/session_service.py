# Overview: Session tokens carrying the caller's business context.

"""
Session Token Management

- Cryptographically secure random tokens (32 bytes), stored as SHA-256 hashes
- Absolute and idle timeouts from Config
- business_id captured at login and immutable for the session lifetime;
  routes pass it explicitly into every ledger operation
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow


@dataclass
class SessionContext:
    """Identity + business context for an authenticated request."""
    user: User
    session: SessionToken
    business_id: int | None


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", 2))


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    token = generate_token()
    session = SessionToken(
        user_id=user.id,
        business_id=user.business_id,
        token_hash=hash_token(token),
        expires_at=utcnow() + _absolute_timeout(),
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a plaintext token to its context, or None if invalid, revoked,
    expired or idle for too long. Touches last_used_at on success.
    """
    if not token:
        return None

    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if session is None or session.is_revoked:
        return None

    now = utcnow()
    if session.expires_at <= now:
        return None
    if session.last_used_at and session.last_used_at + _idle_timeout() <= now:
        revoke_session(session, commit=True)
        return None

    user = session.user
    if user is None or not user.is_active:
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=user, session=session, business_id=session.business_id)


def revoke_session(session: SessionToken, *, commit: bool = True) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    if commit:
        db.session.commit()


def revoke_token(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if session is None or session.is_revoked:
        return False
    revoke_session(session)
    return True
