"""
Authentication for RetroPulse.

Participants are anonymous-by-default: the session cookie carries a JWT
whose `sub` is hashed with COOKIE_SECRET into an opaque identity. Cards
and reactions only ever store that hash. Admins may override creator
checks with the X-Admin-Secret header.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Annotated

import jwt
from fastapi import Cookie, Header, HTTPException, status

from retropulse import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Who is making a request."""

    identity: str
    is_admin_override: bool = False


def create_jwt(subject: str) -> str:
    """
    Create a session JWT.

    Args:
        subject: Stable per-browser id to encode as `sub`

    Returns:
        Signed JWT string
    """
    now = datetime.now(UTC)
    payload = {
        "sub": subject,
        "exp": now + timedelta(hours=config.settings.JWT_EXPIRY_HOURS),
        "iat": now,
    }
    return jwt.encode(payload, config.settings.JWT_SECRET, algorithm=config.settings.JWT_ALGORITHM)


def decode_jwt(token: str) -> dict:
    """
    Decode and verify a JWT.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        return jwt.decode(token, config.settings.JWT_SECRET, algorithms=[config.settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired. Please rejoin the board.",
        ) from e
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token. Please rejoin the board.",
        ) from e


def hash_identity(subject: str) -> str:
    """HMAC-SHA256 of the session subject. The only identity stores ever see."""
    return hmac.new(config.settings.COOKIE_SECRET.encode(), subject.encode(), hashlib.sha256).hexdigest()


def identity_from_session(session: str) -> str:
    payload = decode_jwt(session)
    subject = payload.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token. Please rejoin the board.",
        )
    return hash_identity(subject)


def is_admin_secret(candidate: str | None) -> bool:
    if not candidate:
        return False
    return hmac.compare_digest(candidate.encode(), config.settings.ADMIN_SECRET_KEY.encode())


async def get_current_actor(
    session: Annotated[str | None, Cookie()] = None,
    x_admin_secret: Annotated[str | None, Header()] = None,
) -> Actor:
    """
    FastAPI dependency for the acting participant.

    A valid X-Admin-Secret marks the request as an admin override; a bad
    one is rejected outright rather than silently ignored.

    Raises:
        HTTPException: 401 without a session, 403 on a wrong admin secret
    """
    if not session:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated. Please join the board.",
        )
    identity = identity_from_session(session)

    if x_admin_secret is None:
        return Actor(identity=identity)
    if not is_admin_secret(x_admin_secret):
        logger.warning("auth: invalid admin secret from user=%s", identity[:8])
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid admin secret")
    return Actor(identity=identity, is_admin_override=True)
