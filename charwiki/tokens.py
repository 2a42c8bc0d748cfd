"""
Signed bearer tokens carrying the username claim.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from charwiki.config import Settings


class InvalidToken(Exception):
    """Raised when a bearer token is missing, expired or tampered with."""


def issue_token(username: str, settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "username": username,
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_expires_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> str:
    """Return the username bound to ``token``."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp"]},
        )
    except jwt.InvalidTokenError as e:
        raise InvalidToken(str(e)) from e
    username = payload.get("username")
    if not isinstance(username, str) or not username:
        raise InvalidToken("token has no username claim")
    return username
