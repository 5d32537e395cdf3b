"""Bearer token verification. Tokens are issued by the auth service."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

import jwt

from inbox.config import Settings

logger = logging.getLogger(__name__)


class InvalidTokenError(Exception):
    """Raised when a bearer token is missing, malformed, expired or not signed by us."""


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def decode_user_id(token: Optional[str], settings: Settings) -> UUID:
    """Return the user id (``sub`` claim) of a bearer token."""
    if not token:
        raise InvalidTokenError("Missing bearer token")
    try:
        if settings.disable_auth:
            payload = jwt.decode(token, options={"verify_signature": False})
        else:
            payload = jwt.decode(
                token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
            )
    except jwt.PyJWTError as e:
        logger.warning("JWT decode error: %s", e)
        raise InvalidTokenError(str(e)) from e
    subject = payload.get("sub")
    try:
        return UUID(str(subject))
    except ValueError as e:
        raise InvalidTokenError("Token subject is not a user id") from e
