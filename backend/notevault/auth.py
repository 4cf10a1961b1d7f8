"""
NoteVault Backend — Caller Identity
====================================

What:  Resolves the caller of a request from its bearer token, and decides
       whether that caller may touch a given note.
How:   `get_current_user` is a FastAPI dependency: it reads
       `Authorization: Bearer <jwt>`, verifies the HS256 signature and expiry
       with PyJWT, and returns the `sub` claim as a CallerIdentity.
Who:   Every /api/notes route depends on it; NoteService calls `is_owner`.

Tokens are issued by the auth service that owns user accounts.
`create_access_token` exists for tooling and the test suite only.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

import jwt
from fastapi import Header

from notevault.config import settings
from notevault.exceptions import UnauthorizedError
from notevault.models.note import OWNER_MAX_LENGTH

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerIdentity:
    """The authenticated user making the request."""
    user_id: str


def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    """Sign an access token for `user_id` (claims: sub, iat, exp, jti)."""
    now = datetime.now(timezone.utc)
    minutes = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=minutes)).timestamp()),
        "jti": str(uuid4()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry; returns the payload or raises jwt.InvalidTokenError."""
    return jwt.decode(token, key=settings.jwt_secret, algorithms=[settings.jwt_algorithm])


async def get_current_user(
    authorization: Optional[str] = Header(default=None),
) -> CallerIdentity:
    """
    FastAPI dependency returning the caller identity.

    Raises:
        UnauthorizedError: header missing, not a Bearer token, signature or
            expiry invalid, no `sub` claim, or a `sub` too long to be an owner (→ 401)
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Missing bearer token")

    if not settings.jwt_secret:
        logger.error("JWT_SECRET is not configured; rejecting all tokens")
        raise UnauthorizedError("Invalid token")

    token = authorization.split(" ", 1)[1].strip()
    try:
        payload = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug("Rejected token: %s", e)
        raise UnauthorizedError("Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token")
    # Longer subjects cannot be stored as a note owner
    if len(str(user_id)) > OWNER_MAX_LENGTH:
        logger.warning("Rejected token: subject longer than %d characters", OWNER_MAX_LENGTH)
        raise UnauthorizedError("Invalid token")

    return CallerIdentity(user_id=str(user_id))


def is_owner(caller: CallerIdentity, resource: Any) -> bool:
    """
    Ownership guard shared by every single-note operation.

    `resource` is anything with an `owner` attribute; ids are compared as strings.
    """
    owner = getattr(resource, "owner", None)
    return owner is not None and str(owner) == str(caller.user_id)
