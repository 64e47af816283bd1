"""JWT token creation and verification.

Tokens are minted by the main marketplace site and shared here through
the same HS256 secret. Payloads are not uniform across site versions, so
identity and role are read through a couple of aliases.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from marketwire.config import settings


class TokenError(Exception):
    """The token is expired, malformed or signed with another secret."""


def create_access_token(
    user_id: int,
    role: str = "user",
    expires_minutes: Optional[int] = None,
    secret: Optional[str] = None,
) -> str:
    """Create a JWT access token (CLI and tests; the site mints its own)."""
    expires = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    payload = {
        "sub": str(user_id),
        "id": user_id,
        "role": role,
        "exp": expires,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(
        payload, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm
    )


def verify_token(token: str, secret: Optional[str] = None) -> dict:
    """Decode an HS256 token from the site. Raises TokenError if it doesn't verify."""
    try:
        payload = jwt.decode(
            token,
            secret or settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")


def user_id_from_payload(payload: dict[str, Any]) -> Optional[int]:
    """Numeric user id from `id`, `user_id`, `userId` or `sub`."""
    for key in ("id", "user_id", "userId", "sub"):
        raw = payload.get(key)
        if raw is None or raw == "":
            continue
        try:
            uid = int(raw)
        except (TypeError, ValueError):
            return None
        return uid if uid > 0 else None
    return None


def role_from_payload(payload: dict[str, Any]) -> str:
    return str(payload.get("role") or payload.get("r") or "").lower()
