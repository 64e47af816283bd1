"""Bearer identity for REST routes.

The marketplace site mints the JWT; these dependencies only verify it
and pull out the numeric user id and role. Likes, tickets and
notifications all act on behalf of that user.

    user: CurrentIdentity = Depends(get_current_user)
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import Depends, Header, HTTPException

from marketwire.auth.jwt import TokenError, role_from_payload, user_id_from_payload, verify_token

BEARER = "bearer "


@dataclass(frozen=True)
class CurrentIdentity:
    user_id: int
    role: str = "user"
    payload: dict[str, Any] = field(default_factory=dict)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def identity_from_token(token: str) -> CurrentIdentity:
    """Verify a JWT and map it to an identity; 401 if either step fails."""
    try:
        payload = verify_token(token)
    except TokenError as e:
        raise _unauthorized(str(e))

    user_id = user_id_from_payload(payload)
    if user_id is None:
        raise _unauthorized("Token carries no user id")
    return CurrentIdentity(user_id=user_id, role=role_from_payload(payload) or "user", payload=payload)


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
) -> Optional[CurrentIdentity]:
    """None without a Bearer header; a bad token is still a 401."""
    if not authorization or not authorization.lower().startswith(BEARER):
        return None
    return identity_from_token(authorization[len(BEARER):].strip())


async def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    if identity is None:
        raise _unauthorized("Authentication required")
    return identity
