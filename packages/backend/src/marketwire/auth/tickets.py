"""WebSocket tickets — short-lived HMAC credentials for one handshake.

A ticket is `id.user_id.exp.sig` where sig is the unpadded base64url
HMAC-SHA256 of `id.user_id.exp`. Browsers can't set headers on a
WebSocket upgrade, so the dashboard fetches a ticket over authenticated
REST and passes it as ?ticket=... when connecting.

Every failure (bad shape, expired, wrong signature) returns None with no
detail, so callers can't be used as an oracle.
"""

import base64
import hashlib
import hmac
import time
import uuid
from dataclasses import dataclass
from typing import Optional

from marketwire.config import settings

DELIMITER = "."


@dataclass(frozen=True)
class WsTicket:
    id: str
    user_id: int
    exp: int


def _sign(message: str, secret: str) -> str:
    digest = hmac.new(secret.encode(), message.encode(), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode()


def create_ticket(
    user_id: int,
    secret: Optional[str] = None,
    ttl_seconds: Optional[int] = None,
    now: Optional[float] = None,
) -> str:
    """Issue a ticket for `user_id`, valid for `ttl_seconds`."""
    secret = secret or settings.jwt_secret
    ttl = settings.ticket_ttl_seconds if ttl_seconds is None else ttl_seconds
    issued = time.time() if now is None else now
    exp = int(issued) + ttl
    body = DELIMITER.join([uuid.uuid4().hex, str(int(user_id)), str(exp)])
    return f"{body}{DELIMITER}{_sign(body, secret)}"


def verify_ticket(
    ticket: Optional[str],
    secret: Optional[str] = None,
    now: Optional[float] = None,
) -> Optional[WsTicket]:
    """Return the decoded ticket, or None if it is not valid right now."""
    if not isinstance(ticket, str):
        return None
    parts = ticket.split(DELIMITER)
    if len(parts) != 4:
        return None
    ticket_id, raw_uid, raw_exp, sig = parts

    try:
        exp = int(raw_exp)
        user_id = int(raw_uid)
    except ValueError:
        return None

    current = int(time.time() if now is None else now)
    if exp < current:
        return None

    expected = _sign(
        DELIMITER.join([ticket_id, raw_uid, raw_exp]), secret or settings.jwt_secret
    )
    if not hmac.compare_digest(expected.encode(), sig.encode()):
        return None
    if user_id <= 0:
        return None

    return WsTicket(id=ticket_id, user_id=user_id, exp=exp)
