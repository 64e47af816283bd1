"""Upgrade router — authenticate a WebSocket upgrade and bind it to a hub.

    /ws/likes      public
    /ws/chat       public; JWT/ticket, when given, binds the chat identity
    /ws/analytics  admin/user only:
                     1. ?token=<jwt> with role admin|user (or a ticket in ?token)
                     2. ?ticket=<ticket> not yet expired
                     3. non-production only: trusted Origin + numeric ?x-user-id
    anything else under /ws/  → 404

Rejections happen before the handshake completes, as plain HTTP
responses (403 untrusted origin, 401 bad credentials, 404 unknown path),
so clients can tell "get fresh credentials" from "give up".
"""

from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import urlsplit

import structlog
from fastapi import APIRouter, WebSocket
from starlette.responses import PlainTextResponse

from marketwire.auth.jwt import TokenError, role_from_payload, user_id_from_payload, verify_token
from marketwire.auth.tickets import verify_ticket
from marketwire.config import Settings, settings
from marketwire.realtime.connection import Connection

logger = structlog.get_logger()
router = APIRouter()

ANALYTICS_ROLES = frozenset({"admin", "user"})
LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1"})


@dataclass(frozen=True)
class UpgradePrincipal:
    """Who an upgrade was authorized as, and how."""

    user_id: Optional[int]
    method: str  # "jwt" | "ticket" | "dev-bridge"
    role: Optional[str] = None


class Denied(Exception):
    def __init__(self, status_code: int, reason: str):
        super().__init__(reason)
        self.status_code = status_code
        self.reason = reason


# ─── Pure decisions (no I/O) ────────────────────────────


def is_trusted_origin(origin: Optional[str], cfg: Settings = settings) -> bool:
    if not origin:
        return False
    try:
        parts = urlsplit(origin)
        host = parts.hostname or ""
    except ValueError:
        return False
    if not parts.scheme or not host:
        return False

    if f"{parts.scheme}://{parts.netloc}" in cfg.admin_origins:
        return True
    domain = cfg.trusted_domain.strip().lower()
    if domain and parts.scheme == "https" and (host == domain or host.endswith(f".{domain}")):
        return True
    return not cfg.is_production and host in LOCAL_HOSTS


def _origin(headers: Mapping[str, str]) -> str:
    return headers.get("origin") or headers.get("referer") or ""


def check_origin(headers: Mapping[str, str], cfg: Settings = settings) -> None:
    """Refuse browsers from untrusted origins. Non-browser clients send none."""
    if not cfg.ws_check_origin:
        return
    origin = _origin(headers)
    if origin and not is_trusted_origin(origin, cfg):
        raise Denied(403, "origin not allowed")


def _principal_from_jwt(token: str, cfg: Settings) -> UpgradePrincipal:
    payload = verify_token(token, cfg.jwt_secret)
    return UpgradePrincipal(
        user_id=user_id_from_payload(payload),
        method="jwt",
        role=role_from_payload(payload),
    )


def _principal_from_ticket(ticket: Optional[str], cfg: Settings) -> Optional[UpgradePrincipal]:
    decoded = verify_ticket(ticket, cfg.jwt_secret)
    if decoded is None:
        return None
    return UpgradePrincipal(user_id=decoded.user_id, method="ticket")


def authorize_analytics(
    params: Mapping[str, str],
    headers: Mapping[str, str],
    cfg: Settings = settings,
) -> UpgradePrincipal:
    """First success wins; raises Denied(401) when nothing matches."""
    token = params.get("token")
    if token:
        try:
            principal = _principal_from_jwt(token, cfg)
            if principal.role in ANALYTICS_ROLES:
                return principal
        except TokenError:
            # Older dashboards pass the ticket in ?token=
            principal = _principal_from_ticket(token, cfg)
            if principal is not None:
                return principal

    ticket = params.get("ticket")
    if ticket:
        principal = _principal_from_ticket(ticket, cfg)
        if principal is not None:
            return principal

    dev_uid = params.get("x-user-id", "")
    if (
        not cfg.is_production
        and dev_uid.isdigit()
        and int(dev_uid) > 0
        and is_trusted_origin(_origin(headers), cfg)
    ):
        return UpgradePrincipal(user_id=int(dev_uid), method="dev-bridge")

    raise Denied(401, "unauthorized")


def resolve_chat_identity(params: Mapping[str, str], cfg: Settings = settings) -> Optional[int]:
    """Identity proven by the chat upgrade, or None if none was offered.

    Credentials that are offered but don't verify raise Denied(401).
    """
    token = params.get("token")
    ticket = params.get("ticket")
    if not token and not ticket:
        return None

    if token:
        try:
            principal = _principal_from_jwt(token, cfg)
        except TokenError:
            principal = _principal_from_ticket(token, cfg)
        if principal is not None and principal.user_id:
            return principal.user_id
    if ticket:
        principal = _principal_from_ticket(ticket, cfg)
        if principal is not None:
            return principal.user_id

    raise Denied(401, "invalid credentials")


# ─── Endpoints ──────────────────────────────────────────


async def deny(websocket: WebSocket, status_code: int, reason: str) -> None:
    """Reject before the handshake: a real HTTP response when supported."""
    logger.info(
        "ws.upgrade_denied",
        path=websocket.url.path,
        status=status_code,
        reason=reason,
    )
    if "websocket.http.response" in websocket.scope.get("extensions", {}):
        await websocket.send_denial_response(
            PlainTextResponse(reason, status_code=status_code)
        )
    else:
        await websocket.close(code=1008, reason=reason)


def _new_connection(websocket: WebSocket, bound_identity: Optional[int] = None) -> Connection:
    return Connection(
        websocket,
        bound_identity=bound_identity,
        send_timeout=settings.ws_send_timeout_seconds,
    )


@router.websocket("/ws/likes")
async def likes_socket(websocket: WebSocket):
    try:
        check_origin(websocket.headers)
    except Denied as e:
        await deny(websocket, e.status_code, e.reason)
        return

    await websocket.accept()
    await websocket.app.state.hubs.likes.serve(_new_connection(websocket))


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket):
    try:
        check_origin(websocket.headers)
        identity = resolve_chat_identity(websocket.query_params)
    except Denied as e:
        await deny(websocket, e.status_code, e.reason)
        return

    await websocket.accept()
    await websocket.app.state.hubs.chat.serve(_new_connection(websocket, identity))


@router.websocket("/ws/analytics")
async def analytics_socket(websocket: WebSocket):
    try:
        check_origin(websocket.headers)
        principal = authorize_analytics(websocket.query_params, websocket.headers)
    except Denied as e:
        await deny(websocket, e.status_code, e.reason)
        return

    logger.info("ws.analytics_authorized", user_id=principal.user_id, method=principal.method)
    await websocket.accept()
    await websocket.app.state.hubs.analytics.serve(
        _new_connection(websocket, principal.user_id)
    )


@router.websocket("/ws/{unknown:path}")
async def unknown_socket(websocket: WebSocket, unknown: str):
    await deny(websocket, 404, "not found")
