"""Live socket wrapper and fire-and-forget sends.

A `Connection` is one accepted WebSocket plus the per-connection state the
hubs keep: liveness for the heartbeat, the identity bound at auth, and
the product subscriptions of the likes hub.

Sends never raise. A closed, broken or stuck socket just drops the frame,
and a broadcast sends to all targets concurrently so one slow socket
can't hold up the others.
"""

import asyncio
import itertools
import json
import time
from typing import Any, Iterable, Optional

import structlog
from starlette.websockets import WebSocket, WebSocketState

logger = structlog.get_logger()

_ids = itertools.count(1)


def now_ms() -> int:
    return int(time.time() * 1000)


class Connection:
    """One live WebSocket and the state a hub tracks for it."""

    def __init__(
        self,
        websocket: WebSocket,
        bound_identity: Optional[int] = None,
        send_timeout: float = 5.0,
    ):
        self.id = next(_ids)
        self.websocket = websocket
        self.send_timeout = send_timeout
        self.alive = True
        # Identity proven at the HTTP upgrade (JWT / ticket), if any.
        self.bound_identity = bound_identity
        # Identity this connection is registered under after `auth`.
        self.identity: Optional[int] = None
        self.subscriptions: set[int] = set()
        self.channels: list[str] = []
        self.closed = False

    def __repr__(self) -> str:
        return f"<Connection {self.id} identity={self.identity}>"

    @property
    def is_open(self) -> bool:
        if self.closed:
            return False
        state = getattr(self.websocket, "application_state", WebSocketState.CONNECTED)
        return state == WebSocketState.CONNECTED

    def touch(self) -> None:
        """Any inbound frame proves the peer is still there."""
        self.alive = True

    async def send(self, payload: dict[str, Any]) -> bool:
        """Send a JSON frame. Returns False instead of raising."""
        if not self.is_open:
            return False
        try:
            text = json.dumps(payload, default=str)
        except (TypeError, ValueError):
            logger.warning("ws.unserializable_frame", frame_type=payload.get("type"))
            return False
        return await self.send_text(text)

    async def send_text(self, text: str) -> bool:
        if not self.is_open:
            return False
        try:
            await asyncio.wait_for(self.websocket.send_text(text), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.debug("ws.send_timeout", connection=self.id)
        except Exception as e:
            logger.debug("ws.send_failed", connection=self.id, error=str(e))
        return False

    async def terminate(self, code: int = 1001, reason: str = "") -> None:
        """Close the socket; idempotent and never raises."""
        if self.closed:
            return
        self.closed = True
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.debug("ws.close_failed", connection=self.id, error=str(e))


async def broadcast(connections: Iterable[Connection], payload: dict[str, Any]) -> int:
    """Send one frame to many sockets concurrently. Returns delivered count."""
    targets = [c for c in connections if c.is_open]
    if not targets:
        return 0
    text = json.dumps(payload, default=str)
    results = await asyncio.gather(
        *(c.send_text(text) for c in targets), return_exceptions=True
    )
    return sum(1 for r in results if r is True)
