"""Hub base — one WebSocket endpoint with its own live connections.

A hub owns its connection set and (for chat) its presence registry; no
other component writes them. Frames from one socket are handled strictly
in arrival order because `serve()` awaits each handler before reading the
next frame. Each handler call is a top-level boundary: errors are logged
and the socket stays open.
"""

from typing import Any, Awaitable, Callable, Iterable, Optional

import structlog
from pydantic import TypeAdapter
from starlette.websockets import WebSocketDisconnect

from marketwire.realtime.connection import Connection, broadcast, now_ms
from marketwire.realtime.frames import Frame, PingFrame, PongFrame, parse_frame
from marketwire.realtime.heartbeat import Heartbeat

logger = structlog.get_logger()

Handler = Callable[[Connection, Any], Awaitable[None]]


class Hub:
    name = "hub"
    frames: TypeAdapter

    def __init__(self) -> None:
        self.connections: set[Connection] = set()
        self._handlers: dict[type[Frame], Handler] = {
            PingFrame: self.on_ping,
            PongFrame: self.on_pong,
        }

    def __len__(self) -> int:
        return len(self.connections)

    # ─── Lifecycle ──────────────────────────────────────

    def connect(self, conn: Connection) -> None:
        self.connections.add(conn)
        logger.debug(f"{self.name}.connected", connection=conn.id, total=len(self.connections))

    async def disconnect(self, conn: Connection) -> None:
        """Forget a connection. Safe to call more than once."""
        if conn not in self.connections:
            return
        self.connections.discard(conn)
        await self.on_disconnect(conn)
        logger.debug(f"{self.name}.disconnected", connection=conn.id, total=len(self.connections))

    async def on_disconnect(self, conn: Connection) -> None:
        """Hook for subclasses; runs once per connection."""

    async def serve(self, conn: Connection) -> None:
        """Read frames until the peer goes away. The socket must be accepted."""
        self.connect(conn)
        try:
            await self.on_connect(conn)
            while True:
                message = await conn.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes")
                if raw is None:
                    continue
                await self.handle(conn, raw)
        except WebSocketDisconnect:
            pass
        except RuntimeError as e:
            # receive() after the heartbeat closed the socket
            logger.debug(f"{self.name}.receive_closed", connection=conn.id, error=str(e))
        finally:
            await self.disconnect(conn)

    async def on_connect(self, conn: Connection) -> None:
        """Hook for subclasses: greet a freshly accepted socket."""

    # ─── Frames ─────────────────────────────────────────

    def route(self, frame_type: type[Frame], handler: Handler) -> None:
        self._handlers[frame_type] = handler

    async def handle(self, conn: Connection, raw: str | bytes) -> None:
        conn.touch()
        frame = parse_frame(self.frames, raw)
        if frame is None:
            return
        handler = self._handlers.get(type(frame))
        if handler is None:
            return
        try:
            await handler(conn, frame)
        except Exception:
            logger.exception(
                f"{self.name}.frame_failed",
                frame_type=getattr(frame, "type", None),
                connection=conn.id,
                identity=conn.identity,
            )

    async def on_ping(self, conn: Connection, frame: PingFrame) -> None:
        await conn.send({"type": "pong", "t": frame.t if frame.t is not None else now_ms()})

    async def on_pong(self, conn: Connection, frame: PongFrame) -> None:
        pass

    # ─── Fan-out ────────────────────────────────────────

    async def broadcast(
        self,
        payload: dict[str, Any],
        targets: Optional[Iterable[Connection]] = None,
    ) -> int:
        return await broadcast(self.connections if targets is None else targets, payload)

    def heartbeat(self, interval: float) -> Heartbeat:
        return Heartbeat(
            self.name,
            connections=lambda: self.connections,
            on_dead=self.disconnect,
            interval=interval,
        )

    async def close_all(self, code: int = 1001, reason: str = "server-shutdown") -> None:
        for conn in list(self.connections):
            await conn.terminate(code=code, reason=reason)
            await self.disconnect(conn)
