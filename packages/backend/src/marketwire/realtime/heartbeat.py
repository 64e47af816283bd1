"""Heartbeat — the only liveness check for chat and likes sockets.

Every interval: terminate sockets that stayed silent since the previous
sweep, then mark the rest not-alive and send them a heartbeat frame. Any
inbound frame (a `pong`, or anything else) marks a socket alive again.
"""

import asyncio
from typing import Awaitable, Callable, Iterable, Optional

import structlog

from marketwire.realtime.connection import Connection, broadcast, now_ms

logger = structlog.get_logger()


class Heartbeat:
    def __init__(
        self,
        name: str,
        connections: Callable[[], Iterable[Connection]],
        on_dead: Callable[[Connection], Awaitable[None]],
        interval: float = 30.0,
    ):
        self.name = name
        self.connections = connections
        self.on_dead = on_dead
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    async def sweep(self) -> int:
        """Run one liveness pass. Returns how many sockets were terminated."""
        terminated = 0
        survivors = []
        for conn in list(self.connections()):
            if not conn.alive:
                await conn.terminate(code=1001, reason="heartbeat-timeout")
                await self.on_dead(conn)
                terminated += 1
                continue
            conn.alive = False
            survivors.append(conn)
        await broadcast(survivors, {"type": "heartbeat", "t": now_ms()})
        if terminated:
            logger.info("heartbeat.terminated", hub=self.name, count=terminated)
        return terminated

    async def run_loop(self) -> None:
        logger.info("heartbeat.started", hub=self.name, interval=self.interval)
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("heartbeat.error", hub=self.name)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_loop())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("heartbeat.stopped", hub=self.name)
