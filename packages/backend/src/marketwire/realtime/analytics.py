"""Analytics hub — live dashboard sockets.

On connect a dashboard gets `hello`, then snapshots from the durable
store (`top_pages_snapshot`, `funnel_snapshot`) and the current
`active_now`. After that it only receives what the aggregator flushes.
"""

from typing import Optional

import structlog

from marketwire.realtime.aggregator import AnalyticsAggregator, TrackEvent
from marketwire.realtime.connection import Connection, now_ms
from marketwire.realtime.frames import analytics_frames
from marketwire.realtime.hub import Hub
from marketwire.services.analytics_store import AnalyticsStore

logger = structlog.get_logger()


class AnalyticsHub(Hub):
    name = "analytics"
    frames = analytics_frames

    def __init__(
        self,
        store: Optional[AnalyticsStore] = None,
        window_seconds: int = 300,
        snapshot_limit: int = 50,
    ):
        super().__init__()
        self.store = store
        self.snapshot_limit = snapshot_limit
        self.aggregator = AnalyticsAggregator(self.broadcast, window_seconds=window_seconds)

    def record_event(self, event: TrackEvent) -> None:
        self.aggregator.record_event(event)

    async def on_connect(self, conn: Connection) -> None:
        await conn.send({"type": "hello", "now": now_ms()})

        if self.store is not None:
            try:
                rows = await self.store.top_pages(hours=24, limit=self.snapshot_limit)
                await conn.send({"type": "top_pages_snapshot", "rows": rows})
            except Exception:
                logger.exception("analytics.top_pages_snapshot_failed")
            try:
                funnel = await self.store.funnel(days=7)
                await conn.send({"type": "funnel_snapshot", **funnel})
            except Exception:
                logger.exception("analytics.funnel_snapshot_failed")

        await conn.send({"type": "active_now", "count": self.aggregator.get_active_now()})
