"""The three hubs of one process, wired to their collaborators.

Hubs are plain instances (no module-level singletons), so tests can build
as many independent sets as they like.
"""

from dataclasses import dataclass, field

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketwire.config import Settings
from marketwire.realtime.analytics import AnalyticsHub
from marketwire.realtime.chat import ChatHub
from marketwire.realtime.heartbeat import Heartbeat
from marketwire.realtime.likes import LikesHub
from marketwire.services.analytics_store import AnalyticsStore
from marketwire.services.chat_store import ChatStore
from marketwire.services.like_service import LikeService
from marketwire.services.notification_service import NotificationService

logger = structlog.get_logger()


@dataclass
class Hubs:
    chat: ChatHub
    likes: LikesHub
    analytics: AnalyticsHub
    heartbeat_interval: float = 30.0
    flush_interval: float = 2.0
    heartbeats: list[Heartbeat] = field(default_factory=list)

    async def start(self) -> None:
        """Start heartbeats (chat, likes) and the analytics flush timer."""
        self.heartbeats = [
            self.chat.heartbeat(self.heartbeat_interval),
            self.likes.heartbeat(self.heartbeat_interval),
        ]
        for hb in self.heartbeats:
            hb.start()
        self.analytics.aggregator.start(self.flush_interval)

    async def stop(self) -> None:
        for hb in self.heartbeats:
            await hb.stop()
        self.heartbeats = []
        await self.analytics.aggregator.stop()
        for hub in (self.likes, self.chat, self.analytics):
            await hub.close_all(code=1001, reason="server-shutdown")
        logger.info("hubs.stopped")


def build_hubs(
    session_factory: async_sessionmaker[AsyncSession],
    cfg: Settings,
) -> Hubs:
    return Hubs(
        chat=ChatHub(
            store=ChatStore(session_factory),
            notifications=NotificationService(session_factory),
            allow_unverified_auth=not cfg.is_production,
        ),
        likes=LikesHub(
            LikeService(session_factory),
            max_subscriptions=cfg.max_product_subscriptions,
        ),
        analytics=AnalyticsHub(
            AnalyticsStore(session_factory),
            window_seconds=cfg.active_window_seconds,
            snapshot_limit=cfg.top_pages_snapshot_limit,
        ),
        heartbeat_interval=cfg.heartbeat_interval_seconds,
        flush_interval=cfg.flush_interval_seconds,
    )
