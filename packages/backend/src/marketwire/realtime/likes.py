"""Product-likes hub — live like counters, pushed only to subscribers.

Inbound:  ping, like:subscribe, like:unsubscribe
Outbound: pong, like:subscribed, like:unsubscribed, like:update, like:error

Product ids are ints everywhere: frames are normalized at parse time and
`broadcast_like_update` normalizes its argument, so "42" and 42 always
hit the same subscription.
"""

import structlog

from marketwire.realtime.connection import Connection
from marketwire.realtime.frames import LikeSubscribeFrame, LikeUnsubscribeFrame, likes_frames
from marketwire.realtime.hub import Hub
from marketwire.services.like_service import LikeService

logger = structlog.get_logger()


class LikesHub(Hub):
    name = "likes"
    frames = likes_frames

    def __init__(self, likes: LikeService, max_subscriptions: int = 500):
        super().__init__()
        self.likes = likes
        self.max_subscriptions = max_subscriptions
        self.route(LikeSubscribeFrame, self.on_subscribe)
        self.route(LikeUnsubscribeFrame, self.on_unsubscribe)

    async def on_subscribe(self, conn: Connection, frame: LikeSubscribeFrame) -> None:
        product_id = frame.product_id
        if (
            product_id not in conn.subscriptions
            and len(conn.subscriptions) >= self.max_subscriptions
        ):
            await conn.send(
                {"type": "like:error", "product_id": product_id, "reason": "subscription_limit"}
            )
            return

        conn.subscriptions.add(product_id)
        await conn.send({"type": "like:subscribed", "product_id": product_id})

        count = await self.likes.count(product_id)
        await conn.send({"type": "like:update", "product_id": product_id, "likes_count": count})

    async def on_unsubscribe(self, conn: Connection, frame: LikeUnsubscribeFrame) -> None:
        conn.subscriptions.discard(frame.product_id)
        await conn.send({"type": "like:unsubscribed", "product_id": frame.product_id})

    async def broadcast_like_update(self, product_id: int | str, likes_count: int) -> int:
        """Push a new count to the sockets subscribed to that product only."""
        pid = int(product_id)
        targets = [c for c in self.connections if pid in c.subscriptions]
        delivered = await self.broadcast(
            {"type": "like:update", "product_id": pid, "likes_count": likes_count}, targets
        )
        logger.debug("likes.update_broadcast", product_id=pid, delivered=delivered)
        return delivered
