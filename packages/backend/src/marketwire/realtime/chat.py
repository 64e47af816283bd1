"""Chat hub — presence, typing, read receipts and direct messages.

Per-connection states: unauthenticated → authenticated → closed.

Identity comes from the upgrade credentials (JWT or ticket) whenever the
client presented them; an `auth` frame then only confirms it, and any id
claimed later in a frame body must match. Only when unverified auth is
allowed (development) does the `auth` frame's `user_id` decide identity.

Outbound frames:
    auth_ok, auth_error, nav_counts, user_online, user_offline,
    online_users, subscribed, echo, typing, stop_typing, new_thread,
    message_ack, new_message, messages_seen, notification
"""

from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from marketwire.realtime.connection import Connection, now_ms
from marketwire.realtime.frames import (
    AuthFrame,
    EchoFrame,
    MessageSeenFrame,
    MessageSendFrame,
    NavCountsFrame,
    SubscribeFrame,
    TypingFrame,
    WhoIsOnlineFrame,
    chat_frames,
)
from marketwire.realtime.hub import Hub
from marketwire.realtime.presence import PresenceRegistry
from marketwire.services.chat_store import ChatStore
from marketwire.services.notification_service import NotificationService

logger = structlog.get_logger()

NOTIFICATION_TITLE = "New message"
NOTIFICATION_BODY = "You have received a message."


class ChatHub(Hub):
    name = "chat"
    frames = chat_frames

    def __init__(
        self,
        store: ChatStore,
        notifications: NotificationService,
        allow_unverified_auth: bool = False,
    ):
        super().__init__()
        self.store = store
        self.notifications = notifications
        self.allow_unverified_auth = allow_unverified_auth
        self.presence = PresenceRegistry()

        self.route(AuthFrame, self.on_auth)
        self.route(EchoFrame, self.on_echo)
        self.route(NavCountsFrame, self.on_nav_counts)
        self.route(WhoIsOnlineFrame, self.on_who_is_online)
        self.route(SubscribeFrame, self.on_subscribe)
        self.route(TypingFrame, self.on_typing)
        self.route(MessageSeenFrame, self.on_message_seen)
        self.route(MessageSendFrame, self.on_message_send)

    # ─── Presence ───────────────────────────────────────

    def _others(self, conn: Connection) -> list[Connection]:
        """Authenticated connections other than `conn`."""
        return [c for c in self.connections if c is not conn and c.identity is not None]

    async def on_disconnect(self, conn: Connection) -> None:
        if conn.identity is None:
            return
        if not self.presence.unregister(conn.identity, conn):
            # A newer socket owns this identity; the user is still online.
            return
        logger.info("chat.user_offline", user_id=conn.identity)
        await self.broadcast(
            {"type": "user_offline", "user_id": conn.identity}, self._others(conn)
        )

    async def push_nav_counts(self, conn: Optional[Connection], user_id: int) -> None:
        if conn is None:
            return
        counts = await self.store.nav_counts(user_id)
        await conn.send({"type": "nav_counts", "payload": counts})

    # ─── Handlers ───────────────────────────────────────

    async def on_auth(self, conn: Connection, frame: AuthFrame) -> None:
        claimed = frame.user_id
        if conn.bound_identity is not None:
            if claimed is not None and claimed != conn.bound_identity:
                logger.warning(
                    "chat.auth_mismatch", bound=conn.bound_identity, claimed=claimed
                )
                await conn.send({"type": "auth_error", "reason": "identity_mismatch"})
                return
            identity = conn.bound_identity
        elif self.allow_unverified_auth:
            if claimed is None or claimed <= 0:
                return
            identity = claimed
        else:
            await conn.send({"type": "auth_error", "reason": "credentials_required"})
            return

        if conn.identity is not None and conn.identity != identity:
            await conn.send({"type": "auth_error", "reason": "already_authenticated"})
            return

        conn.identity = identity
        replaced = self.presence.register(identity, conn)
        logger.info(
            "chat.auth_ok",
            user_id=identity,
            connection=conn.id,
            replaced=replaced.id if replaced else None,
        )
        await conn.send({"type": "auth_ok", "user_id": identity, "ts": now_ms()})

        try:
            await self.push_nav_counts(conn, identity)
        except Exception:
            logger.exception("chat.nav_counts_failed", user_id=identity)

        await self.broadcast({"type": "user_online", "user_id": identity}, self._others(conn))

    async def on_echo(self, conn: Connection, frame: EchoFrame) -> None:
        await conn.send({"type": "echo", "data": frame.data, "ts": now_ms()})

    async def on_nav_counts(self, conn: Connection, frame: NavCountsFrame) -> None:
        if conn.identity is None:
            return
        await self.push_nav_counts(conn, conn.identity)

    async def on_who_is_online(self, conn: Connection, frame: WhoIsOnlineFrame) -> None:
        await conn.send({"type": "online_users", "users": self.presence.online()})

    async def on_subscribe(self, conn: Connection, frame: SubscribeFrame) -> None:
        conn.channels = list(frame.channels)
        await conn.send({"type": "subscribed", "channels": conn.channels})

    async def on_typing(self, conn: Connection, frame: TypingFrame) -> None:
        if conn.identity is None or not _same(frame.from_, conn.identity):
            return
        target = self.presence.get(frame.to)
        if target is not None:
            await target.send({"type": "typing", "from": conn.identity})

    async def on_message_seen(self, conn: Connection, frame: MessageSeenFrame) -> None:
        reader = conn.identity
        if reader is None or not frame.thread_id or not _same(frame.user_id, reader):
            return

        # Thread membership is not checked here; see DESIGN.md.
        await self.store.mark_seen(frame.thread_id, reader)

        participants = await self.store.thread_participants(frame.thread_id)
        if participants is None:
            return
        other = _other_participant(participants, reader)
        target = self.presence.get(other)
        if target is not None:
            await target.send(
                {"type": "messages_seen", "thread_id": frame.thread_id, "seen_by": reader}
            )

    async def on_message_send(self, conn: Connection, frame: MessageSendFrame) -> None:
        sender = conn.identity
        if sender is None or not _same(frame.sender_id, sender):
            return

        content = frame.content or ""
        image_urls = list(frame.image_urls or [])
        if not content and not image_urls:
            return

        thread_id = frame.thread_id
        if not thread_id and frame.receiver_id:
            if frame.receiver_id == sender:
                return
            thread_id = await self.store.ensure_thread(sender, frame.receiver_id)
            await conn.send({"type": "new_thread", "thread_id": thread_id})
        if not thread_id:
            return

        participants = await self.store.thread_participants(thread_id)
        if participants is None:
            logger.warning("chat.unknown_thread", thread_id=thread_id, sender_id=sender)
            return
        if sender not in participants:
            logger.warning("chat.not_a_participant", thread_id=thread_id, sender_id=sender)
            return

        product_id = frame.product_id
        message = await self.store.insert_message(
            thread_id=thread_id,
            sender_id=sender,
            content=content,
            image_urls=image_urls,
            product_id=product_id,
        )

        payload: dict[str, Any] = {
            "type": "new_message",
            "id": message.id,
            "thread_id": thread_id,
            "sender_id": sender,
            "content": content,
            "image_urls": image_urls,
            "created_at": _iso(message.created_at),
        }
        if product_id:
            payload["extra_data"] = {"product_id": product_id}

        if frame.temp_id is not None:
            await conn.send(
                {
                    "type": "message_ack",
                    "temp_id": frame.temp_id,
                    "message_id": message.id,
                    "thread_id": thread_id,
                }
            )
        await conn.send(payload)

        recipient = _other_participant(participants, sender)
        receiver_conn = self.presence.get(recipient)
        if receiver_conn is not None:
            await receiver_conn.send(payload)
            await receiver_conn.send({"type": "stop_typing", "from": sender})

        # Durable record even when offline; it's the pull fallback.
        try:
            await self.notifications.create(
                user_id=recipient,
                title=NOTIFICATION_TITLE,
                body=NOTIFICATION_BODY,
                type="chat",
                related_id=thread_id,
            )
        except Exception:
            logger.exception("chat.notification_failed", recipient=recipient, thread_id=thread_id)

        if receiver_conn is None:
            return
        await receiver_conn.send(
            {
                "type": "notification",
                "payload": {
                    "recipient_id": recipient,
                    "title": NOTIFICATION_TITLE,
                    "body": NOTIFICATION_BODY,
                    "type": "chat",
                    "related_id": thread_id,
                    "created_at": _iso(None),
                },
            }
        )
        await self.push_nav_counts(receiver_conn, recipient)


def _same(claimed: Optional[int], identity: int) -> bool:
    """A frame may omit the acting id; if it names one, it must be ours."""
    return claimed is None or claimed == identity


def _other_participant(participants: tuple[int, int], user_id: int) -> int:
    first, second = participants
    return second if user_id == first else first


def _iso(value: Optional[datetime]) -> str:
    value = value or datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
