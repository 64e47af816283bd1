"""Chat store — durable threads, messages and badge counters.

Service layer for the chat hub. Every call opens its own short session
from the injected factory: the hub is long-lived and must not hold a
session (or a pooled connection) across frames.
"""

from typing import Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketwire.db.models import ChatMessage, ChatThread, Notification


def canonical_pair(a: int, b: int) -> tuple[int, int]:
    """Order two participant ids so (a, b) and (b, a) give the same key."""
    a, b = int(a), int(b)
    return (a, b) if a <= b else (b, a)


class ChatStore:
    """Threads, messages and unread counters."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def ensure_thread(self, user_a: int, user_b: int) -> int:
        """Return the thread id for the unordered pair, creating it if needed."""
        low, high = canonical_pair(user_a, user_b)
        async with self.session_factory() as db:
            thread_id = await self._find_thread(db, low, high)
            if thread_id is not None:
                return thread_id

            thread = ChatThread(user1_id=low, user2_id=high)
            db.add(thread)
            try:
                await db.commit()
            except IntegrityError:
                # Lost the race against the other participant; theirs wins.
                await db.rollback()
                thread_id = await self._find_thread(db, low, high)
                if thread_id is None:
                    raise
                return thread_id
            return thread.id

    async def _find_thread(self, db: AsyncSession, low: int, high: int) -> Optional[int]:
        result = await db.execute(
            select(ChatThread.id)
            .where(ChatThread.user1_id == low, ChatThread.user2_id == high)
            .limit(1)
        )
        return result.scalars().first()

    async def thread_participants(self, thread_id: int) -> Optional[tuple[int, int]]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(ChatThread.user1_id, ChatThread.user2_id)
                .where(ChatThread.id == thread_id)
                .limit(1)
            )
            row = result.first()
            return (row[0], row[1]) if row else None

    async def insert_message(
        self,
        thread_id: int,
        sender_id: int,
        content: str,
        image_urls: list[str],
        product_id: Optional[int] = None,
    ) -> ChatMessage:
        async with self.session_factory() as db:
            message = ChatMessage(
                thread_id=thread_id,
                sender_id=sender_id,
                content=content,
                image_urls=list(image_urls),
                product_id=product_id,
            )
            db.add(message)
            await db.commit()
            return message

    async def mark_seen(self, thread_id: int, reader_id: int) -> int:
        """Mark the other participant's messages in the thread as seen.

        Returns the number of messages flipped.
        """
        async with self.session_factory() as db:
            result = await db.execute(
                update(ChatMessage)
                .where(
                    ChatMessage.thread_id == thread_id,
                    ChatMessage.sender_id != reader_id,
                    ChatMessage.seen.is_(False),
                )
                .values(seen=True)
            )
            await db.commit()
            return result.rowcount or 0

    async def nav_counts(self, user_id: int) -> dict[str, int]:
        """Unread notifications + unread direct messages for the nav badges."""
        if not user_id:
            return {"notifications": 0, "messages": 0}

        async with self.session_factory() as db:
            notifications = await db.scalar(
                select(func.count(Notification.id)).where(
                    Notification.user_id == user_id,
                    Notification.is_read.is_(False),
                )
            )
            messages = await db.scalar(
                select(func.count(ChatMessage.id))
                .join(ChatThread, ChatMessage.thread_id == ChatThread.id)
                .where(
                    or_(
                        and_(
                            ChatThread.user1_id == user_id,
                            ChatMessage.sender_id == ChatThread.user2_id,
                        ),
                        and_(
                            ChatThread.user2_id == user_id,
                            ChatMessage.sender_id == ChatThread.user1_id,
                        ),
                    ),
                    ChatMessage.seen.is_(False),
                )
            )
        return {"notifications": int(notifications or 0), "messages": int(messages or 0)}
