"""Notification service — durable in-app notifications."""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketwire.db.models import Notification


class NotificationService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(
        self,
        user_id: int,
        title: str,
        body: str,
        type: str = "chat",
        related_id: Optional[int] = None,
    ) -> Notification:
        async with self.session_factory() as db:
            notification = Notification(
                user_id=user_id,
                title=title,
                body=body,
                type=type,
                related_id=related_id,
            )
            db.add(notification)
            await db.commit()
            return notification

    async def list_unread(self, user_id: int) -> list[Notification]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Notification)
                .where(Notification.user_id == user_id, Notification.is_read.is_(False))
                .order_by(Notification.created_at.desc(), Notification.id.desc())
            )
            return list(result.scalars().all())

    async def mark_read(self, notification_id: int, user_id: int) -> bool:
        """Mark one of the user's notifications read. False if not theirs/missing."""
        async with self.session_factory() as db:
            result = await db.execute(
                update(Notification)
                .where(Notification.id == notification_id, Notification.user_id == user_id)
                .values(is_read=True)
            )
            await db.commit()
            return bool(result.rowcount)

    async def mark_all_read(self, user_id: int) -> int:
        async with self.session_factory() as db:
            result = await db.execute(
                update(Notification)
                .where(Notification.user_id == user_id, Notification.is_read.is_(False))
                .values(is_read=True)
            )
            await db.commit()
            return result.rowcount or 0
