"""Like service — product likes and their counts.

The toggle runs check → insert/delete → recount inside one transaction
and only returns after commit. Callers broadcast the returned count; a
concurrent toggle may already have moved it on, so the broadcast is a
best-effort snapshot, never an increment.
"""

from typing import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketwire.db.models import ProductLike


class LikeService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def toggle(self, product_id: int, user_id: int) -> tuple[bool, int]:
        """Like or unlike. Returns (is_liked, likes_count) as committed."""
        async with self.session_factory() as db:
            async with db.begin():
                existing = await db.scalar(
                    select(ProductLike.id)
                    .where(
                        ProductLike.product_id == product_id,
                        ProductLike.user_id == user_id,
                    )
                    .limit(1)
                )
                if existing is not None:
                    await db.execute(
                        delete(ProductLike).where(
                            ProductLike.product_id == product_id,
                            ProductLike.user_id == user_id,
                        )
                    )
                    is_liked = False
                else:
                    db.add(ProductLike(product_id=product_id, user_id=user_id))
                    await db.flush()
                    is_liked = True

                count = await self._count(db, product_id)
        return is_liked, count

    async def count(self, product_id: int) -> int:
        async with self.session_factory() as db:
            return await self._count(db, product_id)

    async def counts(self, product_ids: Iterable[int]) -> dict[int, int]:
        """Like counts for many products; every requested id is present."""
        ids = list(dict.fromkeys(product_ids))
        if not ids:
            return {}
        counts = {pid: 0 for pid in ids}
        async with self.session_factory() as db:
            result = await db.execute(
                select(ProductLike.product_id, func.count(ProductLike.id))
                .where(ProductLike.product_id.in_(ids))
                .group_by(ProductLike.product_id)
            )
            for product_id, cnt in result.all():
                counts[product_id] = int(cnt)
        return counts

    async def liked_products(self, user_id: int) -> list[int]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(ProductLike.product_id)
                .where(ProductLike.user_id == user_id)
                .order_by(ProductLike.created_at.desc(), ProductLike.id.desc())
            )
            return list(result.scalars().all())

    @staticmethod
    async def _count(db: AsyncSession, product_id: int) -> int:
        cnt = await db.scalar(
            select(func.count(ProductLike.id)).where(ProductLike.product_id == product_id)
        )
        return int(cnt or 0)
