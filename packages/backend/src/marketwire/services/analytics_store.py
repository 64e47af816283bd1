"""Analytics store — tracked events and dashboard snapshots.

The live dashboard gets diffs from the in-memory aggregator; these
queries only build the snapshot a freshly connected dashboard starts from.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketwire.db.models import TrackedEvent

FUNNEL_STEPS = ("product_view", "add_to_cart", "checkout_start")
PAGE_HIT_NAMES = ("pageview", "product_view")


class AnalyticsStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(
        self,
        event_id: str,
        anon_id: str,
        kind: str,
        name: str,
        path: str,
        event_time: datetime,
        user_id: Optional[int] = None,
        referrer: Optional[str] = None,
        payload: Optional[dict] = None,
    ) -> bool:
        """Persist one event. Returns False if `event_id` was already stored."""
        async with self.session_factory() as db:
            db.add(
                TrackedEvent(
                    event_id=event_id,
                    anon_id=anon_id,
                    user_id=user_id,
                    kind=kind,
                    name=name[:64],
                    path=path[:512],
                    referrer=referrer[:512] if referrer else None,
                    payload=payload or {},
                    event_time_utc=event_time,
                )
            )
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                return False
            return True

    async def top_pages(self, hours: int = 24, limit: int = 50) -> list[dict]:
        since = datetime.now(timezone.utc) - timedelta(hours=hours)
        views = func.count(TrackedEvent.id).label("views")
        async with self.session_factory() as db:
            result = await db.execute(
                select(
                    TrackedEvent.path,
                    views,
                    func.count(distinct(TrackedEvent.anon_id)).label("visitors"),
                )
                .where(
                    TrackedEvent.name.in_(PAGE_HIT_NAMES),
                    TrackedEvent.event_time_utc >= since,
                )
                .group_by(TrackedEvent.path)
                .order_by(views.desc())
                .limit(limit)
            )
            return [
                {"path": path, "views": int(v), "visitors": int(u)}
                for path, v, u in result.all()
            ]

    async def funnel(self, days: int = 7) -> dict[str, int]:
        since = datetime.now(timezone.utc) - timedelta(days=days)
        counts = {step: 0 for step in FUNNEL_STEPS}
        async with self.session_factory() as db:
            result = await db.execute(
                select(TrackedEvent.name, func.count(TrackedEvent.id))
                .where(
                    TrackedEvent.name.in_(FUNNEL_STEPS),
                    TrackedEvent.event_time_utc >= since,
                )
                .group_by(TrackedEvent.name)
            )
            for name, cnt in result.all():
                counts[name] = int(cnt)
        return counts
