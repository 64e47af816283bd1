"""Analytics aggregator — in-memory live counters for the dashboard.

Tracked events feed three accumulators:

- last-seen per anonymous visitor → "active now" (seen in the window)
- per-path page views + unique visitors since the last flush
- funnel step counters since the last flush

A free-running timer flushes every couple of seconds: `active_now` goes
out on every tick, `top_pages_diff` and `funnel_diff` only when something
happened. Each accumulator is snapshotted and reset with no await in
between, so under asyncio an event lands either in this flush or in the
next one, never both and never neither.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlsplit

import structlog

from marketwire.realtime.connection import now_ms

logger = structlog.get_logger()

PAGE_HIT_KINDS = frozenset({"pageview", "product_view"})
FUNNEL_STEPS = ("product_view", "add_to_cart", "checkout_start")

Broadcast = Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class TrackEvent:
    """A normalized tracked event as the aggregator consumes it."""

    kind: str
    name: Optional[str] = None
    path: Optional[str] = None
    visitor_id: Optional[str] = None
    timestamp: Optional[int] = None  # epoch ms


def normalize_path(raw: Optional[str]) -> str:
    """Clean pathname: query and fragment stripped, "/" when empty."""
    if not raw:
        return "/"
    text = str(raw).strip()
    try:
        path = urlsplit(text).path
    except ValueError:
        path = text.split("?", 1)[0].split("#", 1)[0]
    if not path:
        return "/"
    return path if path.startswith("/") else f"/{path}"


class AnalyticsAggregator:
    def __init__(
        self,
        broadcast: Broadcast,
        window_seconds: int = 300,
        clock: Callable[[], int] = now_ms,
    ):
        self.broadcast = broadcast
        self.window_ms = window_seconds * 1000
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

        self.last_seen: dict[str, int] = {}
        self._page_views: dict[str, int] = {}
        self._page_visitors: dict[str, set[str]] = {}
        self._funnel: dict[str, int] = dict.fromkeys(FUNNEL_STEPS, 0)

    # ─── Ingestion ──────────────────────────────────────

    def record_event(self, event: TrackEvent) -> None:
        kind = (event.kind or "").lower()
        name = (event.name or "").lower()

        if event.visitor_id:
            self.last_seen[event.visitor_id] = event.timestamp or self.clock()

        if kind in PAGE_HIT_KINDS or (kind == "event" and name == "pageview"):
            path = normalize_path(event.path)
            self._page_views[path] = self._page_views.get(path, 0) + 1
            if event.visitor_id:
                self._page_visitors.setdefault(path, set()).add(event.visitor_id)

        # Independent of the page-hit counter above: a product_view counts in both.
        if kind == "product_view":
            self._funnel["product_view"] += 1
        elif kind == "event" and name in self._funnel:
            self._funnel[name] += 1

    # ─── Snapshots ──────────────────────────────────────

    def get_active_now(self) -> int:
        """Visitors seen inside the window; older entries are evicted."""
        cutoff = self.clock() - self.window_ms
        stale = [vid for vid, ts in self.last_seen.items() if ts < cutoff]
        for vid in stale:
            del self.last_seen[vid]
        return len(self.last_seen)

    def _active_now_frame(self) -> dict[str, Any]:
        return {"type": "active_now", "count": self.get_active_now()}

    def _page_diff_frame(self) -> Optional[dict[str, Any]]:
        if not self._page_views:
            return None
        views, visitors = self._page_views, self._page_visitors
        self._page_views, self._page_visitors = {}, {}
        rows = [
            {"path": path, "views": count, "visitors": len(visitors.get(path, ()))}
            for path, count in views.items()
        ]
        return {"type": "top_pages_diff", "rows": rows}

    def _funnel_frame(self) -> Optional[dict[str, Any]]:
        if not any(self._funnel.values()):
            return None
        counters = self._funnel
        self._funnel = dict.fromkeys(FUNNEL_STEPS, 0)
        return {"type": "funnel_diff", **counters}

    # ─── Flush ──────────────────────────────────────────

    async def flush(self) -> list[dict[str, Any]]:
        """One tick. Returns the frames that were broadcast."""
        frames = []
        for build in (self._active_now_frame, self._page_diff_frame, self._funnel_frame):
            try:
                frame = build()
            except Exception:
                logger.exception("analytics.snapshot_failed", step=build.__name__)
                continue
            if frame is not None:
                frames.append(frame)

        for frame in frames:
            try:
                await self.broadcast(frame)
            except Exception:
                logger.exception("analytics.broadcast_failed", frame_type=frame["type"])
        return frames

    async def run_loop(self, interval: float) -> None:
        logger.info("analytics.flush_started", interval=interval)
        while True:
            await asyncio.sleep(interval)
            try:
                await self.flush()
            except Exception:
                logger.exception("analytics.flush_failed")

    def start(self, interval: float = 2.0) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_loop(interval))
        return self._task

    def dispose(self) -> None:
        """Cancel the flush timer. Safe to call more than once."""
        if self._task is not None:
            self._task.cancel()

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("analytics.flush_stopped")
