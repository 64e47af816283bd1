"""Tests for the live analytics aggregator and the analytics hub."""

import asyncio

import pytest

from conftest import FakeAnalyticsStore, make_conn
from marketwire.realtime.aggregator import AnalyticsAggregator, TrackEvent, normalize_path
from marketwire.realtime.analytics import AnalyticsHub


class Clock:
    def __init__(self, now=1_000_000):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture()
def sent():
    return []


@pytest.fixture()
def clock():
    return Clock()


@pytest.fixture()
def aggregator(sent, clock):
    async def collect(frame):
        sent.append(frame)

    return AnalyticsAggregator(collect, window_seconds=300, clock=clock)


def pageview(path, visitor, **kwargs):
    return TrackEvent(kind="pageview", path=path, visitor_id=visitor, **kwargs)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("/shop?x=1", "/shop"),
        ("/shop#reviews", "/shop"),
        ("https://site.test/p/42?ref=mail", "/p/42"),
        ("shop", "/shop"),
        ("", "/"),
        (None, "/"),
        ("?only=query", "/"),
    ],
)
def test_normalize_path(raw, expected):
    assert normalize_path(raw) == expected


# ─── Flush ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_query_strings_fold_into_one_row(aggregator, sent):
    aggregator.record_event(pageview("/shop?x=1", "v1"))
    aggregator.record_event(pageview("/shop", "v2"))

    await aggregator.flush()

    assert sent[0] == {"type": "active_now", "count": 2}
    assert sent[1] == {
        "type": "top_pages_diff",
        "rows": [{"path": "/shop", "views": 2, "visitors": 2}],
    }


@pytest.mark.asyncio
async def test_same_visitor_counts_once(aggregator, sent):
    aggregator.record_event(pageview("/", "v1"))
    aggregator.record_event(pageview("/", "v1"))

    await aggregator.flush()

    assert sent[1]["rows"] == [{"path": "/", "views": 2, "visitors": 1}]


@pytest.mark.asyncio
async def test_diffs_reset_after_flush(aggregator, sent):
    aggregator.record_event(pageview("/a", "v1"))
    aggregator.record_event(TrackEvent(kind="event", name="add_to_cart", visitor_id="v1"))

    first = await aggregator.flush()
    second = await aggregator.flush()

    assert [f["type"] for f in first] == ["active_now", "top_pages_diff", "funnel_diff"]
    assert [f["type"] for f in second] == ["active_now"]


@pytest.mark.asyncio
async def test_events_between_flushes_counted_exactly_once(aggregator, sent):
    aggregator.record_event(pageview("/a", "v1"))
    await aggregator.flush()
    aggregator.record_event(pageview("/a", "v2"))
    await aggregator.flush()

    diffs = [f for f in sent if f["type"] == "top_pages_diff"]
    assert sum(row["views"] for f in diffs for row in f["rows"]) == 2


@pytest.mark.asyncio
async def test_funnel_counts(aggregator, sent):
    aggregator.record_event(TrackEvent(kind="product_view", path="/p/1", visitor_id="v1"))
    aggregator.record_event(TrackEvent(kind="event", name="Add_To_Cart", visitor_id="v1"))
    aggregator.record_event(TrackEvent(kind="event", name="checkout_start", visitor_id="v1"))
    aggregator.record_event(TrackEvent(kind="event", name="newsletter", visitor_id="v1"))

    frames = await aggregator.flush()

    funnel = next(f for f in frames if f["type"] == "funnel_diff")
    assert funnel == {
        "type": "funnel_diff",
        "product_view": 1,
        "add_to_cart": 1,
        "checkout_start": 1,
    }
    # product_view is also a page hit
    pages = next(f for f in frames if f["type"] == "top_pages_diff")
    assert pages["rows"] == [{"path": "/p/1", "views": 1, "visitors": 1}]


@pytest.mark.asyncio
async def test_named_pageview_event_counts_as_page_hit(aggregator):
    aggregator.record_event(TrackEvent(kind="event", name="pageview", path="/x", visitor_id="v"))
    frames = await aggregator.flush()
    assert frames[1]["rows"][0]["path"] == "/x"


def test_active_now_evicts_stale_visitors(aggregator, clock):
    aggregator.record_event(pageview("/", "old", timestamp=clock.now - 301_000))
    aggregator.record_event(pageview("/", "fresh"))

    assert aggregator.get_active_now() == 1
    assert "old" not in aggregator.last_seen

    clock.now += 301_000
    assert aggregator.get_active_now() == 0


@pytest.mark.asyncio
async def test_failed_broadcast_does_not_stop_other_frames(clock):
    delivered = []

    async def flaky(frame):
        if frame["type"] == "active_now":
            raise RuntimeError("socket gone")
        delivered.append(frame["type"])

    agg = AnalyticsAggregator(flaky, clock=clock)
    agg.record_event(pageview("/", "v1"))
    agg.record_event(TrackEvent(kind="event", name="add_to_cart", visitor_id="v1"))

    await agg.flush()

    assert delivered == ["top_pages_diff", "funnel_diff"]


@pytest.mark.asyncio
async def test_timer_keeps_flushing_and_dispose_stops_it(aggregator, sent):
    task = aggregator.start(0.01)
    await asyncio.sleep(0.05)
    aggregator.dispose()
    aggregator.dispose()

    with pytest.raises(asyncio.CancelledError):
        await task
    count = len(sent)
    assert count >= 2

    await asyncio.sleep(0.03)
    assert len(sent) == count


# ─── Hub ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_dashboard_gets_snapshots_on_connect():
    hub = AnalyticsHub(FakeAnalyticsStore())
    conn = make_conn()
    await hub.on_connect(conn)

    assert conn.websocket.types() == [
        "hello",
        "top_pages_snapshot",
        "funnel_snapshot",
        "active_now",
    ]
    assert conn.websocket.sent[1]["rows"] == [{"path": "/", "views": 10, "visitors": 4}]
    assert conn.websocket.sent[2]["add_to_cart"] == 2


@pytest.mark.asyncio
async def test_snapshot_failure_still_sends_active_now():
    store = FakeAnalyticsStore()

    async def broken(**kwargs):
        raise RuntimeError("db down")

    store.top_pages = broken
    hub = AnalyticsHub(store)
    conn = make_conn()
    await hub.on_connect(conn)

    assert conn.websocket.types() == ["hello", "funnel_snapshot", "active_now"]


@pytest.mark.asyncio
async def test_hub_flush_reaches_every_dashboard():
    hub = AnalyticsHub()
    a, b = make_conn(hub), make_conn(hub)

    hub.record_event(pageview("/", "v1"))
    await hub.aggregator.flush()

    for conn in (a, b):
        assert conn.websocket.types() == ["active_now", "top_pages_diff"]
