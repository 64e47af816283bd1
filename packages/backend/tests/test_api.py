"""Tests for the REST routes — health, likes, tracking, tickets, notifications."""

import uuid

import pytest

from conftest import bearer, make_conn
from marketwire.auth.tickets import verify_ticket
from marketwire.services.notification_service import NotificationService


def track_body(**overrides):
    body = {
        "event_id": str(uuid.uuid4()),
        "anon_id": str(uuid.uuid4()),
        "type": "pageview",
        "path": "/shop?utm=x",
    }
    body.update(overrides)
    return body


# ─── Health ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/api/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "healthy"
    assert data["database"] == "ok"
    assert data["realtime"] == {"chat": 0, "likes": 0, "analytics": 0, "online_users": 0}


@pytest.mark.asyncio
async def test_security_headers(client):
    r = await client.get("/api/health")
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["Cache-Control"] == "no-store"
    assert "Strict-Transport-Security" not in r.headers


@pytest.mark.asyncio
async def test_request_id_generated_and_propagated(client):
    r1 = await client.get("/api/health")
    r2 = await client.get("/api/health")
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]

    r = await client.get("/api/health", headers={"X-Request-ID": "trace-123"})
    assert r.headers["X-Request-ID"] == "trace-123"


# ─── Likes ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_toggle_like_requires_auth(client):
    r = await client.post("/api/products/42/like")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_toggle_like_pushes_count_to_subscribers(client, db_hubs):
    watcher = make_conn(db_hubs.likes)
    watcher.subscriptions.add(42)
    bystander = make_conn(db_hubs.likes)
    bystander.subscriptions.add(43)

    r = await client.post("/api/products/42/like", headers=bearer(1))
    assert r.status_code == 200
    assert r.json() == {"success": True, "product_id": 42, "is_liked": True, "likes_count": 1}
    assert watcher.websocket.sent == [{"type": "like:update", "product_id": 42, "likes_count": 1}]

    r = await client.post("/api/products/42/like", headers=bearer(1))
    assert r.json()["is_liked"] is False
    assert watcher.websocket.sent[-1]["likes_count"] == 0
    assert bystander.websocket.sent == []


@pytest.mark.asyncio
async def test_like_counts(client):
    await client.post("/api/products/1/like", headers=bearer(1))
    await client.post("/api/products/1/like", headers=bearer(2))
    await client.post("/api/products/2/like", headers=bearer(1))

    r = await client.get("/api/products/likes", params={"ids": "1,2,3,junk"})
    assert r.json() == {"counts": {"1": 2, "2": 1, "3": 0}}

    r = await client.get("/api/products/likes", params={"ids": "1,--5,², 2 "})
    assert r.status_code == 200
    assert r.json() == {"counts": {"1": 2, "2": 1}}

    r = await client.get("/api/products/1/likes")
    assert r.json() == {"product_id": 1, "likes_count": 2}

    r = await client.get("/api/me/likes", headers=bearer(2))
    assert r.json() == {"user_id": 2, "product_ids": [1]}


# ─── Tracking ───────────────────────────────────────────


@pytest.mark.asyncio
async def test_track_feeds_live_aggregator(client, db_hubs):
    r = await client.post("/api/analytics/v1/track", json=track_body())
    assert r.status_code == 200
    assert r.json() == {"ok": True, "duplicate": False}

    frames = await db_hubs.analytics.aggregator.flush()
    pages = next(f for f in frames if f["type"] == "top_pages_diff")
    assert pages["rows"] == [{"path": "/shop", "views": 1, "visitors": 1}]


@pytest.mark.asyncio
async def test_track_duplicate_counted_once(client, db_hubs):
    body = track_body()
    await client.post("/api/analytics/v1/track", json=body)
    r = await client.post("/api/analytics/v1/track", json=body)

    assert r.json() == {"ok": True, "duplicate": True}
    frames = await db_hubs.analytics.aggregator.flush()
    pages = next(f for f in frames if f["type"] == "top_pages_diff")
    assert pages["rows"][0]["views"] == 1


@pytest.mark.asyncio
async def test_track_funnel_event(client, db_hubs):
    await client.post(
        "/api/analytics/v1/track",
        json=track_body(type="event", name="add_to_cart", path="/p/1"),
    )
    frames = await db_hubs.analytics.aggregator.flush()
    funnel = next(f for f in frames if f["type"] == "funnel_diff")
    assert funnel["add_to_cart"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"event_id": "not-a-uuid"},
        {"anon_id": "1234"},
        {"type": "click"},
        {"name": "x" * 65},
        {"ts": 10**20},
        {"ts": -1},
    ],
)
async def test_track_rejects_bad_input(client, overrides):
    r = await client.post("/api/analytics/v1/track", json=track_body(**overrides))
    assert r.status_code == 422


# ─── Tickets ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_ws_ticket(client):
    r = await client.post("/api/analytics/ws-ticket", headers=bearer(5, role="admin"))
    assert r.status_code == 200
    data = r.json()
    assert data["ttl_sec"] == 60
    assert verify_ticket(data["ticket"]).user_id == 5


@pytest.mark.asyncio
async def test_ws_ticket_requires_auth(client):
    r = await client.post("/api/analytics/ws-ticket")
    assert r.status_code == 401
    r = await client.post("/api/analytics/ws-ticket", headers={"Authorization": "Bearer junk"})
    assert r.status_code == 401


# ─── Notifications ──────────────────────────────────────


@pytest.mark.asyncio
async def test_notifications_read_refreshes_badges(client, session_factory, db_hubs):
    svc = NotificationService(session_factory)
    first = await svc.create(7, "New message", "You have received a message.", related_id=3)
    await svc.create(7, "New message", "You have received a message.", related_id=4)
    await svc.create(8, "Other", "Not yours")

    online = make_conn(db_hubs.chat)
    online.identity = 7
    db_hubs.chat.presence.register(7, online)

    r = await client.get("/api/notifications", headers=bearer(7))
    assert sorted(n["related_id"] for n in r.json()) == [3, 4]

    r = await client.post(f"/api/notifications/{first.id}/read", headers=bearer(7))
    assert r.json() == {"success": True}
    assert online.websocket.sent[-1] == {
        "type": "nav_counts",
        "payload": {"notifications": 1, "messages": 0},
    }

    r = await client.post("/api/notifications/read-all", headers=bearer(7))
    assert r.json() == {"success": True, "updated": 1}
    assert online.websocket.sent[-1]["payload"]["notifications"] == 0


@pytest.mark.asyncio
async def test_cannot_read_someone_elses_notification(client, session_factory):
    other = await NotificationService(session_factory).create(8, "t", "b")
    r = await client.post(f"/api/notifications/{other.id}/read", headers=bearer(7))
    assert r.status_code == 404
