"""Test fixtures — fake sockets, in-memory stores, SQLite-backed services.

Two kinds of tests live here:

1. Hub tests drive ChatHub / LikesHub / AnalyticsHub directly with
   FakeWebSocket objects and in-memory store doubles, no network at all.
2. Service and HTTP tests run the real SQLAlchemy services against a
   fresh in-memory SQLite database per test (aiosqlite + StaticPool so
   every session sees the same memory DB).
"""

import asyncio
import itertools
import json
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from starlette.websockets import WebSocketState

from marketwire.api.deps import get_session_factory
from marketwire.auth.jwt import create_access_token
from marketwire.config import settings
from marketwire.db.models import Base
from marketwire.main import create_app
from marketwire.realtime.analytics import AnalyticsHub
from marketwire.realtime.chat import ChatHub
from marketwire.realtime.connection import Connection
from marketwire.realtime.hubs import Hubs, build_hubs
from marketwire.realtime.likes import LikesHub
from marketwire.services.chat_store import canonical_pair


# ─── Fake transport ─────────────────────────────────────


class FakeWebSocket:
    """Just enough of starlette's WebSocket for Connection and Hub.serve."""

    def __init__(self, fail_sends: bool = False, hang_sends: bool = False):
        self.sent: list[dict] = []
        self.application_state = WebSocketState.CONNECTED
        self.close_code: Optional[int] = None
        self.fail_sends = fail_sends
        self.hang_sends = hang_sends
        self.inbox: asyncio.Queue = asyncio.Queue()

    async def send_text(self, text: str) -> None:
        if self.fail_sends:
            raise RuntimeError("socket is closed")
        if self.hang_sends:
            await asyncio.sleep(3600)
        self.sent.append(json.loads(text))

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        self.application_state = WebSocketState.DISCONNECTED
        self.close_code = code

    async def receive(self) -> dict:
        return await self.inbox.get()

    def feed(self, frame) -> None:
        text = frame if isinstance(frame, str) else json.dumps(frame)
        self.inbox.put_nowait({"type": "websocket.receive", "text": text})

    def hang_up(self) -> None:
        self.inbox.put_nowait({"type": "websocket.disconnect", "code": 1000})

    def of_type(self, frame_type: str) -> list[dict]:
        return [f for f in self.sent if f.get("type") == frame_type]

    def types(self) -> list[str]:
        return [f.get("type") for f in self.sent]


def make_conn(hub=None, bound_identity=None, **ws_kwargs) -> Connection:
    conn = Connection(FakeWebSocket(**ws_kwargs), bound_identity=bound_identity, send_timeout=0.2)
    if hub is not None:
        hub.connect(conn)
    return conn


async def send(hub, conn: Connection, frame) -> None:
    await hub.handle(conn, frame if isinstance(frame, str) else json.dumps(frame))


# ─── In-memory collaborators ────────────────────────────


class FakeNotifications:
    def __init__(self):
        self.created: list[dict] = []
        self.fail = False

    async def create(self, user_id, title, body, type="chat", related_id=None):
        if self.fail:
            raise RuntimeError("notifications table is down")
        record = dict(user_id=user_id, title=title, body=body, type=type, related_id=related_id)
        self.created.append(record)
        return SimpleNamespace(id=len(self.created), **record)


class FakeChatStore:
    def __init__(self, notifications: FakeNotifications):
        self.notifications = notifications
        self.threads: dict[tuple[int, int], int] = {}
        self.messages: list[SimpleNamespace] = []
        self.seen_calls: list[tuple[int, int]] = []
        self._thread_ids = itertools.count(100)
        self._message_ids = itertools.count(1)

    async def ensure_thread(self, a, b):
        key = canonical_pair(a, b)
        if key not in self.threads:
            self.threads[key] = next(self._thread_ids)
        return self.threads[key]

    async def thread_participants(self, thread_id):
        for pair, tid in self.threads.items():
            if tid == thread_id:
                return pair
        return None

    async def insert_message(self, thread_id, sender_id, content, image_urls, product_id=None):
        message = SimpleNamespace(
            id=next(self._message_ids),
            thread_id=thread_id,
            sender_id=sender_id,
            content=content,
            image_urls=image_urls,
            product_id=product_id,
            seen=False,
            created_at=datetime.now(timezone.utc),
        )
        self.messages.append(message)
        return message

    async def mark_seen(self, thread_id, reader_id):
        self.seen_calls.append((thread_id, reader_id))
        flipped = 0
        for m in self.messages:
            if m.thread_id == thread_id and m.sender_id != reader_id and not m.seen:
                m.seen = True
                flipped += 1
        return flipped

    async def nav_counts(self, user_id):
        unread = 0
        for m in self.messages:
            pair = await self.thread_participants(m.thread_id)
            if pair and user_id in pair and m.sender_id != user_id and not m.seen:
                unread += 1
        notifs = sum(1 for n in self.notifications.created if n["user_id"] == user_id)
        return {"notifications": notifs, "messages": unread}


class FakeLikeService:
    def __init__(self, counts: Optional[dict[int, int]] = None):
        self.counts_by_product = dict(counts or {})
        self.count_calls: list[int] = []

    async def count(self, product_id):
        self.count_calls.append(product_id)
        return self.counts_by_product.get(product_id, 0)


class FakeAnalyticsStore:
    def __init__(self):
        self.pages = [{"path": "/", "views": 10, "visitors": 4}]
        self.steps = {"product_view": 5, "add_to_cart": 2, "checkout_start": 1}

    async def top_pages(self, hours=24, limit=50):
        return self.pages[:limit]

    async def funnel(self, days=7):
        return dict(self.steps)


# ─── Hub fixtures ───────────────────────────────────────


@pytest.fixture()
def notifications():
    return FakeNotifications()


@pytest.fixture()
def chat_store(notifications):
    return FakeChatStore(notifications)


@pytest.fixture()
def chat_hub(chat_store, notifications):
    return ChatHub(chat_store, notifications, allow_unverified_auth=True)


@pytest.fixture()
def like_service():
    return FakeLikeService({42: 7, 7: 3, 8: 1})


@pytest.fixture()
def likes_hub(like_service):
    return LikesHub(like_service, max_subscriptions=3)


@pytest.fixture()
def fake_hubs(chat_hub, likes_hub):
    return Hubs(
        chat=chat_hub,
        likes=likes_hub,
        analytics=AnalyticsHub(FakeAnalyticsStore()),
    )


# ─── SQLite-backed services ─────────────────────────────


@pytest_asyncio.fixture()
async def session_factory():
    """Fresh in-memory database with all tables, one per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def db_hubs(session_factory):
    return build_hubs(session_factory, settings)


@pytest_asyncio.fixture()
async def client(session_factory, db_hubs):
    """HTTP client over the real routes, SQLite behind every service.

    ASGITransport doesn't run the lifespan, so no timers start here.
    """
    app = create_app(hubs=db_hubs)
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def bearer(user_id: int, role: str = "user") -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, role=role)}"}
