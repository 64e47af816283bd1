"""SQLAlchemy ORM models — the durable side of the real-time hubs.

Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Column types stay generic (no dialect-specific types) so the same models
run on MySQL in production and SQLite in tests.

The hubs only ever *access* these tables through the service layer;
live state (presence, subscriptions, counters) never lands here.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from marketwire.config import settings


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ══════════════════════════════════════════════════════════════
# Chat
# ══════════════════════════════════════════════════════════════


class ChatThread(Base):
    """A 1:1 conversation. (user1_id, user2_id) is stored min/max ordered,
    so each unordered pair of users maps to exactly one row."""

    __tablename__ = "chat_threads"
    __table_args__ = (UniqueConstraint("user1_id", "user2_id", name="uq_thread_pair"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user1_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user2_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    __table_args__ = (Index("ix_chat_messages_thread_seen", "thread_id", "seen"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    thread_id: Mapped[int] = mapped_column(
        ForeignKey("chat_threads.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_urls: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    product_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    seen: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


# ══════════════════════════════════════════════════════════════
# Notifications
# ══════════════════════════════════════════════════════════════


class Notification(Base):
    """In-app notification — the pull fallback when a push is missed."""

    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_read", "user_id", "is_read"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="chat")
    related_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


# ══════════════════════════════════════════════════════════════
# Product likes
# ══════════════════════════════════════════════════════════════


class ProductLike(Base):
    """One row per (product, user). The like count is COUNT(*) per product."""

    __tablename__ = settings.likes_table
    __table_args__ = (UniqueConstraint("product_id", "user_id", name="uq_like_product_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


# ══════════════════════════════════════════════════════════════
# Analytics
# ══════════════════════════════════════════════════════════════


class TrackedEvent(Base):
    """Raw tracked event (pageview, product_view or named event).

    `name` is the funnel/event name: "pageview" for page views,
    "product_view" for product views, the client-supplied name otherwise.
    """

    __tablename__ = "sa_events"
    __table_args__ = (Index("ix_sa_events_name_time", "name", "event_time_utc"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    anon_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    path: Mapped[str] = mapped_column(String(512), nullable=False, default="/")
    referrer: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    event_time_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
