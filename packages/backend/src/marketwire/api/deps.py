"""Shared route dependencies.

Services are built per request from the session factory; tests swap the
factory (and therefore every service) through dependency_overrides.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketwire.db.engine import async_session_factory
from marketwire.realtime.hubs import Hubs
from marketwire.services.analytics_store import AnalyticsStore
from marketwire.services.like_service import LikeService
from marketwire.services.notification_service import NotificationService


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session_factory


def get_hubs(request: Request) -> Hubs:
    return request.app.state.hubs


def get_like_service(factory=Depends(get_session_factory)) -> LikeService:
    return LikeService(factory)


def get_analytics_store(factory=Depends(get_session_factory)) -> AnalyticsStore:
    return AnalyticsStore(factory)


def get_notification_service(factory=Depends(get_session_factory)) -> NotificationService:
    return NotificationService(factory)
