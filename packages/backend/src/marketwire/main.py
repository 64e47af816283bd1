"""FastAPI application factory.

create_app() returns a configured FastAPI instance with the REST API and
the three WebSocket hubs. Lifespan starts the hub timers (heartbeats,
analytics flush) and tears everything down on shutdown.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketwire import __version__
from marketwire.api import api_router
from marketwire.config import settings
from marketwire.realtime.hubs import Hubs, build_hubs

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the hub timers; on shutdown close every socket, then the pool."""
    logger.info(
        "marketwire.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )
    hubs: Hubs = app.state.hubs
    await hubs.start()
    logger.info("marketwire.realtime_started")

    yield

    logger.info("marketwire.shutdown")
    await hubs.stop()

    from marketwire.db.engine import engine
    await engine.dispose()


def create_app(hubs: Optional[Hubs] = None) -> FastAPI:
    """Build and return the FastAPI application.

    Pass `hubs` to run against other collaborators (tests); by default
    they are wired to the process-wide session factory.
    """
    app = FastAPI(
        title="Marketwire",
        description="Real-time chat, likes and live analytics for the marketplace",
        version=__version__,
        lifespan=lifespan,
    )

    if hubs is None:
        from marketwire.db.engine import async_session_factory
        hubs = build_hubs(async_session_factory, settings)
    app.state.hubs = hubs

    # ── Middleware stack ──────────────────────────────────────
    # Last added runs first.
    # Request flow: RequestId → CORS → Security → handler

    from marketwire.middleware.request_id import RequestIdMiddleware
    from marketwire.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)

    from marketwire.realtime.upgrade import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: marketwire.main:app)
app = create_app()
