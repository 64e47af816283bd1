"""Health check endpoint — process up, database reachable, hub sizes."""

from fastapi import APIRouter, Depends
from sqlalchemy import text

from marketwire import __version__
from marketwire.api.deps import get_hubs, get_session_factory
from marketwire.realtime.hubs import Hubs

router = APIRouter()


@router.get("/health")
async def health_check(
    factory=Depends(get_session_factory),
    hubs: Hubs = Depends(get_hubs),
):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with factory() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    status = "healthy" if checks["database"] == "ok" else "degraded"

    return {
        "status": status,
        **checks,
        "realtime": {
            "chat": len(hubs.chat),
            "likes": len(hubs.likes),
            "analytics": len(hubs.analytics),
            "online_users": len(hubs.chat.presence),
        },
    }
