"""API route aggregation.

All routers registered here get mounted in main.py under /api.
Auth is per-route here: most like and analytics reads are public, so
protected handlers take Depends(get_current_user) themselves.
"""

from fastapi import APIRouter

from marketwire.api.analytics import router as analytics_router
from marketwire.api.health import router as health_router
from marketwire.api.likes import router as likes_router
from marketwire.api.notifications import router as notifications_router

api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(likes_router, tags=["likes"])
api_router.include_router(analytics_router, tags=["analytics"])
api_router.include_router(notifications_router, tags=["notifications"])
