"""Notification routes — the pull side of chat notifications.

Reading notifications changes the badge counts, so the user's chat
socket (if online) gets a fresh `nav_counts` right away.
"""

from fastapi import APIRouter, Depends, HTTPException

from marketwire.api.deps import get_hubs, get_notification_service
from marketwire.auth.dependencies import CurrentIdentity, get_current_user
from marketwire.realtime.hubs import Hubs
from marketwire.schemas.notification import NotificationRead
from marketwire.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications")


async def _refresh_badges(hubs: Hubs, user_id: int) -> None:
    await hubs.chat.push_nav_counts(hubs.chat.presence.get(user_id), user_id)


@router.get("", response_model=list[NotificationRead])
async def list_unread(
    user: CurrentIdentity = Depends(get_current_user),
    svc: NotificationService = Depends(get_notification_service),
):
    return await svc.list_unread(user.user_id)


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    user: CurrentIdentity = Depends(get_current_user),
    svc: NotificationService = Depends(get_notification_service),
    hubs: Hubs = Depends(get_hubs),
):
    if not await svc.mark_read(notification_id, user.user_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    await _refresh_badges(hubs, user.user_id)
    return {"success": True}


@router.post("/read-all")
async def mark_all_read(
    user: CurrentIdentity = Depends(get_current_user),
    svc: NotificationService = Depends(get_notification_service),
    hubs: Hubs = Depends(get_hubs),
):
    updated = await svc.mark_all_read(user.user_id)
    await _refresh_badges(hubs, user.user_id)
    return {"success": True, "updated": updated}
