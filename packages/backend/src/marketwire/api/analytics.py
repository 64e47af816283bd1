"""Analytics routes — event ingestion and dashboard tickets.

`/v1/track` is public (the browser tracker has no credentials): it stores
the event, then hands a normalized copy to the live aggregator.
`/ws-ticket` trades a Bearer JWT for a short-lived ticket the dashboard
passes to /ws/analytics, since browsers can't set upgrade headers.
"""

import structlog
from fastapi import APIRouter, Depends

from marketwire.api.deps import get_analytics_store, get_hubs
from marketwire.auth.dependencies import CurrentIdentity, get_current_user
from marketwire.auth.tickets import create_ticket
from marketwire.config import settings
from marketwire.realtime.aggregator import TrackEvent
from marketwire.realtime.hubs import Hubs
from marketwire.schemas.analytics import TicketRead, TrackAccepted, TrackEventIn
from marketwire.services.analytics_store import AnalyticsStore

logger = structlog.get_logger()
router = APIRouter(prefix="/analytics")


@router.post("/v1/track", response_model=TrackAccepted)
async def track(
    body: TrackEventIn,
    store: AnalyticsStore = Depends(get_analytics_store),
    hubs: Hubs = Depends(get_hubs),
):
    event_time = body.event_time
    stored = await store.record(
        event_id=str(body.event_id),
        anon_id=str(body.anon_id),
        kind=body.type,
        name=body.event_name,
        path=body.path or "/",
        event_time=event_time,
        user_id=body.user_id,
        referrer=body.referrer,
        payload=body.payload,
    )
    if not stored:
        # Tracker retry; already counted live the first time.
        return TrackAccepted(duplicate=True)

    hubs.analytics.record_event(
        TrackEvent(
            kind=body.type,
            name=body.name,
            path=body.path or "/",
            visitor_id=str(body.anon_id),
            timestamp=int(event_time.timestamp() * 1000),
        )
    )
    return TrackAccepted()


@router.post("/ws-ticket", response_model=TicketRead)
async def issue_ws_ticket(user: CurrentIdentity = Depends(get_current_user)):
    ticket = create_ticket(user.user_id)
    logger.info("analytics.ticket_issued", user_id=user.user_id)
    return TicketRead(ticket=ticket, ttl_sec=settings.ticket_ttl_seconds)
