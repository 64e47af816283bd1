"""Pydantic schemas for analytics ingestion and WebSocket tickets.

The tracker sends more fields than we store (utm, viewport, scroll
depth...); unknown fields are ignored rather than rejected so older
tracker builds keep working.
"""

from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import UUID4, BaseModel, ConfigDict, Field

# 9999-12-31T23:59:59.999Z, the last instant datetime can represent
MAX_EPOCH_MS = 253_402_300_799_999


class TrackEventIn(BaseModel):
    """One tracked event from the browser tracker."""
    model_config = ConfigDict(extra="ignore")

    event_id: UUID4 = Field(..., description="Client-generated event UUID (v4)")
    anon_id: UUID4 = Field(..., description="Anonymous visitor UUID (v4)")
    type: Literal["pageview", "product_view", "event"]
    name: Optional[str] = Field(None, max_length=64, description="Event name when type=event")
    path: Optional[str] = Field("/", max_length=2048)
    referrer: Optional[str] = None
    user_id: Optional[int] = None
    ts: Optional[int] = Field(
        None, ge=0, le=MAX_EPOCH_MS, description="Event time, epoch milliseconds"
    )
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def event_name(self) -> str:
        if self.type == "event":
            return (self.name or "custom").lower()
        return self.type

    @property
    def event_time(self) -> datetime:
        if self.ts is None:
            return datetime.now(timezone.utc)
        return datetime.fromtimestamp(self.ts / 1000, tz=timezone.utc)


class TrackAccepted(BaseModel):
    ok: bool = True
    duplicate: bool = False


class TicketRead(BaseModel):
    ticket: str
    ttl_sec: int
