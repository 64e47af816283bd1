"""Inbound WebSocket frames, one tagged union per hub.

Every inbound frame is JSON with a `type` discriminator. Parsing goes
through a pydantic discriminated union, so ids arrive already normalized
(`"42"` and `42` both become the int 42) and anything malformed or with
an unknown `type` parses to None and is dropped by the hub.
"""

from typing import Annotated, Any, Literal, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

logger = structlog.get_logger()


class Frame(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ─── Shared ─────────────────────────────────────────────


class PingFrame(Frame):
    type: Literal["ping"]
    t: Optional[Union[int, float]] = None


class PongFrame(Frame):
    """Reply to a server heartbeat. Only refreshes liveness."""
    type: Literal["pong"]


# ─── Chat hub ───────────────────────────────────────────


class AuthFrame(Frame):
    type: Literal["auth"]
    user_id: Optional[int] = None


class EchoFrame(Frame):
    type: Literal["echo"]
    data: Any = None


class NavCountsFrame(Frame):
    type: Literal["nav_counts"]


class WhoIsOnlineFrame(Frame):
    type: Literal["who_is_online"]


class SubscribeFrame(Frame):
    """Reserved channel subscription; stored and acknowledged only."""
    type: Literal["subscribe"]
    channels: list[str] = Field(default_factory=list)


class TypingFrame(Frame):
    type: Literal["typing"]
    from_: Optional[int] = Field(None, alias="from")
    to: int


class MessageSeenFrame(Frame):
    type: Literal["message_seen"]
    thread_id: int
    user_id: Optional[int] = None


class MessageSendFrame(Frame):
    type: Literal["message_send", "message"]
    sender_id: Optional[int] = None
    receiver_id: Optional[int] = None
    thread_id: Optional[int] = None
    content: Optional[str] = ""
    image_urls: Optional[list[str]] = None
    temp_id: Optional[Union[str, int]] = None
    extra_data: Optional[dict[str, Any]] = None

    @property
    def product_id(self) -> Optional[int]:
        raw = (self.extra_data or {}).get("product_id")
        try:
            return int(raw) if raw is not None else None
        except (TypeError, ValueError):
            return None


ChatFrame = Annotated[
    Union[
        AuthFrame,
        EchoFrame,
        NavCountsFrame,
        WhoIsOnlineFrame,
        SubscribeFrame,
        TypingFrame,
        MessageSeenFrame,
        MessageSendFrame,
        PingFrame,
        PongFrame,
    ],
    Field(discriminator="type"),
]


# ─── Likes hub ──────────────────────────────────────────


class LikeSubscribeFrame(Frame):
    type: Literal["like:subscribe"]
    product_id: int


class LikeUnsubscribeFrame(Frame):
    type: Literal["like:unsubscribe"]
    product_id: int


LikesFrame = Annotated[
    Union[LikeSubscribeFrame, LikeUnsubscribeFrame, PingFrame, PongFrame],
    Field(discriminator="type"),
]


# ─── Analytics hub ──────────────────────────────────────

AnalyticsFrame = Annotated[Union[PingFrame, PongFrame], Field(discriminator="type")]


chat_frames = TypeAdapter(ChatFrame)
likes_frames = TypeAdapter(LikesFrame)
analytics_frames = TypeAdapter(AnalyticsFrame)


def parse_frame(adapter: TypeAdapter, raw: str | bytes) -> Optional[Frame]:
    """Parse raw JSON into a frame variant, or None if it isn't one."""
    try:
        return adapter.validate_json(raw)
    except ValidationError as e:
        logger.debug("ws.frame_rejected", errors=e.error_count())
        return None
