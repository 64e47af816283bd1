"""Pydantic schemas for in-app notifications."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class NotificationRead(BaseModel):
    id: int
    title: str
    body: str
    type: str
    related_id: Optional[int]
    created_at: datetime

    model_config = {"from_attributes": True}
