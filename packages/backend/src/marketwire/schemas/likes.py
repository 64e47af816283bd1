"""Pydantic schemas for product like endpoints."""

from pydantic import BaseModel


class LikeToggleRead(BaseModel):
    success: bool = True
    product_id: int
    is_liked: bool
    likes_count: int


class LikeCountRead(BaseModel):
    product_id: int
    likes_count: int


class LikeCountsRead(BaseModel):
    counts: dict[int, int]


class MyLikesRead(BaseModel):
    user_id: int
    product_ids: list[int]
