"""Product like routes.

The toggle commits first and only then pushes the committed count to the
likes hub, so subscribers never see a count that was rolled back.
"""

import structlog
from fastapi import APIRouter, Depends, Query

from marketwire.api.deps import get_hubs, get_like_service
from marketwire.auth.dependencies import CurrentIdentity, get_current_user
from marketwire.realtime.hubs import Hubs
from marketwire.schemas.likes import LikeCountRead, LikeCountsRead, LikeToggleRead, MyLikesRead
from marketwire.services.like_service import LikeService

logger = structlog.get_logger()
router = APIRouter()


@router.post("/products/{product_id}/like", response_model=LikeToggleRead)
async def toggle_like(
    product_id: int,
    user: CurrentIdentity = Depends(get_current_user),
    svc: LikeService = Depends(get_like_service),
    hubs: Hubs = Depends(get_hubs),
):
    """Like the product, or unlike it if already liked."""
    is_liked, likes_count = await svc.toggle(product_id, user.user_id)
    await hubs.likes.broadcast_like_update(product_id, likes_count)
    logger.info(
        "likes.toggled",
        product_id=product_id,
        user_id=user.user_id,
        is_liked=is_liked,
        likes_count=likes_count,
    )
    return LikeToggleRead(product_id=product_id, is_liked=is_liked, likes_count=likes_count)


@router.get("/products/likes", response_model=LikeCountsRead)
async def batch_like_counts(
    ids: str = Query("", description="Comma-separated product ids"),
    svc: LikeService = Depends(get_like_service),
):
    product_ids = _parse_ids(ids)
    return LikeCountsRead(counts=await svc.counts(product_ids))


@router.get("/products/{product_id}/likes", response_model=LikeCountRead)
async def like_count(product_id: int, svc: LikeService = Depends(get_like_service)):
    return LikeCountRead(product_id=product_id, likes_count=await svc.count(product_id))


@router.get("/me/likes", response_model=MyLikesRead)
async def my_likes(
    user: CurrentIdentity = Depends(get_current_user),
    svc: LikeService = Depends(get_like_service),
):
    return MyLikesRead(user_id=user.user_id, product_ids=await svc.liked_products(user.user_id))


def _parse_ids(raw: str) -> list[int]:
    """Comma-separated ASCII integers; anything else is dropped."""
    product_ids = []
    for part in raw.split(","):
        part = part.strip()
        if not part.isascii():
            continue
        try:
            product_ids.append(int(part))
        except ValueError:
            continue
    return product_ids
