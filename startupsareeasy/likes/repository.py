"""Likes: a join row per (post, user)."""

import logging

from pydantic import BaseModel

from startupsareeasy.db.models import LIKES
from startupsareeasy.rest.client import RestClient, eq

logger = logging.getLogger(__name__)


class LikeToggleResult(BaseModel):
    liked: bool
    likes_count: int


async def toggle_like(rest: RestClient, post_id: str, user_id: str, token: str | None = None) -> LikeToggleResult:
    """Like or unlike ``post_id`` for ``user_id``.

    The returned count is always re-read from the server after the mutation.
    """
    filters = {"user_id": eq(user_id), "post_id": eq(post_id)}
    existing = await rest.select(LIKES, filters, token=token)
    was_liked = bool(existing)

    if was_liked:
        await rest.delete(LIKES, filters, token=token)
        logger.debug("Like removed post=%s user=%s", post_id, user_id)
    else:
        await rest.insert(LIKES, {"user_id": user_id, "post_id": post_id}, token=token, returning=False)
        logger.debug("Like added post=%s user=%s", post_id, user_id)

    likes_count = await rest.count(LIKES, {"post_id": eq(post_id)}, token=token)
    return LikeToggleResult(liked=not was_liked, likes_count=likes_count)
