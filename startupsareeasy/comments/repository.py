"""Data access for comments."""

import logging
import time
from datetime import datetime, timezone
from typing import Any

from startupsareeasy.comments.schemas import Comment, CreateCommentRequest
from startupsareeasy.db.models import COMMENT_COLUMNS, COMMENTS
from startupsareeasy.profiles.schemas import User
from startupsareeasy.rest.client import RestClient, eq, in_

logger = logging.getLogger(__name__)


def _comment_from_row(row: dict[str, Any]) -> Comment:
    profile = row.get("profiles")
    user = User.from_profile(profile, user_id=row["user_id"]) if profile else User.placeholder(row["user_id"])
    return Comment(
        id=row["id"],
        post_id=row["post_id"],
        user=user,
        content=row.get("content") or "",
        created_at=row.get("created_at"),
    )


async def get_comments(rest: RestClient, post_id: str) -> list[Comment]:
    rows = await rest.select(
        COMMENTS, {"post_id": eq(post_id), "order": "created_at.asc", "select": COMMENT_COLUMNS}
    )
    return [_comment_from_row(row) for row in rows]


async def get_bulk_comments(rest: RestClient, post_ids: list[str]) -> list[Comment]:
    """Comments for several posts in one request."""
    if not post_ids:
        return []
    rows = await rest.select(
        COMMENTS, {"post_id": in_(post_ids), "order": "created_at.asc", "select": COMMENT_COLUMNS}
    )
    logger.debug("Loaded %d comments for %d posts", len(rows), len(post_ids))
    return [_comment_from_row(row) for row in rows]


async def create_comment(rest: RestClient, data: CreateCommentRequest, token: str | None = None) -> Comment:
    row = data.model_dump()
    result = await rest.insert(COMMENTS, row, token=token)
    if isinstance(result, list):
        result = result[0] if result else None

    if not result:
        logger.debug("Comment created (empty response)")
        result = {**row, "id": f"temp-{int(time.time() * 1000)}", "created_at": datetime.now(timezone.utc).isoformat()}

    return _comment_from_row(result)
