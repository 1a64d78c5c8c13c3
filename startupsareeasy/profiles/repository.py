"""Data access for profiles (builders)."""

import logging
from datetime import datetime, timezone

from startupsareeasy.db.models import POSTS, PROFILE_COLUMNS, PROFILES, STARTUPS
from startupsareeasy.profiles.schemas import BuilderStats, User
from startupsareeasy.rest.client import RestClient, eq, neq
from startupsareeasy.rest.errors import ApiError

logger = logging.getLogger(__name__)


async def get_builders(rest: RestClient) -> list[User]:
    rows = await rest.select(
        PROFILES,
        {"username": neq("admin"), "order": "created_at.desc", "select": PROFILE_COLUMNS},
    )
    logger.debug("Loaded %d builders", len(rows))
    return [User.from_profile(row) for row in rows]


async def get_user_profile(rest: RestClient, username: str) -> User | None:
    rows = await rest.select(
        PROFILES,
        {"username": eq(username), "select": f"{PROFILE_COLUMNS},bio,location,website,created_at"},
    )
    return User.from_profile(rows[0]) if rows else None


async def get_builder_stats(rest: RestClient, user_id: str) -> BuilderStats:
    """Post and startup counts; zeros when either count cannot be read."""
    try:
        posts_count = await rest.count(POSTS, {"user_id": eq(user_id)})
    except ApiError as exc:
        logger.warning("Could not count posts for %s: %s", user_id, exc)
        posts_count = 0
    try:
        startups_count = await rest.count(STARTUPS, {"user_id": eq(user_id)})
    except ApiError as exc:
        logger.warning("Could not count startups for %s: %s", user_id, exc)
        startups_count = 0
    return BuilderStats(posts_count=posts_count, startups_count=startups_count)


async def upsert_profile(
    rest: RestClient,
    user_id: str,
    token: str,
    *,
    username: str,
    first_name: str | None = None,
    last_name: str | None = None,
    avatar_url: str | None = None,
) -> User:
    row = {
        "id": user_id,
        "username": username,
        "first_name": first_name,
        "last_name": last_name,
        "avatar_url": avatar_url,
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }
    result = await rest.upsert(PROFILES, row, token=token)
    if isinstance(result, list):
        result = result[0] if result else None
    return User.from_profile(result or row, user_id=user_id)
