"""Data access for posts.

Every read goes through the ``get_posts_with_details`` stored procedure, which
returns posts already joined with their author, like and comment counts and
the caller's like status. Startup summaries are then fetched in one query.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any

from startupsareeasy.db.models import POSTS, RPC_POSTS_WITH_DETAILS, STARTUP_SUMMARY_COLUMNS, STARTUPS
from startupsareeasy.posts.schemas import CreatePostRequest, Post, PostForm, PostType
from startupsareeasy.profiles.schemas import User
from startupsareeasy.rest.client import RestClient, in_
from startupsareeasy.rest.errors import ApiError, AuthExpiredError
from startupsareeasy.startups import repository as startups_repository
from startupsareeasy.startups.schemas import CreateStartupRequest, StartupStage, StartupSummary

logger = logging.getLogger(__name__)

AUTHOR_FIELDS = ("first_name", "last_name", "username", "avatar_url")


def _post_from_row(row: dict[str, Any], startups: dict[str, dict]) -> Post:
    startup_id = row.get("startup_id")
    startup = startups.get(startup_id) if startup_id else None
    author = {key: row.get(key) for key in AUTHOR_FIELDS}
    return Post(
        id=row["id"],
        user=User.from_profile(author, user_id=row.get("user_id")),
        type=row.get("type") or PostType.POST,
        content=row.get("content") or "",
        link=row.get("link_url") or row.get("link"),
        image=row.get("image_url") or row.get("image"),
        created_at=row.get("created_at"),
        likes_count=row.get("likes_count") or 0,
        comments_count=row.get("comments_count") or 0,
        liked_by_user=bool(row.get("liked_by_user")),
        startup=StartupSummary.model_validate(startup) if startup else None,
    )


async def _startup_summaries(rest: RestClient, rows: list[dict]) -> dict[str, dict]:
    ids = list(dict.fromkeys(row["startup_id"] for row in rows if row.get("startup_id")))
    if not ids:
        return {}
    try:
        startups = await rest.select(STARTUPS, {"id": in_(ids), "select": STARTUP_SUMMARY_COLUMNS})
    except ApiError as exc:
        logger.warning("Failed to fetch startups for posts: %s", exc)
        return {}
    return {s["id"]: s for s in startups}


async def _get_posts_with_details(
    rest: RestClient,
    current_user_id: str | None = None,
    *,
    author_id: str | None = None,
    post_type: PostType | None = None,
) -> list[Post]:
    rows = await rest.rpc(RPC_POSTS_WITH_DETAILS, {"user_id_param": current_user_id}) or []

    if author_id:
        rows = [row for row in rows if row.get("user_id") == author_id]
    if post_type:
        rows = [row for row in rows if row.get("type") == post_type.value]

    startups = await _startup_summaries(rest, rows)
    logger.debug("Posts loaded total=%d author=%s type=%s", len(rows), author_id, post_type)
    return [_post_from_row(row, startups) for row in rows]


async def get_posts(rest: RestClient, user_id: str | None = None) -> list[Post]:
    """All posts, with ``liked_by_user`` computed for ``user_id`` when given."""
    return await _get_posts_with_details(rest, user_id)


async def get_posts_by_user(rest: RestClient, author_id: str, current_user_id: str | None = None) -> list[Post]:
    return await _get_posts_with_details(rest, current_user_id, author_id=author_id)


async def get_posts_by_type(rest: RestClient, post_type: PostType, current_user_id: str | None = None) -> list[Post]:
    return await _get_posts_with_details(rest, current_user_id, post_type=post_type)


async def get_post_by_id(rest: RestClient, post_id: str, current_user_id: str | None = None) -> Post | None:
    posts = await _get_posts_with_details(rest, current_user_id)
    return next((post for post in posts if post.id == post_id), None)


async def create_post(rest: RestClient, data: CreatePostRequest, token: str | None = None) -> Post:
    row = data.model_dump(mode="json", exclude_none=True)
    logger.debug("Creating post type=%s user=%s token=%s", data.type.value, data.user_id, bool(token))

    result = await rest.insert(POSTS, row, token=token)
    if isinstance(result, list):
        result = result[0] if result else None

    if not result:
        logger.debug("Post created (empty response)")
        result = {**row, "id": f"temp-{int(time.time() * 1000)}", "created_at": datetime.now(timezone.utc).isoformat()}
    else:
        logger.info("Post created id=%s", result.get("id"))

    return Post(
        id=result["id"],
        user=User.placeholder(result.get("user_id") or data.user_id),
        type=result.get("type") or data.type,
        content=result.get("content") or "",
        link=result.get("link"),
        image=result.get("image"),
        created_at=result.get("created_at"),
    )


async def create_post_from_form(rest: RestClient, form: PostForm, user_id: str, token: str | None) -> Post:
    """Create a post, creating its startup first for idea posts.

    Launch posts that reference an existing startup move it to ``launched``.
    """
    if not token:
        raise AuthExpiredError("Authentication token required for creating posts")

    startup_id = form.existing_startup_id

    if form.type is PostType.IDEA and form.startup_name and form.startup_description:
        startup = await startups_repository.create_startup(
            rest,
            CreateStartupRequest(
                user_id=user_id,
                name=form.startup_name,
                description=form.startup_description,
                stage=StartupStage.IDEA,
            ),
            token,
        )
        startup_id = startup.id
        logger.debug("Created startup %s for idea post", startup_id)

    if form.type is PostType.LAUNCH and form.existing_startup_id:
        await startups_repository.update_startup_stage(rest, form.existing_startup_id, StartupStage.LAUNCHED, token)

    post = await create_post(
        rest,
        CreatePostRequest(
            user_id=user_id,
            type=form.type,
            content=form.content or "",
            link=form.link,
            startup_id=startup_id,
        ),
        token,
    )
    logger.info("Post created from form type=%s startup=%s", form.type.value, bool(startup_id))
    return post
