"""Data access for startups."""

import logging
import re
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Any

from startupsareeasy.db.models import SLUG_CONSTRAINT, STARTUP_COLUMNS, STARTUPS
from startupsareeasy.rest.client import RestClient, eq
from startupsareeasy.rest.errors import (
    ApiError,
    AuthExpiredError,
    ConflictError,
    PermissionDeniedError,
    ValidationError,
)
from startupsareeasy.startups.schemas import CreateStartupRequest, Startup, StartupStage

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase
DUPLICATE_NAME_MESSAGE = "A startup with this name already exists. Please choose a different name."


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def unique_slug(base: str) -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"{base}-{int(time.time() * 1000)}-{suffix}"


def _first_row(result: Any) -> dict | None:
    if isinstance(result, list):
        return result[0] if result else None
    return result


def _is_slug_conflict(error: ApiError) -> bool:
    return isinstance(error, ConflictError) or SLUG_CONSTRAINT in (error.body or error.message)


async def get_startups(rest: RestClient) -> list[Startup]:
    rows = await rest.select(
        STARTUPS, {"is_public": eq("true"), "order": "created_at.desc", "select": STARTUP_COLUMNS}
    )
    logger.debug("Loaded %d startups", len(rows))
    return [Startup.model_validate(row) for row in rows]


async def get_startup_by_slug(rest: RestClient, slug: str) -> Startup | None:
    rows = await rest.select(STARTUPS, {"slug": eq(slug), "select": STARTUP_COLUMNS})
    return Startup.model_validate(rows[0]) if rows else None


async def get_startups_by_user(rest: RestClient, user_id: str) -> list[Startup]:
    rows = await rest.select(
        STARTUPS, {"user_id": eq(user_id), "order": "created_at.desc", "select": STARTUP_COLUMNS}
    )
    return [Startup.model_validate(row) for row in rows]


async def check_startup_name_available(rest: RestClient, name: str) -> bool:
    """Whether no startup uses ``name``; assumed available when the check itself fails."""
    if not slugify(name):
        return False
    try:
        rows = await rest.select(STARTUPS, {"select": "id", "name": eq(name)})
    except ApiError as exc:
        logger.warning("Error checking startup name availability: %s", exc)
        return True
    return not rows


async def _insert_startup(rest: RestClient, row: dict[str, Any], token: str | None) -> Startup:
    result = _first_row(await rest.insert(STARTUPS, row, token=token))
    if not result:
        logger.info("Startup created (empty response)")
        now = datetime.now(timezone.utc).isoformat()
        return Startup.model_validate({**row, "id": f"temp-{int(time.time() * 1000)}", "created_at": now, "updated_at": now})
    return Startup.model_validate(result)


async def create_startup(rest: RestClient, data: CreateStartupRequest, token: str | None = None) -> Startup:
    """Insert a startup, retrying once with a suffixed slug when the slug is taken."""
    base_slug = slugify(data.name)
    if not base_slug:
        raise ValidationError("Startup name must contain at least one alphanumeric character")

    row = data.model_dump(mode="json", exclude={"user_id"}, exclude_none=True)
    row["slug"] = base_slug
    if not (data.founded_date or "").strip():
        row["founded_date"] = None
    if data.user_id:
        row["user_id"] = data.user_id

    logger.info("Creating startup name=%s user=%s", data.name, data.user_id)
    try:
        try:
            return await _insert_startup(rest, row, token)
        except ApiError as exc:
            if not _is_slug_conflict(exc):
                raise
            row["slug"] = unique_slug(base_slug)
            logger.warning("Duplicate slug %r, retrying with %r", base_slug, row["slug"])
            return await _insert_startup(rest, row, token)
    except AuthExpiredError as exc:
        raise AuthExpiredError(
            "You must be logged in to create startups. Please sign in and try again.", exc.status, exc.body
        ) from exc
    except PermissionDeniedError as exc:
        raise PermissionDeniedError(
            "You don't have permission to create this startup. Please make sure you're logged in.", exc.status, exc.body
        ) from exc
    except ConflictError as exc:
        raise ConflictError(DUPLICATE_NAME_MESSAGE, exc.status, exc.body) from exc


async def update_startup_stage(rest: RestClient, startup_id: str, stage: StartupStage, token: str | None = None) -> None:
    await rest.update(STARTUPS, {"id": eq(startup_id)}, {"stage": stage.value}, token=token)
    logger.debug("Startup %s stage updated to %s", startup_id, stage.value)
