"""Pydantic schemas for user profiles."""

from typing import Any

from pydantic import BaseModel

from startupsareeasy.utils.users import display_name


class User(BaseModel):
    id: str
    name: str = "User"
    username: str = "user"
    avatar: str = ""
    first_name: str | None = None
    last_name: str | None = None
    telegram_id: int | None = None
    bio: str | None = None
    location: str | None = None
    website: str | None = None
    joined_at: str | None = None

    @classmethod
    def from_profile(cls, profile: dict[str, Any], user_id: str | None = None) -> "User":
        return cls(
            id=user_id or profile.get("id") or "",
            name=display_name(profile),
            username=profile.get("username") or "user",
            avatar=profile.get("avatar_url") or "",
            first_name=profile.get("first_name"),
            last_name=profile.get("last_name"),
            bio=profile.get("bio"),
            location=profile.get("location"),
            website=profile.get("website"),
            joined_at=profile.get("created_at"),
        )

    @classmethod
    def placeholder(cls, user_id: str) -> "User":
        return cls(id=user_id)


class BuilderStats(BaseModel):
    posts_count: int = 0
    startups_count: int = 0
