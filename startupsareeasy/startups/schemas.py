"""Pydantic schemas for startups."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class StartupStage(str, Enum):
    IDEA = "idea"
    PLANNING = "planning"
    BUILDING = "building"
    MVP = "mvp"
    BETA = "beta"
    LAUNCHED = "launched"
    SCALING = "scaling"
    ACQUIRED = "acquired"
    PAUSED = "paused"

    @property
    def order(self) -> int:
        return list(StartupStage).index(self)

    def __lt__(self, other: Any) -> bool:
        if isinstance(other, StartupStage):
            return self.order < other.order
        return NotImplemented

    def __le__(self, other: Any) -> bool:
        if isinstance(other, StartupStage):
            return self.order <= other.order
        return NotImplemented

    def __gt__(self, other: Any) -> bool:
        if isinstance(other, StartupStage):
            return self.order > other.order
        return NotImplemented

    def __ge__(self, other: Any) -> bool:
        if isinstance(other, StartupStage):
            return self.order >= other.order
        return NotImplemented


STAGE_LABELS = {
    StartupStage.IDEA: ("💡", "Idea"),
    StartupStage.PLANNING: ("📋", "Planning"),
    StartupStage.BUILDING: ("🔨", "Building"),
    StartupStage.MVP: ("🧪", "MVP"),
    StartupStage.BETA: ("🧬", "Beta"),
    StartupStage.LAUNCHED: ("🚀", "Launched"),
    StartupStage.SCALING: ("📈", "Scaling"),
    StartupStage.ACQUIRED: ("🤝", "Acquired"),
    StartupStage.PAUSED: ("⏸️", "Paused"),
}


class CreateStartupRequest(BaseModel):
    name: str = Field(min_length=1)
    user_id: str | None = None
    description: str | None = None
    website_url: str | None = None
    logo_url: str | None = None
    industry: str | None = None
    stage: StartupStage = StartupStage.IDEA
    founded_date: str | None = None
    location: str | None = None
    team_size: int | None = None
    funding_raised: float | None = None
    target_market: str | None = None
    estimated_timeline: str | None = None
    looking_for: list[str] | None = None
    is_public: bool = True


class Startup(BaseModel):
    id: str
    name: str
    slug: str
    user_id: str | None = None
    description: str | None = None
    stage: StartupStage = StartupStage.IDEA
    website_url: str | None = None
    logo_url: str | None = None
    industry: str | None = None
    founded_date: str | None = None
    location: str | None = None
    team_size: int | None = None
    funding_raised: float | None = None
    target_market: str | None = None
    estimated_timeline: str | None = None
    looking_for: list[str] | None = None
    launch_date: str | None = None
    is_public: bool = True
    created_at: str | None = None
    updated_at: str | None = None

    model_config = {"extra": "ignore"}


class StartupSummary(BaseModel):
    """Startup details attached to a post."""

    id: str
    name: str
    slug: str | None = None
    description: str | None = None
    stage: StartupStage | None = None
    industry: str | None = None
    target_market: str | None = None

    model_config = {"extra": "ignore"}
