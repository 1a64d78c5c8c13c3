"""Pydantic schemas for posts."""

from enum import Enum

from pydantic import BaseModel

from startupsareeasy.profiles.schemas import User
from startupsareeasy.startups.schemas import StartupSummary


class PostType(str, Enum):
    IDEA = "idea"
    STARTED = "started"
    LAUNCH = "launch"
    PROGRESS = "progress"
    FAIL = "fail"
    LINK = "link"
    POST = "post"


POST_TYPE_LABELS = {
    PostType.IDEA: ("💡", "Idea"),
    PostType.STARTED: ("🚀", "Started"),
    PostType.LAUNCH: ("🚀", "Launch"),
    PostType.PROGRESS: ("✅", "Progress"),
    PostType.FAIL: ("❌", "Fail"),
    PostType.LINK: ("🔗", "Link"),
    PostType.POST: ("📝", "Post"),
}


class Post(BaseModel):
    id: str
    user: User
    type: PostType
    content: str = ""
    link: str | None = None
    image: str | None = None
    created_at: str | None = None
    likes_count: int = 0
    comments_count: int = 0
    liked_by_user: bool = False
    startup: StartupSummary | None = None


class CreatePostRequest(BaseModel):
    user_id: str
    type: PostType
    content: str = ""
    link: str | None = None
    image: str | None = None
    startup_id: str | None = None


class PostForm(BaseModel):
    """What the post form submits; idea posts may carry a new startup."""

    type: PostType
    content: str | None = None
    link: str | None = None
    startup_name: str | None = None
    startup_description: str | None = None
    existing_startup_id: str | None = None
