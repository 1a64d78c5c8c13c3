"""Pydantic schemas for comments."""

from pydantic import BaseModel, Field

from startupsareeasy.profiles.schemas import User


class Comment(BaseModel):
    id: str
    post_id: str
    user: User
    content: str
    created_at: str | None = None


class CreateCommentRequest(BaseModel):
    post_id: str
    user_id: str
    content: str = Field(min_length=1)
