"""Pydantic schemas shared by the login flows."""

from typing import Any

from pydantic import BaseModel, Field


class TelegramUser(BaseModel):
    """Payload produced by the Telegram login widget."""

    id: int
    first_name: str
    last_name: str | None = None
    username: str | None = None
    photo_url: str | None = None
    auth_date: int
    hash: str


class SessionTokens(BaseModel):
    access_token: str
    refresh_token: str = ""
    token_type: str = "bearer"
    expires_in: int | None = None
    user: dict[str, Any] | None = None


class LoginStatus(BaseModel):
    """Body returned by the check-login endpoint."""

    status: str
    email: str | None = None
    user_id: str | None = None
    secure_password: str | None = None
    telegram_data: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    message: str | None = None
