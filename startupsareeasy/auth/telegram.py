"""Telegram widget login and the development-only password login."""

import json
import logging
from typing import Any

import httpx

from startupsareeasy.auth.provider import AuthProviderClient
from startupsareeasy.auth.schemas import SessionTokens, TelegramUser
from startupsareeasy.config.settings import Settings
from startupsareeasy.profiles.repository import upsert_profile
from startupsareeasy.profiles.schemas import User
from startupsareeasy.rest.client import RestClient
from startupsareeasy.rest.errors import (
    InvalidLoginError,
    NetworkError,
    PermissionDeniedError,
    ValidationError,
    error_from_response,
)
from startupsareeasy.session.breaker import CircuitBreaker
from startupsareeasy.session.manager import SessionManager
from startupsareeasy.session.storage import StorageKeys
from startupsareeasy.session.tokens import token_subject

logger = logging.getLogger(__name__)


class TelegramLoginClient:
    def __init__(
        self,
        settings: Settings,
        http: httpx.AsyncClient,
        session: SessionManager,
        provider: AuthProviderClient,
        rest: RestClient,
        breaker: CircuitBreaker,
    ):
        self.settings = settings
        self.http = http
        self.session = session
        self.provider = provider
        self.rest = rest
        self.breaker = breaker

    async def _exchange(self, payload: dict[str, Any]) -> SessionTokens:
        try:
            response = await self.http.post(
                self.settings.TELEGRAM_FUNCTION_URL,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise NetworkError(f"telegram login: {exc}") from exc

        if response.status_code == 401:
            raise InvalidLoginError("Telegram login rejected", 401, response.text)
        if response.is_error:
            raise error_from_response(response.status_code, response.text, "telegram login")

        try:
            return SessionTokens.model_validate(response.json())
        except ValueError as exc:
            raise ValidationError(f"Unexpected telegram login response: {exc}", response.status_code, response.text)

    async def sign_in(self, payload: TelegramUser) -> User:
        """Exchange a widget payload for a session and make sure a profile exists."""
        logger.info("Telegram sign in for telegram_id=%s", payload.id)
        tokens = await self.breaker.execute(
            lambda: self._exchange(payload.model_dump(exclude_none=True)), "telegram login"
        )
        self.session.save_session(tokens)

        user_id = token_subject(tokens.access_token)
        if not user_id:
            user_id = (await self.provider.get_user(tokens.access_token))["id"]

        user = await upsert_profile(
            self.rest,
            user_id,
            tokens.access_token,
            username=payload.username or f"user_{payload.id}",
            first_name=payload.first_name,
            last_name=payload.last_name,
            avatar_url=payload.photo_url,
        )
        user.telegram_id = payload.id
        self.session.store.set_item(StorageKeys.USER_DATA, json.dumps(user.model_dump()))
        logger.info("Telegram sign in complete user=%s", user_id)
        return user


async def sign_in_with_dev_credentials(
    settings: Settings,
    session: SessionManager,
    provider: AuthProviderClient,
    breaker: CircuitBreaker,
) -> SessionTokens:
    """Password login with the configured development account."""
    if not settings.has_fake_login:
        raise PermissionDeniedError("Fake login is only available in development")

    tokens = await breaker.execute(
        lambda: provider.sign_in_with_password(settings.DEV_EMAIL, settings.DEV_PASSWORD), "dev login"
    )
    session.save_session(tokens)
    logger.info("Signed in with development credentials")
    return tokens
