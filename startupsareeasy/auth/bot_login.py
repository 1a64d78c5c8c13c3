"""Login through the Telegram bot.

The client registers a one-time login token, the user hands it to the bot with
``/start <token>``, and the client polls the check-login endpoint until the
bot has marked the token complete. The credentials issued by the bot are then
used for an ordinary password sign-in.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

import httpx

from startupsareeasy.auth.provider import AuthProviderClient
from startupsareeasy.auth.schemas import LoginStatus, SessionTokens
from startupsareeasy.rest.errors import (
    ApiError,
    AuthExpiredError,
    NetworkError,
    OperationTimeoutError,
    ValidationError,
    error_from_response,
)
from startupsareeasy.session.breaker import CircuitBreaker
from startupsareeasy.session.csrf import CsrfManager
from startupsareeasy.session.manager import SessionManager
from startupsareeasy.session.storage import StorageKeys
from startupsareeasy.utils.crypto import generate_login_token

logger = logging.getLogger(__name__)

MAX_POLL_ATTEMPTS = 30
ERROR_RETRY_SECONDS = 5.0
BOT_USERNAME = "startups_are_easy_bot"


def poll_delay(attempt: int) -> float:
    """Seconds to wait after the ``attempt``-th pending answer (0-based): 1, 2, 4, then 10."""
    return float(2**attempt) if attempt < 3 else 10.0


def legacy_password(user_id: str) -> str:
    # Accounts created before secure passwords were stored in user metadata
    return f"telegram_{user_id}_secure"


class BotLoginFlow:
    def __init__(
        self,
        app_url: str,
        http: httpx.AsyncClient,
        session: SessionManager,
        provider: AuthProviderClient,
        breaker: CircuitBreaker,
        csrf: CsrfManager | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        max_attempts: int = MAX_POLL_ATTEMPTS,
    ):
        self.app_url = app_url.rstrip("/")
        self.http = http
        self.session = session
        self.provider = provider
        self.breaker = breaker
        self.csrf = csrf
        self._sleep = sleep
        self.max_attempts = max_attempts

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.csrf is not None:
            headers.update(self.csrf.headers("POST"))
        return headers

    @staticmethod
    def bot_link(token: str) -> str:
        return f"https://t.me/{BOT_USERNAME}?start={token}"

    async def start(self) -> str:
        """Generate and register a login token. Registration failures are not fatal."""
        token = generate_login_token()
        try:
            response = await self.http.post(
                f"{self.app_url}/api/create-login-token", json={"token": token}, headers=self._headers()
            )
            if response.is_error:
                logger.warning("Failed to pre-register login token: status=%d", response.status_code)
            else:
                logger.info("Login token pre-registered, expires_at=%s", response.json().get("expires_at"))
        except httpx.HTTPError as exc:
            logger.warning("Login token pre-registration failed: %s", exc)

        store = self.session.store
        store.set_item(StorageKeys.PENDING_LOGIN_TOKEN, token)
        store.set_item(StorageKeys.LOGIN_STARTED_AT, str(int(time.time() * 1000)))
        return token

    async def _check(self, token: str) -> LoginStatus:
        try:
            response = await self.http.get(f"{self.app_url}/api/check-login", params={"token": token})
        except httpx.HTTPError as exc:
            raise NetworkError(f"check-login: {exc}") from exc
        if response.status_code >= 500 or response.status_code == 429:
            raise NetworkError("check-login failed", response.status_code, response.text)

        try:
            body = response.json()
        except ValueError as exc:
            raise error_from_response(response.status_code, response.text, "check-login") from exc
        if response.is_error and body.get("status") not in ("expired", "used"):
            raise error_from_response(response.status_code, response.text, "check-login")
        return LoginStatus.model_validate(body)

    async def poll(self, token: str) -> LoginStatus:
        for attempt in range(self.max_attempts):
            try:
                status = await self._check(token)
            except NetworkError as exc:
                logger.warning("check-login attempt %d failed: %s", attempt + 1, exc)
                await self._sleep(ERROR_RETRY_SECONDS)
                continue

            logger.debug("check-login attempt=%d status=%s", attempt + 1, status.status)
            if status.status == "complete" and status.email:
                logger.info("Bot login completed user=%s", status.user_id)
                return status
            if status.status in ("expired", "used"):
                raise AuthExpiredError(status.error or "Authentication session expired", 400)

            await self._sleep(poll_delay(attempt))

        raise OperationTimeoutError("Login timeout - please try again")

    async def fetch_secure_password(self, user_id: str) -> str | None:
        try:
            response = await self.http.post(
                f"{self.app_url}/api/get-user-password", json={"user_id": user_id}, headers=self._headers()
            )
        except httpx.HTTPError as exc:
            logger.error("Failed to fetch secure password: %s", exc)
            return None
        if response.is_error:
            logger.error("Failed to fetch secure password: status=%d", response.status_code)
            return None
        return response.json().get("secure_password")

    async def complete(self, status: LoginStatus) -> SessionTokens:
        """Sign in with the credentials issued by the bot."""
        if not status.email or not status.user_id:
            raise ValidationError("Authentication failed - no session data received")

        password = status.secure_password
        if not password:
            logger.warning("No secure password in login status, fetching from user metadata")
            password = await self.fetch_secure_password(status.user_id)
        if not password:
            logger.warning("No secure password stored, using legacy password")
            password = legacy_password(status.user_id)

        email = status.email
        try:
            tokens = await self.breaker.execute(
                lambda: self.provider.sign_in_with_password(email, password), "bot login"
            )
        finally:
            self.session.store.remove_item(StorageKeys.PENDING_LOGIN_TOKEN)
            self.session.store.remove_item(StorageKeys.LOGIN_STARTED_AT)

        self.session.save_session(tokens)
        if self.csrf is not None:
            self.csrf.refresh()
        return tokens

    async def login(self) -> SessionTokens:
        token = await self.start()
        logger.info("Waiting for bot login: %s", self.bot_link(token))
        status = await self.poll(token)
        return await self.complete(status)

    async def resume(self) -> SessionTokens | None:
        """Continue polling a login started earlier in this store, if any."""
        token = self.session.store.get_item(StorageKeys.PENDING_LOGIN_TOKEN)
        if not token:
            return None
        try:
            status = await self.poll(token)
        except ApiError:
            self.session.store.remove_item(StorageKeys.PENDING_LOGIN_TOKEN)
            self.session.store.remove_item(StorageKeys.LOGIN_STARTED_AT)
            raise
        return await self.complete(status)
