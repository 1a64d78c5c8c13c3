"""Session lifecycle: token validity, refresh and recovery.

The manager is a small state machine::

    anonymous -> valid -> refreshing -> valid
                                     -> failed

An expired access token is refreshed once through the auth provider, guarded
by the circuit breaker. Concurrent callers share the same refresh. When the
provider rejects the refresh token the session is lost: auth storage is
cleared, ``auth-reload-pending`` is set and ``on_session_lost`` is called so
the embedding application can send the user back to login. Transient failures
(network, open circuit, timeout) leave the stored tokens in place so a later
call can try again.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar

from startupsareeasy.auth.provider import AuthProviderClient
from startupsareeasy.auth.schemas import SessionTokens
from startupsareeasy.rest.errors import (
    ApiError,
    AuthExpiredError,
    CircuitOpenError,
    NetworkError,
    OperationTimeoutError,
    is_auth_error,
)
from startupsareeasy.session.breaker import CircuitBreaker
from startupsareeasy.session.storage import StorageKeys, TokenStore
from startupsareeasy.session.tokens import is_token_expired

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (NetworkError, CircuitOpenError, OperationTimeoutError)


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    VALID = "valid"
    REFRESHING = "refreshing"
    FAILED = "failed"


class SessionManager:
    def __init__(
        self,
        store: TokenStore,
        provider: AuthProviderClient,
        breaker: CircuitBreaker,
        on_session_lost: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.provider = provider
        self.breaker = breaker
        self.on_session_lost = on_session_lost
        self._clock = clock
        self._refresh_task: asyncio.Task | None = None
        self._state = SessionState.VALID if store.get_item(StorageKeys.ACCESS_TOKEN) else SessionState.ANONYMOUS
        self._unsubscribe = store.add_listener(StorageKeys.ACCESS_TOKEN, self._on_external_token_change)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def access_token(self) -> str | None:
        return self.store.get_item(StorageKeys.ACCESS_TOKEN)

    def is_authenticated(self) -> bool:
        token = self.access_token
        return bool(token) and not is_token_expired(token, now=self._clock())

    def save_session(self, tokens: SessionTokens) -> None:
        self.store.set_item(StorageKeys.ACCESS_TOKEN, tokens.access_token)
        if tokens.refresh_token:
            self.store.set_item(StorageKeys.REFRESH_TOKEN, tokens.refresh_token)
        self.store.set_item(StorageKeys.LOGIN_COMPLETE, "true")
        self.store.remove_item(StorageKeys.AUTH_RELOAD_PENDING)
        self._state = SessionState.VALID

    async def get_valid_token(self) -> str | None:
        token = self.access_token
        if not token:
            logger.warning("get_valid_token: no token available")
            self._state = SessionState.ANONYMOUS
            return None

        if not is_token_expired(token, now=self._clock()):
            if self._state is not SessionState.REFRESHING:
                self._state = SessionState.VALID
            return token

        logger.warning("get_valid_token: token is expired, refreshing")
        return await self.refresh()

    async def refresh(self) -> str | None:
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.ensure_future(self._refresh())
        return await asyncio.shield(self._refresh_task)

    async def _refresh(self) -> str | None:
        refresh_token = self.store.get_item(StorageKeys.REFRESH_TOKEN)
        if not refresh_token:
            self._lose_session("no refresh token")
            return None

        self._state = SessionState.REFRESHING
        try:
            tokens = await self.breaker.execute(lambda: self.provider.refresh_session(refresh_token), "refresh session")
        except TRANSIENT_ERRORS as exc:
            logger.warning("Session refresh failed transiently: %s", exc)
            self._state = SessionState.FAILED
            return None
        except ApiError as exc:
            logger.warning("Session refresh rejected: %s", exc)
            self._lose_session(str(exc))
            return None

        self.save_session(tokens)
        logger.info("Session refreshed")
        return tokens.access_token

    def _lose_session(self, reason: str) -> None:
        logger.info("Session lost: %s", reason)
        self._state = SessionState.FAILED
        self.store.clear_auth_storage()
        self.store.set_item(StorageKeys.AUTH_RELOAD_PENDING, "true")
        if self.on_session_lost is not None:
            self.on_session_lost(reason)

    async def require_token(self) -> str:
        token = await self.get_valid_token()
        if not token:
            raise AuthExpiredError("Authentication token required")
        return token

    async def handle_api_error(self, error: Exception, operation: str) -> None:
        """Log ``error``, recover the session when it is auth related, then re-raise it."""
        logger.error("API error in %s: %s", operation, error)
        if is_auth_error(error):
            logger.info("Auth error detected in %s, refreshing session", operation)
            await self.refresh()
        raise error

    async def with_auth_error_handling(self, call: Callable[[], Awaitable[T]], operation: str) -> T:
        try:
            return await call()
        except Exception as exc:
            await self.handle_api_error(exc, operation)
            raise

    async def sign_out(self) -> None:
        token = self.access_token
        self.store.set_item(StorageKeys.LOGOUT_IN_PROGRESS, "true")
        if token:
            try:
                await self.provider.sign_out(token)
            except ApiError as exc:
                logger.warning("Remote sign out failed: %s", exc)
        self.store.clear_auth_storage()
        self._state = SessionState.ANONYMOUS
        logger.info("Signed out")

    def _on_external_token_change(self, value: str | None) -> None:
        if value is None:
            logger.info("Access token removed in another context")
            self._state = SessionState.ANONYMOUS
        elif not is_token_expired(value, now=self._clock()):
            logger.info("Access token updated in another context")
            self._state = SessionState.VALID

    def close(self) -> None:
        self._unsubscribe()
