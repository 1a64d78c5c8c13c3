"""Wiring for one client context (the equivalent of one browser tab).

Contexts built with the same ``BroadcastHub`` and a shared storage backend
see each other's token changes.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx

from startupsareeasy.auth.bot_login import BotLoginFlow
from startupsareeasy.auth.provider import AuthProviderClient
from startupsareeasy.auth.schemas import SessionTokens
from startupsareeasy.auth.telegram import TelegramLoginClient, sign_in_with_dev_credentials
from startupsareeasy.config.settings import Settings, get_settings
from startupsareeasy.rest.client import RestClient
from startupsareeasy.rest.dedup import RequestDeduplicator, SlidingWindowRateLimiter
from startupsareeasy.session.breaker import CircuitBreaker
from startupsareeasy.session.broadcast import BroadcastHub
from startupsareeasy.session.csrf import CsrfManager
from startupsareeasy.session.manager import SessionManager
from startupsareeasy.session.storage import StorageBackend, TokenStore

logger = logging.getLogger(__name__)


@dataclass
class ClientContext:
    settings: Settings
    http: httpx.AsyncClient
    store: TokenStore
    breaker: CircuitBreaker
    deduplicator: RequestDeduplicator
    rest: RestClient
    provider: AuthProviderClient
    session: SessionManager
    csrf: CsrfManager
    telegram: TelegramLoginClient
    bot_login: BotLoginFlow
    owns_http: bool = field(default=False, repr=False)

    async def dev_login(self) -> SessionTokens:
        return await sign_in_with_dev_credentials(self.settings, self.session, self.provider, self.breaker)

    async def sign_out(self) -> None:
        await self.session.sign_out()
        self.csrf.clear()

    async def aclose(self) -> None:
        self.session.close()
        self.deduplicator.clear()
        self.store.close()
        if self.owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "ClientContext":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def build_client_context(
    settings: Settings | None = None,
    *,
    http: httpx.AsyncClient | None = None,
    backend: StorageBackend | None = None,
    hub: BroadcastHub | None = None,
    on_session_lost: Callable[[str], None] | None = None,
) -> ClientContext:
    settings = settings or get_settings()
    owns_http = http is None
    if http is None:
        http = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    store = TokenStore(backend, hub)
    breaker = CircuitBreaker(
        max_failures=settings.BREAKER_MAX_FAILURES,
        cooldown=settings.BREAKER_COOLDOWN_SECONDS,
        attempt_timeout=settings.BREAKER_ATTEMPT_TIMEOUT_SECONDS,
    )
    limiter = SlidingWindowRateLimiter(
        limit=settings.CLIENT_RATE_LIMIT_REQUESTS, window=settings.CLIENT_RATE_LIMIT_WINDOW_SECONDS
    )
    deduplicator = RequestDeduplicator(http, limiter, eviction_delay=settings.DEDUP_EVICTION_SECONDS)
    rest = RestClient(settings.rest_url, settings.SUPABASE_ANON_KEY, http, deduplicator)
    provider = AuthProviderClient(settings.auth_url, settings.SUPABASE_ANON_KEY, http)
    session = SessionManager(store, provider, breaker, on_session_lost=on_session_lost)
    csrf = CsrfManager(store)

    logger.debug("Client context built for %s", settings.SUPABASE_URL)
    return ClientContext(
        settings=settings,
        http=http,
        store=store,
        breaker=breaker,
        deduplicator=deduplicator,
        rest=rest,
        provider=provider,
        session=session,
        csrf=csrf,
        telegram=TelegramLoginClient(settings, http, session, provider, rest, breaker),
        bot_login=BotLoginFlow(settings.APP_URL, http, session, provider, breaker, csrf=csrf),
        owns_http=owns_http,
    )
