"""Tests for session validation, refresh and recovery."""

import asyncio

import httpx
import pytest
from conftest import make_token

from startupsareeasy.auth.provider import AuthProviderClient
from startupsareeasy.auth.schemas import SessionTokens
from startupsareeasy.rest.errors import AuthExpiredError, NetworkError
from startupsareeasy.session.breaker import CircuitBreaker
from startupsareeasy.session.broadcast import BroadcastHub
from startupsareeasy.session.manager import SessionManager, SessionState
from startupsareeasy.session.storage import MemoryBackend, StorageKeys, TokenStore

AUTH_URL = "https://project.supabase.co/auth/v1"


def build(recorder, store=None, lost=None):
    http = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    provider = AuthProviderClient(AUTH_URL, "anon-key", http)
    return SessionManager(store or TokenStore(), provider, CircuitBreaker(), on_session_lost=lost)


def refresh_ok(access_token):
    return httpx.Response(200, json={"access_token": access_token, "refresh_token": "refresh-2", "token_type": "bearer"})


@pytest.mark.asyncio
async def test_valid_token_is_returned_without_refresh(recorder):
    manager = build(recorder)
    token = make_token()
    manager.save_session(SessionTokens(access_token=token, refresh_token="r"))

    assert await manager.get_valid_token() == token
    assert manager.state is SessionState.VALID
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_no_token_is_anonymous(recorder):
    manager = build(recorder)
    assert await manager.get_valid_token() is None
    assert manager.state is SessionState.ANONYMOUS
    with pytest.raises(AuthExpiredError):
        await manager.require_token()


@pytest.mark.asyncio
async def test_expired_token_is_refreshed(recorder):
    fresh = make_token()
    recorder.add("POST", "/auth/v1/token", refresh_ok(fresh))
    manager = build(recorder)
    manager.save_session(SessionTokens(access_token=make_token(expires_in=-60), refresh_token="refresh-1"))

    assert await manager.get_valid_token() == fresh
    assert manager.state is SessionState.VALID
    assert manager.store.get_item(StorageKeys.REFRESH_TOKEN) == "refresh-2"
    request = recorder.sent("POST", "/token")[0]
    assert request.url.params["grant_type"] == "refresh_token"


@pytest.mark.asyncio
async def test_concurrent_refreshes_share_one_request(recorder):
    fresh = make_token()

    async def slow_refresh(request):
        await asyncio.sleep(0.01)
        return refresh_ok(fresh)

    recorder.add("POST", "/auth/v1/token", slow_refresh)
    manager = build(recorder)
    manager.save_session(SessionTokens(access_token=make_token(expires_in=-60), refresh_token="refresh-1"))

    results = await asyncio.gather(manager.get_valid_token(), manager.get_valid_token(), manager.refresh())

    assert results == [fresh, fresh, fresh]
    assert len(recorder.sent("POST", "/token")) == 1


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_shared_refresh(recorder):
    fresh = make_token()
    release = asyncio.Event()

    async def gated_refresh(request):
        await release.wait()
        return refresh_ok(fresh)

    recorder.add("POST", "/auth/v1/token", gated_refresh)
    manager = build(recorder)
    manager.save_session(SessionTokens(access_token=make_token(expires_in=-60), refresh_token="refresh-1"))

    first = asyncio.ensure_future(manager.get_valid_token())
    second = asyncio.ensure_future(manager.get_valid_token())
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    first.cancel()
    await asyncio.sleep(0)
    release.set()

    assert await second == fresh
    assert first.cancelled()
    assert manager.state is SessionState.VALID
    assert len(recorder.sent("POST", "/token")) == 1


@pytest.mark.asyncio
async def test_rejected_refresh_loses_session(recorder):
    recorder.add("POST", "/auth/v1/token", httpx.Response(400, json={"error": "invalid_grant"}))
    reasons = []
    manager = build(recorder, lost=reasons.append)
    manager.save_session(SessionTokens(access_token=make_token(expires_in=-60), refresh_token="stale"))

    assert await manager.get_valid_token() is None
    assert manager.state is SessionState.FAILED
    assert manager.store.get_item(StorageKeys.ACCESS_TOKEN) is None
    assert manager.store.get_item(StorageKeys.AUTH_RELOAD_PENDING) == "true"
    assert len(reasons) == 1


@pytest.mark.asyncio
async def test_transient_refresh_failure_keeps_tokens(recorder):
    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    recorder.add("POST", "/auth/v1/token", unreachable)
    reasons = []
    manager = build(recorder, lost=reasons.append)
    manager.save_session(SessionTokens(access_token=make_token(expires_in=-60), refresh_token="refresh-1"))

    assert await manager.refresh() is None
    assert manager.state is SessionState.FAILED
    assert manager.store.get_item(StorageKeys.REFRESH_TOKEN) == "refresh-1"
    assert reasons == []


@pytest.mark.asyncio
async def test_missing_refresh_token_loses_session(recorder):
    store = TokenStore(MemoryBackend({StorageKeys.ACCESS_TOKEN: make_token(expires_in=-60)}))
    reasons = []
    manager = build(recorder, store=store, lost=reasons.append)

    assert await manager.get_valid_token() is None
    assert reasons == ["no refresh token"]
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_handle_api_error_refreshes_on_auth_errors_and_reraises(recorder):
    recorder.add("POST", "/auth/v1/token", refresh_ok(make_token()))
    manager = build(recorder)
    manager.save_session(SessionTokens(access_token=make_token(), refresh_token="refresh-1"))

    async def failing_call():
        raise AuthExpiredError("JWT expired", 401)

    with pytest.raises(AuthExpiredError):
        await manager.with_auth_error_handling(failing_call, "load posts")
    assert len(recorder.sent("POST", "/token")) == 1


@pytest.mark.asyncio
async def test_handle_api_error_leaves_session_alone_for_other_errors(recorder):
    manager = build(recorder)

    async def failing_call():
        raise NetworkError("connection reset")

    with pytest.raises(NetworkError):
        await manager.with_auth_error_handling(failing_call, "load posts")
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_sign_out_clears_storage(recorder):
    recorder.add("POST", "/auth/v1/logout", httpx.Response(204))
    manager = build(recorder)
    manager.save_session(SessionTokens(access_token=make_token(), refresh_token="r"))

    await manager.sign_out()

    assert manager.state is SessionState.ANONYMOUS
    assert manager.access_token is None
    assert recorder.sent("POST", "/logout")[0].headers["Authorization"].startswith("Bearer ")


def test_token_removed_in_other_context_sets_anonymous(recorder):
    hub = BroadcastHub()
    backend = MemoryBackend()
    tab_a = build(recorder, store=TokenStore(backend, hub))
    tab_b = build(recorder, store=TokenStore(backend, hub))

    tab_a.save_session(SessionTokens(access_token=make_token(), refresh_token="r"))
    assert tab_b.state is SessionState.VALID

    tab_a.store.remove_item(StorageKeys.ACCESS_TOKEN)
    assert tab_b.state is SessionState.ANONYMOUS
