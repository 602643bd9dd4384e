# Tests for token validity checks, silent refresh and fail-closed clearing.

import asyncio

import httpx
import pytest

from oauth.models import AuthTokens, UserInfo
from oauth.token_manager import TokenLifecycleManager


class RefreshEndpoint:
    """MockTransport handler counting calls to the token endpoint"""

    def __init__(self, status=200, payload=None, delay=0.0):
        self.status = status
        self.payload = payload if payload is not None else {"access_token": "at-new", "expires_in": 3600}
        self.delay = delay
        self.calls = 0

    async def __call__(self, request):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return httpx.Response(self.status, json=self.payload)


@pytest.fixture
def endpoint():
    return RefreshEndpoint()


@pytest.fixture
def http_client(endpoint):
    # MockTransport holds no connections, so the client needs no closing
    return httpx.AsyncClient(transport=httpx.MockTransport(endpoint))


@pytest.fixture
def manager(store, registry, clock, http_client):
    return TokenLifecycleManager(store, registry, http_client=http_client, clock=clock)


def _store_expired(store, clock, provider, refresh_token="rt-old"):
    store.save_tokens("SE", provider, AuthTokens.issued("at-old", 3600, refresh_token, now=clock() - 7200))
    store.save_user_info("SE", provider, UserInfo(id="1", email="a@example.com", name="A"))


class TestGetValidAccessToken:
    @pytest.mark.asyncio
    async def test_no_tokens(self, manager, endpoint):
        assert await manager.get_valid_access_token("SE", "google") is None
        assert endpoint.calls == 0

    @pytest.mark.asyncio
    async def test_valid_token_returned_as_is(self, manager, store, clock, endpoint):
        store.save_tokens("SE", "google", AuthTokens.issued("at-live", 3600, None, now=clock()))
        assert await manager.get_valid_access_token("SE", "google") == "at-live"
        assert endpoint.calls == 0

    @pytest.mark.asyncio
    async def test_microsoft_refreshes_once(self, manager, store, clock, endpoint):
        _store_expired(store, clock, "microsoft")

        assert await manager.get_valid_access_token("SE", "microsoft") == "at-new"
        assert endpoint.calls == 1

        stored = store.load_tokens("SE", "microsoft")
        assert stored.access_token == "at-new"
        assert stored.refresh_token == "rt-old"
        assert stored.expires_at == clock() + 3600
        assert store.load_user_info("SE", "microsoft") is not None

    @pytest.mark.asyncio
    async def test_rotated_refresh_token_is_stored(self, manager, store, clock, endpoint):
        endpoint.payload = {"access_token": "at-new", "refresh_token": "rt-new", "expires_in": 3600}
        _store_expired(store, clock, "microsoft")

        await manager.get_valid_access_token("SE", "microsoft")
        assert store.load_tokens("SE", "microsoft").refresh_token == "rt-new"

    @pytest.mark.asyncio
    async def test_google_expired_is_cleared_without_network(self, manager, store, clock, endpoint):
        _store_expired(store, clock, "google", refresh_token="rt-google")

        assert await manager.get_valid_access_token("SE", "google") is None
        assert endpoint.calls == 0
        assert store.load_tokens("SE", "google") is None
        assert store.load_user_info("SE", "google") is None

    @pytest.mark.asyncio
    async def test_microsoft_without_refresh_token_is_cleared(self, manager, store, clock, endpoint):
        _store_expired(store, clock, "microsoft", refresh_token=None)

        assert await manager.get_valid_access_token("SE", "microsoft") is None
        assert endpoint.calls == 0
        assert store.load_tokens("SE", "microsoft") is None

    @pytest.mark.asyncio
    async def test_refresh_failure_clears(self, manager, store, clock, endpoint):
        endpoint.status = 400
        endpoint.payload = {"error": "invalid_grant"}
        _store_expired(store, clock, "microsoft")

        assert await manager.get_valid_access_token("SE", "microsoft") is None
        assert endpoint.calls == 1
        assert store.load_tokens("SE", "microsoft") is None
        assert store.load_user_info("SE", "microsoft") is None

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self, manager, store, clock, endpoint):
        endpoint.delay = 0.05
        _store_expired(store, clock, "microsoft")

        results = await asyncio.gather(*(manager.get_valid_access_token("SE", "microsoft") for _ in range(5)))

        assert results == ["at-new"] * 5
        assert endpoint.calls == 1
        assert not manager.is_refreshing("SE", "microsoft")

    @pytest.mark.asyncio
    async def test_identities_are_independent(self, manager, store, clock, endpoint):
        _store_expired(store, clock, "microsoft")
        store.save_tokens("NO", "microsoft", AuthTokens.issued("at-no", 3600, "rt", now=clock()))

        await manager.get_valid_access_token("SE", "microsoft")
        assert store.load_tokens("NO", "microsoft").access_token == "at-no"


class TestPredicatesAndRefresh:
    def test_expiring_soon(self, manager, clock):
        tokens = AuthTokens.issued("at", 240, None, now=clock())
        assert not manager.is_token_expired(tokens)
        assert manager.is_token_expiring_soon(tokens)
        clock.advance(240)
        assert manager.is_token_expired(tokens)

    @pytest.mark.asyncio
    async def test_proactive_refresh(self, manager, store, clock, endpoint):
        store.save_tokens("SE", "microsoft", AuthTokens.issued("at-old", 120, "rt", now=clock()))

        tokens = await manager.refresh("SE", "microsoft")
        assert tokens.access_token == "at-new"
        assert endpoint.calls == 1

    @pytest.mark.asyncio
    async def test_refresh_without_path_keeps_live_tokens(self, manager, store, clock, endpoint):
        store.save_tokens("SE", "google", AuthTokens.issued("at-live", 120, "rt", now=clock()))

        tokens = await manager.refresh("SE", "google")
        assert tokens.access_token == "at-live"
        assert endpoint.calls == 0

    def test_disconnect(self, manager, store, clock):
        _store_expired(store, clock, "google")
        manager.disconnect("SE", "google")
        assert store.load_tokens("SE", "google") is None
        assert store.load_user_info("SE", "google") is None
