# Tests for authorization code exchange, refresh and profile lookup.

from urllib.parse import parse_qs

import httpx
import pytest

from oauth.errors import (
    AuthFailure,
    GrantError,
    MissingChallengeError,
    NetworkError,
    RedirectMismatchError,
    RefreshFailure,
    TokenExchangeError,
    UserInfoError,
)
from oauth.pkce import PKCEManager
from oauth.token_exchange import TokenExchangeClient, classify_token_error
from oauth.token_refresh import refresh_tokens

from conftest import MICROSOFT_CLIENT_ID, REDIRECT_URI


def _form(request):
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestClassifyTokenError:
    def test_invalid_grant(self):
        error = classify_token_error(400, '{"error": "invalid_grant"}')
        assert isinstance(error, GrantError)
        assert "expired" in str(error)

    def test_redirect_mismatch(self):
        assert isinstance(classify_token_error(400, '{"error": "redirect_uri_mismatch"}'), RedirectMismatchError)

    def test_unauthorized(self):
        error = classify_token_error(401, '{"error": "invalid_client"}')
        assert isinstance(error, AuthFailure)
        assert error.status_code == 401

    def test_other_statuses_keep_body(self):
        error = classify_token_error(500, "upstream exploded", "Internal Server Error")
        assert type(error) is TokenExchangeError
        assert str(error) == "Token exchange failed: 500 Internal Server Error - upstream exploded"

    def test_other_400(self):
        assert type(classify_token_error(400, '{"error": "invalid_request"}')) is TokenExchangeError


class TestTokenExchangeClient:
    @pytest.mark.asyncio
    async def test_exchange_posts_verifier(self, registry, clock):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"access_token": "at-1", "refresh_token": "rt-1", "expires_in": 3600})

        pkce = PKCEManager()
        codes = pkce.begin("state")
        async with _client(handler) as http_client:
            exchange = TokenExchangeClient(registry.get("microsoft"), pkce, http_client=http_client, clock=clock)
            tokens = await exchange.exchange("the-code")

        request = requests[0]
        assert str(request.url) == "https://login.microsoftonline.com/common/oauth2/v2.0/token"
        assert request.headers["Accept"] == "application/json"
        assert _form(request) == {
            "client_id": MICROSOFT_CLIENT_ID,
            "code": "the-code",
            "grant_type": "authorization_code",
            "redirect_uri": REDIRECT_URI,
            "code_verifier": codes.code_verifier,
        }
        assert tokens.access_token == "at-1"
        assert tokens.refresh_token == "rt-1"
        assert tokens.expires_at == clock() + 3600
        assert not pkce.has_challenge

    @pytest.mark.asyncio
    async def test_missing_challenge_makes_no_request(self, registry):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        async with _client(handler) as http_client:
            exchange = TokenExchangeClient(registry.get("google"), PKCEManager(), http_client=http_client)
            with pytest.raises(MissingChallengeError):
                await exchange.exchange("code")
        assert calls == []

    @pytest.mark.asyncio
    async def test_failure_is_classified_and_consumes_challenge(self, registry):
        def handler(request):
            return httpx.Response(400, json={"error": "invalid_grant"})

        pkce = PKCEManager()
        pkce.begin("state")
        async with _client(handler) as http_client:
            exchange = TokenExchangeClient(registry.get("google"), pkce, http_client=http_client)
            with pytest.raises(GrantError) as excinfo:
                await exchange.exchange("stale-code")
            with pytest.raises(MissingChallengeError):
                await exchange.exchange("stale-code")

        assert excinfo.value.status_code == 400

    @pytest.mark.asyncio
    async def test_network_error(self, registry):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        pkce = PKCEManager()
        pkce.begin("state")
        async with _client(handler) as http_client:
            exchange = TokenExchangeClient(registry.get("google"), pkce, http_client=http_client)
            with pytest.raises(NetworkError):
                await exchange.exchange("code")

    @pytest.mark.asyncio
    async def test_unusable_body(self, registry):
        def handler(request):
            return httpx.Response(200, json={"token_type": "Bearer"})

        pkce = PKCEManager()
        pkce.begin("state")
        async with _client(handler) as http_client:
            exchange = TokenExchangeClient(registry.get("google"), pkce, http_client=http_client)
            with pytest.raises(TokenExchangeError):
                await exchange.exchange("code")


class TestUserInfo:
    @pytest.mark.asyncio
    async def test_microsoft_falls_back_to_principal_name(self, registry):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["url"] = str(request.url)
            return httpx.Response(200, json={
                "id": "ms-1",
                "mail": None,
                "userPrincipalName": "anna@contoso.onmicrosoft.com",
                "displayName": "Anna Berg",
            })

        async with _client(handler) as http_client:
            exchange = TokenExchangeClient(registry.get("microsoft"), PKCEManager(), http_client=http_client)
            user_info = await exchange.get_user_info("token-abc")

        assert seen == {"auth": "Bearer token-abc", "url": "https://graph.microsoft.com/v1.0/me"}
        assert user_info.email == "anna@contoso.onmicrosoft.com"
        assert user_info.name == "Anna Berg"
        assert user_info.picture is None

    @pytest.mark.asyncio
    async def test_google_profile(self, registry):
        def handler(request):
            return httpx.Response(200, json={
                "id": "g-1",
                "email": "anna@example.com",
                "name": "Anna",
                "picture": "https://lh3.googleusercontent.com/a/photo",
            })

        async with _client(handler) as http_client:
            exchange = TokenExchangeClient(registry.get("google"), PKCEManager(), http_client=http_client)
            user_info = await exchange.get_user_info("token")

        assert user_info.id == "g-1"
        assert user_info.email == "anna@example.com"
        assert user_info.picture == "https://lh3.googleusercontent.com/a/photo"

    @pytest.mark.asyncio
    async def test_failure(self, registry):
        def handler(request):
            return httpx.Response(401, text="expired")

        async with _client(handler) as http_client:
            exchange = TokenExchangeClient(registry.get("google"), PKCEManager(), http_client=http_client)
            with pytest.raises(UserInfoError) as excinfo:
                await exchange.get_user_info("token")
        assert excinfo.value.status_code == 401


class TestRefreshTokens:
    @pytest.mark.asyncio
    async def test_keeps_refresh_token_when_not_rotated(self, registry, clock):
        forms = []

        def handler(request):
            forms.append(_form(request))
            return httpx.Response(200, json={"access_token": "at-2", "expires_in": 1800})

        async with _client(handler) as http_client:
            tokens = await refresh_tokens(registry.get("microsoft"), "rt-old", http_client=http_client, clock=clock)

        assert forms[0]["grant_type"] == "refresh_token"
        assert forms[0]["refresh_token"] == "rt-old"
        assert "offline_access" in forms[0]["scope"]
        assert tokens.access_token == "at-2"
        assert tokens.refresh_token == "rt-old"
        assert tokens.expires_at == clock() + 1800

    @pytest.mark.asyncio
    async def test_google_is_never_refreshed(self, registry):
        with pytest.raises(RefreshFailure):
            await refresh_tokens(registry.get("google"), "rt")

    @pytest.mark.asyncio
    async def test_refused(self, registry):
        def handler(request):
            return httpx.Response(400, json={"error": "invalid_grant"})

        async with _client(handler) as http_client:
            with pytest.raises(RefreshFailure) as excinfo:
                await refresh_tokens(registry.get("microsoft"), "rt", http_client=http_client)
        assert excinfo.value.status_code == 400
