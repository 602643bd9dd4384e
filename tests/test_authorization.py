# Tests for authorization URL construction and client id validation.

from urllib.parse import parse_qs, urlparse

import pytest

from oauth.authorization import AuthorizationURLBuilder, create_state, is_placeholder_client_id
from oauth.errors import ConfigurationError
from oauth.pkce import PKCEManager
from oauth.providers import GOOGLE_SCOPES, MICROSOFT_SCOPES, ProviderRegistry

from conftest import MICROSOFT_CLIENT_ID, REDIRECT_URI


def _query(url):
    parsed = urlparse(url)
    return parsed, {key: values[0] for key, values in parse_qs(parsed.query).items()}


class TestPlaceholderDetection:
    @pytest.mark.parametrize("client_id", ["", "   ", None, "your-google-client-id", "YOUR_CLIENT_ID", "changeme"])
    def test_placeholders(self, client_id):
        assert is_placeholder_client_id(client_id)

    def test_real_ids(self):
        assert not is_placeholder_client_id("1234567890-abcdef.apps.googleusercontent.com")
        assert not is_placeholder_client_id(MICROSOFT_CLIENT_ID)


class TestCreateState:
    def test_prefix_and_uniqueness(self):
        first = create_state("google", "SE")
        second = create_state("google", "SE")
        assert first.startswith("google_SE_")
        assert first != second
        assert len(first) > len("google_SE_") + 32


class TestAuthorizationURLBuilder:
    def test_common_parameters(self, registry):
        pkce = PKCEManager()
        builder = AuthorizationURLBuilder(registry.get("microsoft"), pkce)

        parsed, params = _query(builder.build_url("state-123"))

        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == (
            "https://login.microsoftonline.com/common/oauth2/v2.0/authorize"
        )
        assert params["client_id"] == MICROSOFT_CLIENT_ID
        assert params["response_type"] == "code"
        assert params["redirect_uri"] == REDIRECT_URI
        assert params["state"] == "state-123"
        assert params["scope"] == " ".join(MICROSOFT_SCOPES)
        assert params["code_challenge_method"] == "S256"
        assert params["code_challenge"] == pkce.codes.code_challenge
        assert "access_type" not in params
        assert "prompt" not in params

    def test_google_requests_offline_consent(self, registry):
        builder = AuthorizationURLBuilder(registry.get("google"))
        parsed, params = _query(builder.build_url("s"))

        assert parsed.netloc == "accounts.google.com"
        assert params["access_type"] == "offline"
        assert params["prompt"] == "consent"
        assert params["scope"] == " ".join(GOOGLE_SCOPES)

    def test_each_url_starts_a_new_attempt(self, registry):
        pkce = PKCEManager()
        builder = AuthorizationURLBuilder(registry.get("google"), pkce)
        _, first = _query(builder.build_url("a"))
        _, second = _query(builder.build_url("b"))
        assert first["code_challenge"] != second["code_challenge"]
        assert pkce.state == "b"

    def test_placeholder_client_id_fails_before_randomness(self):
        registry = ProviderRegistry.build(
            google_client_id="your-google-client-id",
            microsoft_client_id="",
            redirect_uri=REDIRECT_URI,
        )
        drawn = []

        def spy_random(n):
            drawn.append(n)
            return b"\x00" * n

        for name in ("google", "microsoft"):
            pkce = PKCEManager(random_bytes=spy_random)
            builder = AuthorizationURLBuilder(registry.get(name), pkce)
            with pytest.raises(ConfigurationError):
                builder.build_url("state")
            assert not pkce.has_challenge

        assert drawn == []


class TestProviderRegistry:
    def test_lookup(self, registry):
        assert registry.get("google").name == "google"
        assert registry.get("Microsoft").name == "microsoft"
        assert "google" in registry
        assert "yahoo" not in registry
        assert registry.names() == ["google", "microsoft"]

    def test_unsupported_provider(self, registry):
        with pytest.raises(ConfigurationError, match="Unsupported provider"):
            registry.get("yahoo")

    def test_refresh_capability(self, registry):
        assert registry.get("microsoft").supports_refresh
        assert not registry.get("google").supports_refresh
