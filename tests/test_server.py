# Tests for the HTTP service endpoints.

import json
import re

import httpx
import pytest
from fastapi.testclient import TestClient

import settings
from mail.dispatcher import EmailDispatcher
from oauth.models import AuthTokens, UserInfo
from oauth.providers import ProviderRegistry
from oauth.token_manager import TokenLifecycleManager
from server.app import app
from server.dependencies import get_dispatcher, get_lifecycle_manager, get_registry, get_token_store
from server.endpoints.callback import build_callback_payload, render_callback_page

from conftest import REDIRECT_URI


class SendEndpoint:
    def __init__(self, status=202):
        self.status = status
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return httpx.Response(self.status)


@pytest.fixture
def send_endpoint():
    return SendEndpoint()


@pytest.fixture
def client(registry, store, clock, send_endpoint):
    manager = TokenLifecycleManager(store, registry, clock=clock)
    dispatcher = EmailDispatcher(http_client=httpx.AsyncClient(transport=httpx.MockTransport(send_endpoint)))

    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_token_store] = lambda: store
    app.dependency_overrides[get_lifecycle_manager] = lambda: manager
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _posted_payload(html):
    match = re.search(r"var payload = (.*);", html)
    return json.loads(match.group(1))


class TestCallbackPage:
    def test_success_posts_code_and_state(self, client):
        response = client.get(settings.REDIRECT_PATH, params={"code": "abc", "state": "google_SE_xyz"})

        assert response.status_code == 200
        assert _posted_payload(response.text) == {"type": "oauth_success", "code": "abc", "state": "google_SE_xyz"}
        assert f"postMessage(payload, {json.dumps(settings.APP_ORIGIN)})" in response.text
        assert "window.close()" in response.text

    def test_provider_error(self, client):
        response = client.get(
            settings.REDIRECT_PATH,
            params={"error": "access_denied", "error_description": "The user declined"},
        )
        assert _posted_payload(response.text) == {
            "type": "oauth_error",
            "error": "access_denied: The user declined",
        }

    def test_missing_code(self):
        assert build_callback_payload(None, "s", None, None)["type"] == "oauth_error"

    def test_script_injection_is_neutralized(self):
        page = render_callback_page(
            build_callback_payload("</script><script>alert(1)</script>", "s", None, None),
            "http://localhost:8081",
        )
        assert "</script><script>" not in page


class TestAuthEndpoints:
    def test_providers(self, client):
        response = client.get("/auth/providers")
        assert response.status_code == 200
        assert [p["name"] for p in response.json()] == ["google", "microsoft"]
        assert all(p["configured"] for p in response.json())

    def test_status(self, client, store, clock):
        store.save_tokens("SE", "microsoft", AuthTokens.issued("secret-at", 3600, "secret-rt", now=clock()))
        store.save_user_info("SE", "microsoft", UserInfo(id="1", email="anna@contoso.com", name="Anna"))

        response = client.get("/auth/status/SE/microsoft")
        body = response.json()

        assert response.status_code == 200
        assert body["has_tokens"] is True
        assert body["is_expired"] is False
        assert body["email"] == "anna@contoso.com"
        assert "secret" not in response.text

    def test_unknown_provider(self, client):
        assert client.get("/auth/status/SE/yahoo").status_code == 404

    def test_disconnect(self, client, store, clock):
        store.save_tokens("SE", "google", AuthTokens.issued("at", 3600, None, now=clock()))

        response = client.delete("/auth/SE/google")

        assert response.status_code == 200
        assert store.load_tokens("SE", "google") is None


class TestSendEmail:
    REQUEST = {
        "country": "SE",
        "provider": "microsoft",
        "to": ["bo@example.com"],
        "subject": "Invoice",
        "body": "<p>Attached</p>",
        "attachments": [{"filename": "invoice.pdf", "content": "JVBERi0=", "content_type": "application/pdf"}],
    }

    def test_send(self, client, store, clock, send_endpoint):
        store.save_tokens("SE", "microsoft", AuthTokens.issued("ms-at", 3600, "rt", now=clock()))

        response = client.post("/email/send", json=self.REQUEST)

        assert response.status_code == 200
        assert response.json() == {"sent": True, "provider": "microsoft"}
        request = send_endpoint.requests[0]
        assert request.headers["Authorization"] == "Bearer ms-at"
        assert json.loads(request.content)["message"]["attachments"][0]["contentBytes"] == "JVBERi0="

    def test_not_connected(self, client, send_endpoint):
        response = client.post("/email/send", json=self.REQUEST)
        assert response.status_code == 401
        assert send_endpoint.requests == []

    def test_expired_google_needs_reconnect(self, client, store, clock):
        store.save_tokens("SE", "google", AuthTokens.issued("g-at", 3600, "rt", now=clock() - 7200))

        response = client.post("/email/send", json={**self.REQUEST, "provider": "google"})

        assert response.status_code == 401
        assert store.load_tokens("SE", "google") is None

    def test_rejected_by_provider(self, client, store, clock, send_endpoint):
        send_endpoint.status = 403
        store.save_tokens("SE", "microsoft", AuthTokens.issued("ms-at", 3600, "rt", now=clock()))

        assert client.post("/email/send", json=self.REQUEST).status_code == 502

    def test_validation(self, client):
        assert client.post("/email/send", json={**self.REQUEST, "to": []}).status_code == 422

    @pytest.mark.parametrize("override", [
        {"subject": "Hi\r\nBcc: spy@evil.com"},
        {"to": ["bo@example.com\nBcc: spy@evil.com"]},
        {"from_address": "me@example.com\r\nBcc: spy@evil.com"},
        {"attachments": [{"filename": "a.pdf\r\nX-Injected: 1", "content": "JVBERi0="}]},
    ])
    def test_header_line_breaks_rejected(self, client, store, clock, send_endpoint, override):
        store.save_tokens("SE", "google", AuthTokens.issued("g-at", 3600, None, now=clock()))

        response = client.post("/email/send", json={**self.REQUEST, "provider": "google", **override})

        assert response.status_code == 422
        assert send_endpoint.requests == []

    def test_unknown_provider(self, client):
        assert client.post("/email/send", json={**self.REQUEST, "provider": "yahoo"}).status_code == 404


def test_health(client):
    response = client.get("/health")
    body = response.json()
    assert body["status"] == "healthy"
    assert body["providers"] == {"google": True, "microsoft": True}


def test_unconfigured_provider_is_reported():
    registry = ProviderRegistry.build("your-google-client-id", "", REDIRECT_URI)
    app.dependency_overrides[get_registry] = lambda: registry
    try:
        providers = TestClient(app).get("/auth/providers").json()
    finally:
        app.dependency_overrides.clear()
    assert not any(p["configured"] for p in providers)
