# Shared fixtures for the mail delegation tests.

import pytest

from oauth.providers import ProviderRegistry
from utils.storage import MemoryKeyValueStore, TokenStore

ORIGIN = "http://localhost:8081"
REDIRECT_URI = f"{ORIGIN}/auth/callback"
GOOGLE_CLIENT_ID = "1234567890-abcdef.apps.googleusercontent.com"
MICROSOFT_CLIENT_ID = "0f1e2d3c-4b5a-6978-8695-a4b3c2d1e0f9"


class FakeClock:
    """Manually advanced epoch clock"""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePopup:
    def __init__(self):
        self.closed = False
        self.close_calls = 0

    def close(self):
        self.close_calls += 1
        self.closed = True


class FakeOpener:
    """WindowOpener that records calls and hands out one FakePopup"""

    def __init__(self, blocked: bool = False, on_open=None):
        self.blocked = blocked
        self.on_open = on_open
        self.calls = []
        self.popup = FakePopup()

    def __call__(self, url, name, features):
        self.calls.append((url, name, features))
        if self.blocked:
            return None
        if self.on_open is not None:
            self.on_open(url, self.popup)
        return self.popup


@pytest.fixture
def registry():
    return ProviderRegistry.build(
        google_client_id=GOOGLE_CLIENT_ID,
        microsoft_client_id=MICROSOFT_CLIENT_ID,
        redirect_uri=REDIRECT_URI,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    return MemoryKeyValueStore()


@pytest.fixture
def store(backend, clock):
    return TokenStore(backend, clock=clock)


@pytest.fixture
def opener():
    return FakeOpener()
