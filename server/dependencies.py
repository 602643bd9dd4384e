"""
Process wide collaborators shared by the endpoints.

Endpoints receive these through FastAPI's Depends so tests can swap them
with app.dependency_overrides.
"""
from typing import Optional

import settings
from mail.dispatcher import EmailDispatcher
from oauth.providers import ProviderRegistry, get_provider_registry
from oauth.token_manager import TokenLifecycleManager
from utils.storage import JsonFileKeyValueStore, TokenStore

_token_store: Optional[TokenStore] = None
_lifecycle_manager: Optional[TokenLifecycleManager] = None
_dispatcher: Optional[EmailDispatcher] = None


def get_registry() -> ProviderRegistry:
    return get_provider_registry()


def get_token_store() -> TokenStore:
    global _token_store
    if _token_store is None:
        _token_store = TokenStore(JsonFileKeyValueStore(settings.TOKEN_FILE))
    return _token_store


def get_lifecycle_manager() -> TokenLifecycleManager:
    # One instance per process so refreshes stay single-flight per identity
    global _lifecycle_manager
    if _lifecycle_manager is None:
        _lifecycle_manager = TokenLifecycleManager(
            get_token_store(),
            get_registry(),
            expiring_soon_seconds=settings.EXPIRING_SOON_SECONDS,
            timeout=settings.REQUEST_TIMEOUT,
        )
    return _lifecycle_manager


def get_dispatcher() -> EmailDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = EmailDispatcher(timeout=settings.REQUEST_TIMEOUT)
    return _dispatcher
