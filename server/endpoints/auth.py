"""
Connection status and disconnect endpoints.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from oauth.authorization import is_placeholder_client_id
from oauth.errors import ConfigurationError
from oauth.providers import ProviderRegistry
from oauth.token_manager import TokenLifecycleManager
from utils.storage import TokenStore
from ..dependencies import get_lifecycle_manager, get_registry, get_token_store
from ..models import ProviderSummary

router = APIRouter()


def _require_provider(registry: ProviderRegistry, provider: str) -> None:
    try:
        registry.get(provider)
    except ConfigurationError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/auth/providers", response_model=List[ProviderSummary])
async def list_providers(registry: ProviderRegistry = Depends(get_registry)):
    """Supported providers and whether their client id is configured"""
    return [
        ProviderSummary(
            name=provider.name,
            display_name=provider.descriptor.display_name,
            configured=not is_placeholder_client_id(provider.descriptor.client_id),
            supports_refresh=provider.supports_refresh,
        )
        for provider in registry
    ]


@router.get("/auth/status/{country}/{provider}")
async def auth_status(
    country: str,
    provider: str,
    registry: ProviderRegistry = Depends(get_registry),
    store: TokenStore = Depends(get_token_store),
):
    """Get token status without exposing secrets"""
    _require_provider(registry, provider)
    return store.get_status(country, provider)


@router.delete("/auth/{country}/{provider}")
async def disconnect(
    country: str,
    provider: str,
    registry: ProviderRegistry = Depends(get_registry),
    manager: TokenLifecycleManager = Depends(get_lifecycle_manager),
):
    """Forget the stored tokens and user info for one identity"""
    _require_provider(registry, provider)
    manager.disconnect(country, provider)
    return {"status": "disconnected", "country": country, "provider": provider}
