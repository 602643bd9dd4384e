"""
Health check endpoint.
"""
import time

from fastapi import APIRouter, Depends

from oauth.authorization import is_placeholder_client_id
from oauth.providers import ProviderRegistry
from ..dependencies import get_registry

router = APIRouter()


@router.get("/health")
async def health_check(registry: ProviderRegistry = Depends(get_registry)):
    """Liveness plus which providers have a usable client id"""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "providers": {
            provider.name: not is_placeholder_client_id(provider.descriptor.client_id)
            for provider in registry
        },
    }
