"""OAuth token refresh"""

import json
import logging
import time
from typing import Callable, Optional

import httpx

from utils.http import http_session
from .errors import NetworkError, RefreshFailure
from .models import AuthTokens
from .providers import Provider

logger = logging.getLogger(__name__)


async def refresh_tokens(
    provider: Provider,
    refresh_token: str,
    http_client: Optional[httpx.AsyncClient] = None,
    clock: Callable[[], float] = time.time,
    timeout: float = 30.0,
) -> AuthTokens:
    """Refresh an expired access token

    Providers are not required to rotate the refresh token on every call, so
    the old one is kept when the response omits it.

    Args:
        provider: Provider the tokens belong to
        refresh_token: Refresh token from the stored tokens
        http_client: Optional client to reuse
        clock: Time source for the new expires_at
        timeout: Request timeout in seconds

    Returns:
        The new tokens

    Raises:
        RefreshFailure: Provider cannot refresh, refused, or returned garbage
        NetworkError: Transport failure
    """
    descriptor = provider.descriptor
    if not provider.supports_refresh:
        raise RefreshFailure(f"{descriptor.name} tokens cannot be refreshed")
    if not refresh_token:
        raise RefreshFailure("No refresh token available for refresh")

    data = {
        "client_id": descriptor.client_id,
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "scope": descriptor.scope_string,
    }

    logger.info(f"[OAuth] Refreshing {descriptor.name} access token...")
    try:
        async with http_session(http_client, timeout) as client:
            response = await client.post(
                descriptor.token_endpoint,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
    except httpx.RequestError as e:
        logger.error(f"Token refresh request failed: {e}")
        raise NetworkError(f"Network error during token refresh: {e}") from e

    if not response.is_success:
        logger.error(f"Token refresh failed with status {response.status_code}: {response.text}")
        raise RefreshFailure(
            f"Token refresh failed: {response.status_code}", response.status_code, response.text
        )

    try:
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("Token refresh response is not an object")
        if not payload.get("refresh_token"):
            payload = {**payload, "refresh_token": refresh_token}
        tokens = AuthTokens.from_token_response(payload, now=clock())
    except (json.JSONDecodeError, ValueError) as e:
        logger.error(f"Failed to parse token refresh response: {e}")
        raise RefreshFailure(
            f"Token refresh returned an unusable body: {e}", response.status_code, response.text
        ) from e

    logger.info(f"[OAuth] {descriptor.display_name} token refreshed successfully")
    return tokens
