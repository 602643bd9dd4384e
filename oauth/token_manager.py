"""Token lifecycle: validity checks, silent refresh and fail-closed clearing"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Callable, Dict, Optional, Tuple

import httpx

from .errors import OAuthError
from .models import EXPIRING_SOON_SECONDS, AuthTokens
from .providers import ProviderRegistry
from .token_refresh import refresh_tokens

if TYPE_CHECKING:
    from utils.storage import TokenStore

logger = logging.getLogger(__name__)

IdentityKey = Tuple[str, str]


class TokenLifecycleManager:
    """Hands out usable access tokens per (country, provider) identity

    Any doubt about a token ends with the identity cleared and None returned;
    callers must treat None as "re-authenticate".
    """

    def __init__(
        self,
        store: "TokenStore",
        registry: ProviderRegistry,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
        expiring_soon_seconds: float = EXPIRING_SOON_SECONDS,
        timeout: float = 30.0,
    ):
        self.store = store
        self.registry = registry
        self.http_client = http_client
        self.clock = clock
        self.expiring_soon_seconds = expiring_soon_seconds
        self.timeout = timeout
        self._refreshing: Dict[IdentityKey, asyncio.Future] = {}

    def is_token_expired(self, tokens: AuthTokens) -> bool:
        return tokens.is_expired(self.clock())

    def is_token_expiring_soon(self, tokens: AuthTokens) -> bool:
        """Check if token is about to expire within the proactive window"""
        return tokens.is_expiring_soon(self.clock(), self.expiring_soon_seconds)

    def is_refreshing(self, country: str, provider: str) -> bool:
        return (country, provider) in self._refreshing

    async def get_valid_access_token(self, country: str, provider: str) -> Optional[str]:
        """Get a valid access token, refreshing if necessary

        Returns:
            Access token, or None when the identity must re-authenticate
        """
        tokens = self.store.load_tokens(country, provider)
        if not tokens:
            logger.info(f"[OAuth] No stored tokens found for {provider} in {country}")
            return None

        if not self.is_token_expired(tokens):
            logger.debug(f"[OAuth] Using existing valid token for {provider}")
            return tokens.access_token

        try:
            provider_impl = self.registry.get(provider)
        except OAuthError as e:
            logger.error(f"[OAuth] {e} - clearing stored tokens")
            self.store.clear_tokens(country, provider)
            return None

        if provider_impl.supports_refresh and tokens.refresh_token:
            logger.info("[OAuth] Access token expired, attempting refresh...")
            refreshed = await self._refresh_once(country, provider, tokens.refresh_token)
            return refreshed.access_token if refreshed else None

        logger.info(f"[OAuth] Token expired and cannot be refreshed for {provider}")
        self.store.clear_tokens(country, provider)
        return None

    async def refresh(self, country: str, provider: str) -> Optional[AuthTokens]:
        """Refresh now, e.g. when the token is expiring soon

        Returns:
            New tokens, or None after clearing the identity
        """
        tokens = self.store.load_tokens(country, provider)
        if not tokens:
            return None
        try:
            provider_impl = self.registry.get(provider)
        except OAuthError:
            provider_impl = None
        if provider_impl is None or not provider_impl.supports_refresh or not tokens.refresh_token:
            logger.info(f"[OAuth] No refresh path for {provider} in {country}")
            if self.is_token_expired(tokens):
                self.store.clear_tokens(country, provider)
                return None
            return tokens
        return await self._refresh_once(country, provider, tokens.refresh_token)

    async def _refresh_once(self, country: str, provider: str, refresh_token: str) -> Optional[AuthTokens]:
        """Single-flight refresh; concurrent callers share the same result"""
        key = (country, provider)
        pending = self._refreshing.get(key)
        if pending is not None:
            logger.debug(f"[OAuth] Refresh already in progress for {provider} in {country}, waiting")
            return await asyncio.shield(pending)

        future = asyncio.get_running_loop().create_future()
        self._refreshing[key] = future
        try:
            result = await self._do_refresh(country, provider, refresh_token)
            future.set_result(result)
            return result
        except asyncio.CancelledError:
            if not future.done():
                future.set_result(None)
            raise
        except Exception:
            logger.exception("[OAuth] Unexpected error during token refresh - clearing stored tokens")
            self.store.clear_tokens(country, provider)
            future.set_result(None)
            return None
        finally:
            self._refreshing.pop(key, None)

    async def _do_refresh(self, country: str, provider: str, refresh_token: str) -> Optional[AuthTokens]:
        try:
            new_tokens = await refresh_tokens(
                self.registry.get(provider),
                refresh_token,
                http_client=self.http_client,
                clock=self.clock,
                timeout=self.timeout,
            )
        except OAuthError as e:
            logger.warning(f"[OAuth] Token refresh failed - clearing stored tokens: {e}")
            self.store.clear_tokens(country, provider)
            return None

        self.store.save_tokens(country, provider, new_tokens)
        logger.info("[OAuth] Token refresh successful")
        return new_tokens

    def disconnect(self, country: str, provider: str) -> None:
        """Forget the identity's tokens and user info"""
        self.store.clear_tokens(country, provider)
        logger.info(f"[OAuth] Disconnected {provider} for {country}")
