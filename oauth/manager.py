"""Per-provider OAuth facade"""

import logging
import time
from typing import Callable, Optional

import httpx

from .authorization import AuthorizationURLBuilder
from .models import AuthTokens, EmailMessage, UserInfo
from .pkce import PKCEManager
from .providers import Provider, ProviderRegistry, get_provider_registry
from .token_exchange import TokenExchangeClient

logger = logging.getLogger(__name__)


class OAuthManager:
    """OAuth PKCE flow for one provider

    This class orchestrates one authorization attempt:
    - PKCE generation (held in memory for this attempt only)
    - Authorization URL construction
    - Code exchange and profile lookup
    - Sending mail with the resulting token
    """

    def __init__(
        self,
        provider: Provider,
        http_client: Optional[httpx.AsyncClient] = None,
        pkce_manager: Optional[PKCEManager] = None,
        clock: Callable[[], float] = time.time,
        timeout: float = 30.0,
    ):
        self.provider = provider
        self.http_client = http_client
        self.timeout = timeout
        self.pkce = pkce_manager or PKCEManager()
        self.auth_builder = AuthorizationURLBuilder(provider, self.pkce)
        self.exchange_client = TokenExchangeClient(
            provider, self.pkce, http_client=http_client, clock=clock, timeout=timeout
        )

    @property
    def name(self) -> str:
        return self.provider.name

    def get_auth_url(self, state: str) -> str:
        """Construct the authorization URL and start a PKCE attempt

        Raises:
            ConfigurationError: If the client id is not configured
        """
        return self.auth_builder.build_url(state)

    async def exchange_code_for_tokens(self, code: str) -> AuthTokens:
        """Exchange the authorization code using this attempt's PKCE verifier"""
        return await self.exchange_client.exchange(code)

    async def get_user_info(self, access_token: str) -> UserInfo:
        return await self.exchange_client.get_user_info(access_token)

    async def send_email(self, access_token: str, message: EmailMessage) -> bool:
        from mail.dispatcher import EmailDispatcher

        dispatcher = EmailDispatcher(http_client=self.http_client, timeout=self.timeout)
        return await dispatcher.send(access_token, self.provider, message)


def create_oauth_manager(
    provider: str,
    registry: Optional[ProviderRegistry] = None,
    **kwargs,
) -> OAuthManager:
    """Factory looking the provider up in the registry"""
    registry = registry or get_provider_registry()
    return OAuthManager(registry.get(provider), **kwargs)
