"""OAuth authorization URL construction"""

import logging
import secrets
from typing import Optional
from urllib.parse import urlencode

from utils.logging_utils import mask_secret
from .errors import ConfigurationError
from .pkce import PKCEManager
from .providers import Provider

logger = logging.getLogger(__name__)

# Substrings of client ids copied from sample .env files
PLACEHOLDER_MARKERS = ("your-", "your_", "changeme", "placeholder", "unconfigured")


def is_placeholder_client_id(client_id: Optional[str]) -> bool:
    """True for blank client ids and obvious template values"""
    if not client_id or not client_id.strip():
        return True
    lowered = client_id.lower()
    return any(marker in lowered for marker in PLACEHOLDER_MARKERS)


def create_state(provider: str, country: str) -> str:
    """Unguessable correlation state for one authorization attempt

    The readable prefix only helps when reading logs; the random part is
    what the callback is checked against.
    """
    return f"{provider}_{country}_{secrets.token_urlsafe(32)}"


class AuthorizationURLBuilder:
    """Builds provider authorization URLs with PKCE"""

    def __init__(self, provider: Provider, pkce_manager: Optional[PKCEManager] = None):
        self.provider = provider
        self.pkce = pkce_manager or PKCEManager()

    def ensure_configured(self) -> None:
        """Raise ConfigurationError if the provider client id is unusable"""
        if is_placeholder_client_id(self.provider.descriptor.client_id):
            raise ConfigurationError(
                f"{self.provider.name} OAuth client ID is not properly configured. "
                "Please check your environment variables."
            )

    def build_url(self, state: str) -> str:
        """Construct the authorization URL and start a PKCE attempt

        Args:
            state: Opaque correlation value echoed back on the callback

        Returns:
            Full authorization URL

        Raises:
            ConfigurationError: If the client id is blank or a placeholder
        """
        # Checked before any randomness is drawn
        self.ensure_configured()

        descriptor = self.provider.descriptor
        logger.info(f"[OAuth] Building auth URL for {descriptor.name}")

        params = {
            "client_id": descriptor.client_id,
            "response_type": "code",
            "scope": descriptor.scope_string,
            "redirect_uri": descriptor.redirect_uri,
            "state": state,
        }
        logger.debug(
            "[OAuth] Base parameters: %s",
            {
                "provider": descriptor.name,
                "client_id": mask_secret(descriptor.client_id),
                "redirect_uri": descriptor.redirect_uri,
                "scopes": list(descriptor.scopes),
            },
        )

        codes = self.pkce.begin(state)
        params["code_challenge"] = codes.code_challenge
        params["code_challenge_method"] = "S256"

        extra = self.provider.build_auth_params()
        if extra:
            logger.debug(f"[OAuth] Added {descriptor.name}-specific parameters: {extra}")
        params.update(extra)

        return f"{descriptor.authorization_endpoint}?{urlencode(params)}"
