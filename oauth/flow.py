"""End to end "connect email" flow through a popup"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .authorization import create_state
from .manager import OAuthManager
from .models import AuthTokens, UserInfo
from .popup import MessageChannel, PopupFlowController, WindowOpener

if TYPE_CHECKING:
    from utils.storage import TokenStore

logger = logging.getLogger(__name__)


@dataclass
class AuthResult:
    tokens: AuthTokens
    user_info: UserInfo


async def authenticate_with_popup(
    oauth: OAuthManager,
    country: str,
    store: "TokenStore",
    opener: WindowOpener,
    channel: MessageChannel,
    origin: str,
    poll_interval: float = 1.0,
    timeout: float = 120.0,
) -> AuthResult:
    """Run the popup flow and persist the resulting identity

    Tokens and user info are stored only after both the exchange and the
    profile lookup succeed, so a failed or cancelled attempt leaves nothing
    behind for (country, provider).

    Args:
        oauth: Manager for the provider being connected
        country: Country half of the identity key
        store: Token store to persist into
        opener: Opens the popup window
        channel: The opener's message target
        origin: The opener's origin
        poll_interval: Seconds between popup closed checks
        timeout: Hard limit for the popup phase in seconds

    Raises:
        ConfigurationError: Before any popup is opened
        PopupBlockedError, PopupCancelledError, PopupTimeoutError,
        OAuthCallbackError: From the popup phase
        MissingChallengeError, TokenExchangeError (and subclasses),
        NetworkError, UserInfoError: From exchange and profile lookup
    """
    provider = oauth.name
    state = create_state(provider, country)
    auth_url = oauth.get_auth_url(state)
    logger.debug(f"[OAuth] Auth URL generated: {auth_url[:100]}...")

    controller = PopupFlowController(
        opener,
        channel,
        origin,
        expected_state=state,
        poll_interval=poll_interval,
        timeout=timeout,
        label=provider,
    )
    try:
        code = await controller.run(auth_url)
    except BaseException:
        # The challenge belongs to this attempt only
        oauth.pkce.clear()
        raise

    logger.info(f"[OAuth] Received authorization code for {provider}, exchanging for tokens...")
    tokens = await oauth.exchange_code_for_tokens(code)

    logger.info(f"[OAuth] Token exchange successful for {provider}, fetching user info...")
    user_info = await oauth.get_user_info(tokens.access_token)

    logger.info(f"[OAuth] Storing tokens and user info for {provider} in {country}")
    store.save_tokens(country, provider, tokens)
    store.save_user_info(country, provider, user_info)

    return AuthResult(tokens=tokens, user_info=user_info)

