"""Delegated OAuth authorization for Google and Microsoft mail accounts"""

from .errors import (
    AuthFailure,
    ConfigurationError,
    GrantError,
    MissingChallengeError,
    NetworkError,
    OAuthCallbackError,
    OAuthError,
    PopupBlockedError,
    PopupCancelledError,
    PopupTimeoutError,
    RedirectMismatchError,
    RefreshFailure,
    TokenExchangeError,
    UserInfoError,
)
from .models import (
    AuthTokens,
    EmailAttachment,
    EmailMessage,
    PkceCodes,
    ProviderDescriptor,
    UserInfo,
)
from .pkce import PKCEManager, generate_pkce
from .providers import (
    GOOGLE,
    MICROSOFT,
    GoogleProvider,
    MicrosoftProvider,
    Provider,
    ProviderRegistry,
    get_provider_registry,
)
from .authorization import AuthorizationURLBuilder, create_state, is_placeholder_client_id
from .popup import MessageChannel, MessageEvent, PopupFlowController
from .token_exchange import TokenExchangeClient
from .token_refresh import refresh_tokens
from .token_manager import TokenLifecycleManager
from .manager import OAuthManager, create_oauth_manager
from .flow import AuthResult, authenticate_with_popup

__all__ = [
    # Errors
    "OAuthError",
    "ConfigurationError",
    "PopupBlockedError",
    "PopupCancelledError",
    "PopupTimeoutError",
    "OAuthCallbackError",
    "MissingChallengeError",
    "TokenExchangeError",
    "GrantError",
    "RedirectMismatchError",
    "AuthFailure",
    "NetworkError",
    "RefreshFailure",
    "UserInfoError",
    # Models
    "AuthTokens",
    "EmailAttachment",
    "EmailMessage",
    "PkceCodes",
    "ProviderDescriptor",
    "UserInfo",
    # PKCE and authorization
    "PKCEManager",
    "generate_pkce",
    "AuthorizationURLBuilder",
    "create_state",
    "is_placeholder_client_id",
    # Providers
    "GOOGLE",
    "MICROSOFT",
    "Provider",
    "GoogleProvider",
    "MicrosoftProvider",
    "ProviderRegistry",
    "get_provider_registry",
    # Popup flow
    "MessageChannel",
    "MessageEvent",
    "PopupFlowController",
    # Tokens
    "TokenExchangeClient",
    "refresh_tokens",
    "TokenLifecycleManager",
    # Orchestration
    "OAuthManager",
    "create_oauth_manager",
    "AuthResult",
    "authenticate_with_popup",
]
