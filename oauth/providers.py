"""
Provider capability sets and the registry that selects them.

Every provider specific difference (extra authorization parameters, profile
normalization, send payload shape, refresh support) lives on a Provider
implementation so callers never branch on the provider name.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, Mapping, Optional

from mail.payloads import build_gmail_payload, build_graph_payload
from .errors import ConfigurationError
from .models import EmailMessage, ProviderDescriptor, UserInfo

logger = logging.getLogger(__name__)

GOOGLE = "google"
MICROSOFT = "microsoft"

GOOGLE_AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
GOOGLE_USER_INFO_ENDPOINT = "https://www.googleapis.com/oauth2/v2/userinfo"
GMAIL_SEND_ENDPOINT = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"
GOOGLE_SCOPES = (
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
)

MICROSOFT_AUTHORIZATION_ENDPOINT = "https://login.microsoftonline.com/common/oauth2/v2.0/authorize"
MICROSOFT_TOKEN_ENDPOINT = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
MICROSOFT_USER_INFO_ENDPOINT = "https://graph.microsoft.com/v1.0/me"
GRAPH_SEND_ENDPOINT = "https://graph.microsoft.com/v1.0/me/sendMail"
MICROSOFT_SCOPES = (
    "https://graph.microsoft.com/Mail.Send",
    "https://graph.microsoft.com/User.Read",
    "offline_access",
)


class Provider(ABC):
    """Abstract base class for a supported mail provider"""

    #: Whether an expired access token may be renewed with a refresh token
    supports_refresh = False

    def __init__(self, descriptor: ProviderDescriptor):
        self.descriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @abstractmethod
    def build_auth_params(self) -> Dict[str, str]:
        """Extra authorization URL parameters beyond the common OAuth set"""

    @abstractmethod
    def normalize_user_info(self, data: Mapping[str, Any]) -> UserInfo:
        """Map the provider's profile body onto UserInfo"""

    @abstractmethod
    def format_send_payload(self, message: EmailMessage) -> Dict[str, Any]:
        """JSON body for the provider's send endpoint"""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class GoogleProvider(Provider):
    """Google accounts with the Gmail API

    Offline access and forced consent are requested so a refresh token is
    issued on first connect, but expired Google tokens are never refreshed.
    """

    supports_refresh = False

    def build_auth_params(self) -> Dict[str, str]:
        return {
            "access_type": "offline",
            "prompt": "consent",
        }

    def normalize_user_info(self, data: Mapping[str, Any]) -> UserInfo:
        return UserInfo(
            id=str(data.get("id") or ""),
            email=data.get("email") or "",
            name=data.get("name") or "",
            picture=data.get("picture") or None,
        )

    def format_send_payload(self, message: EmailMessage) -> Dict[str, Any]:
        return build_gmail_payload(message)


class MicrosoftProvider(Provider):
    """Microsoft accounts with the Graph API"""

    supports_refresh = True

    def build_auth_params(self) -> Dict[str, str]:
        return {}

    def normalize_user_info(self, data: Mapping[str, Any]) -> UserInfo:
        photo = data.get("photo")
        picture = photo.get("value") if isinstance(photo, dict) else None
        return UserInfo(
            id=str(data.get("id") or ""),
            email=data.get("mail") or data.get("userPrincipalName") or "",
            name=data.get("displayName") or "",
            picture=picture or None,
        )

    def format_send_payload(self, message: EmailMessage) -> Dict[str, Any]:
        return build_graph_payload(message)


def google_descriptor(client_id: str, redirect_uri: str) -> ProviderDescriptor:
    return ProviderDescriptor(
        name=GOOGLE,
        display_name="Google",
        authorization_endpoint=GOOGLE_AUTHORIZATION_ENDPOINT,
        token_endpoint=GOOGLE_TOKEN_ENDPOINT,
        user_info_endpoint=GOOGLE_USER_INFO_ENDPOINT,
        send_endpoint=GMAIL_SEND_ENDPOINT,
        client_id=client_id,
        scopes=GOOGLE_SCOPES,
        redirect_uri=redirect_uri,
    )


def microsoft_descriptor(client_id: str, redirect_uri: str) -> ProviderDescriptor:
    return ProviderDescriptor(
        name=MICROSOFT,
        display_name="Microsoft",
        authorization_endpoint=MICROSOFT_AUTHORIZATION_ENDPOINT,
        token_endpoint=MICROSOFT_TOKEN_ENDPOINT,
        user_info_endpoint=MICROSOFT_USER_INFO_ENDPOINT,
        send_endpoint=GRAPH_SEND_ENDPOINT,
        client_id=client_id,
        scopes=MICROSOFT_SCOPES,
        redirect_uri=redirect_uri,
    )


class ProviderRegistry:
    """Read-only lookup of the supported providers by name"""

    def __init__(self, providers: Mapping[str, Provider]):
        self._providers: Dict[str, Provider] = dict(providers)

    @classmethod
    def build(
        cls,
        google_client_id: str,
        microsoft_client_id: str,
        redirect_uri: str,
    ) -> "ProviderRegistry":
        """Create the registry for the two supported providers"""
        return cls({
            GOOGLE: GoogleProvider(google_descriptor(google_client_id, redirect_uri)),
            MICROSOFT: MicrosoftProvider(microsoft_descriptor(microsoft_client_id, redirect_uri)),
        })

    def get(self, name: str) -> Provider:
        """Look up a provider

        Raises:
            ConfigurationError: If the provider is not supported
        """
        provider = self._providers.get((name or "").lower())
        if provider is None:
            supported = ", ".join(sorted(self._providers))
            raise ConfigurationError(f"Unsupported provider {name!r}. Supported providers: {supported}")
        return provider

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._providers

    def __iter__(self) -> Iterator[Provider]:
        return iter(self._providers.values())

    def names(self) -> list:
        return list(self._providers)


# Created once per process from settings
_registry: Optional[ProviderRegistry] = None


def get_provider_registry() -> ProviderRegistry:
    """Get or create the process wide registry from settings"""
    global _registry
    if _registry is None:
        import settings

        settings.config.log_environment_once(settings.APP_ORIGIN)
        _registry = ProviderRegistry.build(
            google_client_id=settings.GOOGLE_CLIENT_ID,
            microsoft_client_id=settings.MICROSOFT_CLIENT_ID,
            redirect_uri=settings.REDIRECT_URI,
        )
        logger.debug(f"Provider registry initialized: {_registry.names()}")
    return _registry
