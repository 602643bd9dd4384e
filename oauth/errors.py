"""Exception types raised by the delegated authorization flow"""

from typing import Optional


class OAuthError(Exception):
    """Base class for every failure surfaced by the OAuth and mail layers"""


class ConfigurationError(OAuthError):
    """Provider client id is missing or still a placeholder"""


class PopupBlockedError(OAuthError):
    """The environment refused to open the authorization popup"""

    def __init__(self, message: str = "Popup blocked. Please allow popups for this site."):
        super().__init__(message)


class PopupCancelledError(OAuthError):
    """The user closed the popup before the flow finished"""

    def __init__(self, message: str = "Authentication cancelled"):
        super().__init__(message)


class PopupTimeoutError(OAuthError, TimeoutError):
    """No terminal event arrived within the popup timeout"""

    def __init__(self, message: str = "Authentication timeout - please try again"):
        super().__init__(message)


class OAuthCallbackError(OAuthError):
    """The redirect page reported an error from the provider

    The provider's error text is kept verbatim as the message.
    """


class MissingChallengeError(OAuthError):
    """Code exchange attempted without a live PKCE challenge"""

    def __init__(self, message: str = "PKCE challenge not found. Make sure to call get_auth_url first."):
        super().__init__(message)


class NetworkError(OAuthError):
    """Transport failure talking to a provider; safe for the user to retry"""


class HTTPStatusOAuthError(OAuthError):
    """Provider answered with a non-success status"""

    def __init__(self, message: str, status_code: Optional[int] = None, response_text: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text


class TokenExchangeError(HTTPStatusOAuthError):
    """Unclassified token endpoint failure"""


class GrantError(TokenExchangeError):
    """Authorization code is invalid or expired"""


class RedirectMismatchError(TokenExchangeError):
    """redirect_uri does not match the one registered for the client"""


class AuthFailure(TokenExchangeError):
    """401 from the token endpoint, usually a client configuration problem"""


class RefreshFailure(HTTPStatusOAuthError):
    """Silent refresh was refused"""


class UserInfoError(HTTPStatusOAuthError):
    """Profile endpoint returned a non-success status"""
