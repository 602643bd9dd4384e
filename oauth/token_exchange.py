"""OAuth token exchange and profile lookup"""

import json
import logging
import time
from typing import Callable, Optional

import httpx

from utils.http import http_session
from utils.logging_utils import mask_secret
from .errors import (
    AuthFailure,
    GrantError,
    NetworkError,
    RedirectMismatchError,
    TokenExchangeError,
    UserInfoError,
)
from .models import AuthTokens, UserInfo
from .pkce import PKCEManager
from .providers import Provider

logger = logging.getLogger(__name__)


def classify_token_error(status_code: int, body: str, reason: str = "") -> TokenExchangeError:
    """Map a failed token endpoint response onto an actionable error"""
    if status_code == 400:
        if "invalid_grant" in body:
            return GrantError(
                "Invalid authorization code or code expired. Please try authenticating again.",
                status_code, body,
            )
        if "redirect_uri_mismatch" in body:
            return RedirectMismatchError(
                "Redirect URI mismatch. Please check your OAuth application configuration.",
                status_code, body,
            )
    elif status_code == 401:
        return AuthFailure(
            "Authentication failed. Please check your OAuth client configuration.",
            status_code, body,
        )

    status = f"{status_code} {reason}" if reason else str(status_code)
    return TokenExchangeError(f"Token exchange failed: {status} - {body}", status_code, body)


class TokenExchangeClient:
    """Exchanges authorization codes for tokens for one provider"""

    def __init__(
        self,
        provider: Provider,
        pkce_manager: PKCEManager,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
        timeout: float = 30.0,
    ):
        self.provider = provider
        self.pkce = pkce_manager
        self.http_client = http_client
        self.clock = clock
        self.timeout = timeout

    async def exchange(self, code: str) -> AuthTokens:
        """Exchange authorization code for tokens

        The live PKCE challenge is consumed whatever the outcome, so a code can
        only ever be tried once per attempt.

        Raises:
            MissingChallengeError: No PKCE challenge for this attempt
            GrantError, RedirectMismatchError, AuthFailure, TokenExchangeError:
                Non-success response from the token endpoint
            NetworkError: Transport failure
        """
        codes = self.pkce.consume()
        descriptor = self.provider.descriptor

        data = {
            "client_id": descriptor.client_id,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": descriptor.redirect_uri,
            "code_verifier": codes.code_verifier,
        }

        logger.info(
            "[OAuth] Token exchange for %s: %s",
            descriptor.name,
            {
                "token_url": descriptor.token_endpoint,
                "redirect_uri": descriptor.redirect_uri,
                "client_id": mask_secret(descriptor.client_id),
                "code_length": len(code),
            },
        )

        try:
            async with http_session(self.http_client, self.timeout) as client:
                response = await client.post(
                    descriptor.token_endpoint,
                    data=data,
                    headers={
                        "Content-Type": "application/x-www-form-urlencoded",
                        "Accept": "application/json",
                    },
                )
        except httpx.RequestError as e:
            logger.error(f"[OAuth] Network error during token exchange for {descriptor.name}: {e}")
            raise NetworkError(
                "Network error during authentication. Please check your internet connection and try again."
            ) from e

        if not response.is_success:
            logger.error(
                "Token exchange failed: %s",
                {
                    "status": response.status_code,
                    "body": response.text,
                    "provider": descriptor.name,
                    "url": descriptor.token_endpoint,
                },
            )
            raise classify_token_error(response.status_code, response.text, response.reason_phrase)

        try:
            payload = response.json()
            tokens = AuthTokens.from_token_response(payload, now=self.clock())
        except (json.JSONDecodeError, ValueError, AttributeError) as e:
            raise TokenExchangeError(
                f"Token exchange returned an unusable body: {e}", response.status_code, response.text
            ) from e

        logger.info(
            "Token exchange response: %s",
            {
                "has_access_token": True,
                "has_refresh_token": tokens.refresh_token is not None,
                "expires_in": tokens.expires_in,
                "provider": descriptor.name,
            },
        )
        return tokens

    async def get_user_info(self, access_token: str) -> UserInfo:
        """Get the connected account's profile using the access token

        Raises:
            UserInfoError: Non-success response
            NetworkError: Transport failure
        """
        descriptor = self.provider.descriptor
        try:
            async with http_session(self.http_client, self.timeout) as client:
                response = await client.get(
                    descriptor.user_info_endpoint,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.RequestError as e:
            raise NetworkError(f"Network error while fetching user info: {e}") from e

        if not response.is_success:
            logger.error(
                "User info request failed: %s",
                {"status": response.status_code, "body": response.text, "provider": descriptor.name},
            )
            raise UserInfoError(
                f"Failed to get user info: {response.status_code} {response.reason_phrase} - {response.text}",
                response.status_code, response.text,
            )

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise UserInfoError(f"User info response is not JSON: {e}", response.status_code, response.text) from e
        if not isinstance(data, dict):
            raise UserInfoError("User info response is not an object", response.status_code, response.text)

        user_info = self.provider.normalize_user_info(data)
        logger.info(
            "User info response: %s",
            {"provider": descriptor.name, "has_email": bool(user_info.email), "has_id": bool(user_info.id)},
        )
        return user_info
