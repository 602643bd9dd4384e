"""Data models for delegated mail authorization"""

import math
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# Window used by the proactive refresh predicate
EXPIRING_SOON_SECONDS = 5 * 60


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static description of one OAuth provider

    Attributes:
        name: Registry key ("google" or "microsoft")
        display_name: Human readable provider name
        authorization_endpoint: Authorization URL opened in the popup
        token_endpoint: Token URL for code exchange and refresh
        user_info_endpoint: Profile endpoint called with the access token
        send_endpoint: Mail send endpoint
        client_id: Public OAuth client id
        scopes: Ordered scopes requested at authorization time
        redirect_uri: Registered redirect URI, identical for authorize and exchange
    """
    name: str
    display_name: str
    authorization_endpoint: str
    token_endpoint: str
    user_info_endpoint: str
    send_endpoint: str
    client_id: str
    scopes: Tuple[str, ...]
    redirect_uri: str

    @property
    def scope_string(self) -> str:
        return " ".join(self.scopes)


@dataclass(frozen=True)
class PkceCodes:
    """PKCE (Proof Key for Code Exchange) codes for one authorization attempt

    Attributes:
        code_verifier: Random string kept by the client until code exchange
        code_challenge: SHA256 of code_verifier, base64url without padding
    """
    code_verifier: str
    code_challenge: str


@dataclass
class AuthTokens:
    """Tokens issued by a provider

    expires_at is an absolute epoch timestamp computed when the tokens were
    issued, never copied from anywhere else.
    """
    access_token: str
    expires_in: int
    expires_at: float
    refresh_token: Optional[str] = None

    @classmethod
    def issued(
        cls,
        access_token: str,
        expires_in: int,
        refresh_token: Optional[str] = None,
        now: Optional[float] = None,
    ) -> "AuthTokens":
        """Build tokens with expires_at derived from the issuance time"""
        issued_at = time.time() if now is None else now
        return cls(
            access_token=access_token,
            refresh_token=refresh_token or None,
            expires_in=int(expires_in),
            expires_at=issued_at + int(expires_in),
        )

    @classmethod
    def from_token_response(cls, payload: Dict[str, Any], now: float) -> "AuthTokens":
        """Build tokens from a provider token endpoint JSON body

        Raises:
            ValueError: If the body has no usable access token or lifetime
        """
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("Token response missing access_token")

        expires_in = payload.get("expires_in", 3600)
        try:
            expires_in = int(expires_in)
        except (TypeError, ValueError, OverflowError):
            raise ValueError(f"Token response has invalid expires_in: {expires_in!r}")

        refresh_token = payload.get("refresh_token")
        if not isinstance(refresh_token, str):
            refresh_token = None

        return cls.issued(access_token, expires_in, refresh_token, now=now)

    def is_expired(self, now: Optional[float] = None) -> bool:
        current = time.time() if now is None else now
        return current >= self.expires_at

    def is_expiring_soon(self, now: Optional[float] = None, window: float = EXPIRING_SOON_SECONDS) -> bool:
        current = time.time() if now is None else now
        return current + window >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        data: Dict[str, Any] = {
            "access_token": self.access_token,
            "expires_in": self.expires_in,
            "expires_at": self.expires_at,
        }
        if self.refresh_token:
            data["refresh_token"] = self.refresh_token
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "AuthTokens":
        """Load from a stored dictionary

        Raises:
            ValueError: If the stored record is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("Token record is not an object")

        access_token = data.get("access_token")
        expires_at = data.get("expires_at")
        expires_in = data.get("expires_in", 0)
        refresh_token = data.get("refresh_token")

        if not isinstance(access_token, str) or not access_token:
            raise ValueError("Token record missing access_token")
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            raise ValueError("Token record missing expires_at")
        if not math.isfinite(expires_at):
            raise ValueError("Token record has non-finite expires_at")
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
            raise ValueError("Token record has invalid expires_in")
        if not math.isfinite(expires_in):
            raise ValueError("Token record has non-finite expires_in")
        if refresh_token is not None and not isinstance(refresh_token, str):
            raise ValueError("Token record has invalid refresh_token")

        return cls(
            access_token=access_token,
            refresh_token=refresh_token or None,
            expires_in=int(expires_in),
            expires_at=float(expires_at),
        )


@dataclass
class UserInfo:
    """Normalized profile of the connected account, used for display only"""
    id: str
    email: str
    name: str
    picture: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "email": self.email, "name": self.name}
        if self.picture:
            data["picture"] = self.picture
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "UserInfo":
        if not isinstance(data, dict):
            raise ValueError("User info record is not an object")
        for key in ("id", "email", "name"):
            if not isinstance(data.get(key), str):
                raise ValueError(f"User info record missing {key}")
        picture = data.get("picture")
        return cls(
            id=data["id"],
            email=data["email"],
            name=data["name"],
            picture=picture if isinstance(picture, str) else None,
        )


@dataclass
class EmailAttachment:
    """Attachment with base64 encoded content"""
    filename: str
    content: str
    content_type: str = "application/octet-stream"


@dataclass
class EmailMessage:
    """Provider independent outgoing message with an HTML body"""
    to: List[str]
    subject: str
    body: str
    from_address: Optional[str] = None
    attachments: List[EmailAttachment] = field(default_factory=list)
