"""PKCE (Proof Key for Code Exchange) generation and management"""

import base64
import hashlib
import logging
import secrets
from typing import Callable, Optional

from .errors import MissingChallengeError
from .models import PkceCodes

logger = logging.getLogger(__name__)

# 96 random bytes encode to a 128 character base64url verifier
VERIFIER_BYTES = 96


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_pkce(random_bytes: Callable[[int], bytes] = secrets.token_bytes) -> PkceCodes:
    """Generate a PKCE code verifier and its S256 challenge

    Args:
        random_bytes: Source of cryptographically secure random bytes

    Returns:
        PkceCodes with a 128 character verifier from the unreserved charset
    """
    code_verifier = _b64url(random_bytes(VERIFIER_BYTES))

    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    code_challenge = _b64url(digest)

    return PkceCodes(code_verifier=code_verifier, code_challenge=code_challenge)


class PKCEManager:
    """Holds the PKCE challenge and state of the single in-flight authorization

    A challenge is created by begin() and handed out exactly once by
    consume(). Nothing is written to disk.
    """

    def __init__(self, random_bytes: Callable[[int], bytes] = secrets.token_bytes):
        self.random_bytes = random_bytes
        self.codes: Optional[PkceCodes] = None
        self.state: Optional[str] = None

    @property
    def has_challenge(self) -> bool:
        return self.codes is not None

    def begin(self, state: Optional[str] = None) -> PkceCodes:
        """Start a new attempt, replacing any challenge left by an earlier one"""
        if self.codes is not None:
            logger.debug("Discarding unused PKCE challenge from a previous attempt")
        self.codes = generate_pkce(self.random_bytes)
        self.state = state
        return self.codes

    def consume(self) -> PkceCodes:
        """Hand out the live challenge and forget it

        Raises:
            MissingChallengeError: If no attempt is in flight
        """
        if self.codes is None:
            raise MissingChallengeError()
        codes = self.codes
        self.clear()
        return codes

    def clear(self) -> None:
        """Clear PKCE values after use"""
        self.codes = None
        self.state = None
