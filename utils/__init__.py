"""Shared utilities package for the mail delegation service"""

from .logging_utils import mask_secret, redact_headers

__all__ = [
    "mask_secret",
    "redact_headers",
]
