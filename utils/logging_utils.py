"""
Logging helpers that keep credentials out of log files.
"""
from typing import Dict, Mapping, Optional

SENSITIVE_HEADERS = ("authorization", "x-api-key", "api-key", "cookie")


def mask_secret(value: Optional[str], visible: int = 8) -> str:
    """Show only the first few characters of a credential"""
    if not value:
        return "<empty>"
    if len(value) <= visible:
        return "***"
    return value[:visible] + "..."


def redact_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Copy of headers with credential headers replaced"""
    return {
        name: "[REDACTED]" if name.lower() in SENSITIVE_HEADERS else value
        for name, value in headers.items()
    }
