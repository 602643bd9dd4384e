"""Outgoing mail through Gmail and Microsoft Graph"""

from .dispatcher import EmailDispatcher
from .payloads import (
    build_gmail_payload,
    build_graph_payload,
    build_mime_message,
    encode_raw_message,
)

__all__ = [
    "EmailDispatcher",
    "build_gmail_payload",
    "build_graph_payload",
    "build_mime_message",
    "encode_raw_message",
]
