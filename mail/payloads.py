"""Provider specific send payloads

Gmail takes a complete RFC 2822 message, base64url encoded, in its "raw"
field. Microsoft Graph takes a JSON message resource.
"""

import base64
import uuid
from email.header import Header
from typing import Any, Dict, List, Optional

from oauth.models import EmailMessage

CRLF = "\r\n"
BASE64_LINE_LENGTH = 76


def new_boundary() -> str:
    """Boundary for one multipart message; unique, not secret"""
    return f"boundary_{uuid.uuid4().hex}"


def _check_header(name: str, value: str) -> str:
    if "\r" in value or "\n" in value:
        raise ValueError(f"Line break in {name} header value")
    return value


def _encode_header(value: str) -> str:
    try:
        value.encode("ascii")
        return value
    except UnicodeEncodeError:
        return Header(value, "utf-8").encode()


def _wrap_base64(content: str) -> str:
    compact = "".join(content.split())
    return CRLF.join(
        compact[i:i + BASE64_LINE_LENGTH] for i in range(0, len(compact), BASE64_LINE_LENGTH)
    )


def _quote_filename(filename: str) -> str:
    return filename.replace("\\", "\\\\").replace('"', '\\"')


def build_mime_message(message: EmailMessage, boundary: Optional[str] = None) -> str:
    """Render a message as RFC 2822 text

    Without attachments the body is a single text/html part. With attachments
    the message becomes multipart/mixed and the same boundary precedes the
    body part, each attachment part and the closing delimiter.

    Raises ValueError when a header value contains a CR or LF.
    """
    to = ", ".join(_check_header("To", address) for address in message.to)
    headers: List[str] = [f"To: {to}"]
    if message.from_address:
        headers.append(f"From: {_check_header('From', message.from_address)}")
    headers.append(f"Subject: {_encode_header(_check_header('Subject', message.subject))}")
    headers.append("MIME-Version: 1.0")

    if not message.attachments:
        headers.append("Content-Type: text/html; charset=utf-8")
        return CRLF.join(headers + ["", message.body])

    boundary = boundary or new_boundary()
    headers.append(f'Content-Type: multipart/mixed; boundary="{boundary}"')

    lines = headers + [
        "",
        f"--{boundary}",
        "Content-Type: text/html; charset=utf-8",
        "",
        message.body,
    ]
    for attachment in message.attachments:
        content_type = _check_header("Content-Type", attachment.content_type)
        filename = _quote_filename(_check_header("Content-Disposition", attachment.filename))
        lines += [
            f"--{boundary}",
            f"Content-Type: {content_type}",
            f'Content-Disposition: attachment; filename="{filename}"',
            "Content-Transfer-Encoding: base64",
            "",
            _wrap_base64(attachment.content),
        ]
    lines.append(f"--{boundary}--")
    return CRLF.join(lines)


def encode_raw_message(mime_text: str) -> str:
    """base64url (RFC 4648 section 5) without padding"""
    return base64.urlsafe_b64encode(mime_text.encode("utf-8")).decode("ascii").rstrip("=")


def build_gmail_payload(message: EmailMessage, boundary: Optional[str] = None) -> Dict[str, Any]:
    """JSON body for gmail.users.messages.send"""
    return {"raw": encode_raw_message(build_mime_message(message, boundary))}


def build_graph_payload(message: EmailMessage) -> Dict[str, Any]:
    """JSON body for Graph /me/sendMail"""
    graph_message: Dict[str, Any] = {
        "subject": message.subject,
        "body": {
            "contentType": "HTML",
            "content": message.body,
        },
        "toRecipients": [
            {"emailAddress": {"address": address}} for address in message.to
        ],
    }

    if message.attachments:
        graph_message["attachments"] = [
            {
                "@odata.type": "#microsoft.graph.fileAttachment",
                "name": attachment.filename,
                "contentType": attachment.content_type,
                "contentBytes": attachment.content,
            }
            for attachment in message.attachments
        ]

    return {"message": graph_message}
