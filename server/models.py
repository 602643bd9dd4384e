"""
Pydantic models for the HTTP API.
"""
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from oauth.models import EmailAttachment, EmailMessage


def _single_line(value: str) -> str:
    if "\r" in value or "\n" in value:
        raise ValueError("must not contain line breaks")
    return value


class AttachmentModel(BaseModel):
    """Attachment with base64 encoded content"""
    filename: str = Field(min_length=1)
    content: str
    content_type: str = "application/octet-stream"

    @field_validator("filename", "content_type")
    @classmethod
    def single_line(cls, value: str) -> str:
        return _single_line(value)


class SendEmailRequest(BaseModel):
    """Send request for one connected identity"""
    country: str = Field(min_length=1)
    provider: str = Field(min_length=1)
    to: List[str] = Field(min_length=1)
    subject: str
    body: str
    from_address: Optional[str] = None
    attachments: List[AttachmentModel] = Field(default_factory=list)

    @field_validator("to")
    @classmethod
    def single_line_recipients(cls, value: List[str]) -> List[str]:
        return [_single_line(address) for address in value]

    @field_validator("subject", "from_address")
    @classmethod
    def single_line(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _single_line(value)

    def to_message(self) -> EmailMessage:
        return EmailMessage(
            to=list(self.to),
            subject=self.subject,
            body=self.body,
            from_address=self.from_address,
            attachments=[
                EmailAttachment(
                    filename=attachment.filename,
                    content=attachment.content,
                    content_type=attachment.content_type,
                )
                for attachment in self.attachments
            ],
        )


class SendEmailResponse(BaseModel):
    sent: bool
    provider: str


class ProviderSummary(BaseModel):
    name: str
    display_name: str
    configured: bool
    supports_refresh: bool
