"""Send mail through the connected provider account"""

import logging
from typing import TYPE_CHECKING, Optional

import httpx

from oauth.errors import NetworkError
from oauth.models import EmailMessage
from utils.http import http_session

if TYPE_CHECKING:
    from oauth.providers import Provider

logger = logging.getLogger(__name__)


class EmailDispatcher:
    """Posts provider specific send payloads with a bearer token"""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        self.http_client = http_client
        self.timeout = timeout

    async def send(self, access_token: str, provider: "Provider", message: EmailMessage) -> bool:
        """Send a message

        Success is decided by the HTTP status alone; neither API returns a
        body worth parsing (Gmail echoes ids, Graph answers 202 with nothing).

        Args:
            access_token: Valid access token for the provider
            provider: Provider the token belongs to
            message: Message to send

        Returns:
            True on a 2xx response

        Raises:
            NetworkError: Transport failure
        """
        descriptor = provider.descriptor
        payload = provider.format_send_payload(message)

        logger.info(
            f"Sending email via {descriptor.display_name} to {len(message.to)} recipient(s) "
            f"with {len(message.attachments)} attachment(s)"
        )
        try:
            async with http_session(self.http_client, self.timeout) as client:
                response = await client.post(
                    descriptor.send_endpoint,
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            logger.error(f"Email send request failed for {descriptor.name}: {e}")
            raise NetworkError(f"Network error while sending email: {e}") from e

        if not response.is_success:
            logger.error(f"Email send failed with status {response.status_code}: {response.text}")
            return False

        logger.info(f"Email sent via {descriptor.display_name} (status {response.status_code})")
        return True
