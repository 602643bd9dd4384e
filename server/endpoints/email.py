"""
Send mail through a connected identity.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from mail.dispatcher import EmailDispatcher
from oauth.errors import ConfigurationError, NetworkError
from oauth.providers import ProviderRegistry
from oauth.token_manager import TokenLifecycleManager
from ..dependencies import get_dispatcher, get_lifecycle_manager, get_registry
from ..models import SendEmailRequest, SendEmailResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/email/send", response_model=SendEmailResponse)
async def send_email(
    request: SendEmailRequest,
    registry: ProviderRegistry = Depends(get_registry),
    manager: TokenLifecycleManager = Depends(get_lifecycle_manager),
    dispatcher: EmailDispatcher = Depends(get_dispatcher),
):
    """Send a message, refreshing the access token first when possible"""
    try:
        provider = registry.get(request.provider)
    except ConfigurationError as e:
        raise HTTPException(status_code=404, detail=str(e))

    access_token = await manager.get_valid_access_token(request.country, provider.name)
    if access_token is None:
        raise HTTPException(
            status_code=401,
            detail=f"No valid {provider.descriptor.display_name} connection for {request.country}. Please reconnect.",
        )

    try:
        sent = await dispatcher.send(access_token, provider, request.to_message())
    except NetworkError as e:
        raise HTTPException(status_code=502, detail=str(e))

    if not sent:
        raise HTTPException(status_code=502, detail=f"{provider.descriptor.display_name} rejected the message")

    return SendEmailResponse(sent=True, provider=provider.name)
