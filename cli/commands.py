"""Command handlers for CLI"""

import base64
import mimetypes
from pathlib import Path
from typing import List, Optional, Sequence

from rich.console import Console

import settings
from mail.dispatcher import EmailDispatcher
from oauth import (
    EmailAttachment,
    EmailMessage,
    MessageChannel,
    OAuthError,
    ProviderRegistry,
    TokenLifecycleManager,
    authenticate_with_popup,
    create_oauth_manager,
)
from oauth.loopback import LoopbackPopup
from utils.storage import JsonFileKeyValueStore, TokenStore
from .status_display import build_status_table


def open_store(token_file: Optional[str] = None) -> TokenStore:
    return TokenStore(JsonFileKeyValueStore(token_file or settings.TOKEN_FILE))


async def connect(
    registry: ProviderRegistry,
    store: TokenStore,
    provider: str,
    country: str,
    console: Console,
) -> bool:
    """
    Connect a mail account through the browser

    Args:
        registry: Provider registry
        store: Token store to persist into
        provider: Provider name
        country: Country half of the identity key
        console: Rich console for output

    Returns:
        True if the account was connected
    """
    oauth = create_oauth_manager(provider, registry=registry, timeout=settings.REQUEST_TIMEOUT)
    channel = MessageChannel()
    popup = LoopbackPopup(channel, origin=settings.APP_ORIGIN, redirect_uri=settings.REDIRECT_URI)

    console.print(f"\n[bold]Connecting {oauth.provider.descriptor.display_name} for {country}[/bold]")
    console.print("A browser window will open. Complete the sign-in there.")
    console.print(f"[dim]Waiting up to {settings.POPUP_TIMEOUT:g}s for the redirect to {settings.REDIRECT_URI}[/dim]\n")

    try:
        async with popup:
            result = await authenticate_with_popup(
                oauth,
                country,
                store,
                opener=popup.open,
                channel=channel,
                origin=settings.APP_ORIGIN,
                poll_interval=settings.POPUP_POLL_INTERVAL,
                timeout=settings.POPUP_TIMEOUT,
            )
    except OAuthError as e:
        console.print(f"[red]ERROR:[/red] {e}")
        return False
    except OSError as e:
        console.print(f"[red]ERROR:[/red] Could not start the callback server: {e}")
        return False

    console.print(f"[green][OK][/green] Connected {result.user_info.email} ({result.user_info.name})")
    return True


def show_status(store: TokenStore, registry: ProviderRegistry, country: str, provider: Optional[str], console: Console):
    providers = [registry.get(provider).name] if provider else registry.names()
    console.print(build_status_table(store, country, providers))


def disconnect(manager: TokenLifecycleManager, provider: str, country: str, console: Console) -> None:
    manager.disconnect(country, provider)
    console.print(f"[green][OK][/green] Disconnected {provider} for {country}")


def load_attachments(paths: Sequence[str]) -> List[EmailAttachment]:
    """Read files into base64 attachments"""
    attachments = []
    for raw_path in paths:
        path = Path(raw_path)
        content_type, _ = mimetypes.guess_type(path.name)
        attachments.append(EmailAttachment(
            filename=path.name,
            content=base64.b64encode(path.read_bytes()).decode("ascii"),
            content_type=content_type or "application/octet-stream",
        ))
    return attachments


async def send(
    manager: TokenLifecycleManager,
    dispatcher: EmailDispatcher,
    provider: str,
    country: str,
    message: EmailMessage,
    console: Console,
) -> bool:
    """
    Send a message through a connected account

    Returns:
        True if the provider accepted the message
    """
    access_token = await manager.get_valid_access_token(country, provider)
    if access_token is None:
        console.print(f"[red]ERROR:[/red] No valid {provider} connection for {country}. Run 'connect' first.")
        return False

    try:
        sent = await dispatcher.send(access_token, manager.registry.get(provider), message)
    except OAuthError as e:
        console.print(f"[red]ERROR:[/red] {e}")
        return False

    if sent:
        console.print(f"[green][OK][/green] Message sent to {', '.join(message.to)}")
    else:
        console.print(f"[red]ERROR:[/red] {provider} rejected the message")
    return sent
