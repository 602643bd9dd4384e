"""CLI entry point and argument parsing"""

import argparse
import asyncio
import sys
from pathlib import Path

from rich.console import Console

import settings
from cli import commands
from cli.debug_setup import setup_logging
from mail.dispatcher import EmailDispatcher
from oauth import EmailMessage, OAuthError, TokenLifecycleManager, get_provider_registry


console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send mail through delegated Google or Microsoft accounts")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")
    parser.add_argument("--token-file", default=None, help="Override token store file (default: from config)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_identity(sub, provider_required=True):
        sub.add_argument("--provider", "-p", required=provider_required, choices=["google", "microsoft"])
        sub.add_argument("--country", "-c", required=True, help="Country code the connection belongs to")

    connect = subparsers.add_parser("connect", help="Connect a mail account through the browser")
    add_identity(connect)

    status = subparsers.add_parser("status", help="Show connection status")
    add_identity(status, provider_required=False)

    disconnect = subparsers.add_parser("disconnect", help="Forget a connected account")
    add_identity(disconnect)

    send = subparsers.add_parser("send", help="Send a message through a connected account")
    add_identity(send)
    send.add_argument("--to", "-t", action="append", required=True, help="Recipient (repeatable)")
    send.add_argument("--subject", "-s", required=True)
    body = send.add_mutually_exclusive_group(required=True)
    body.add_argument("--body", help="HTML body")
    body.add_argument("--body-file", help="File holding the HTML body")
    send.add_argument("--attach", "-a", action="append", default=[], help="File to attach (repeatable)")

    serve = subparsers.add_parser("serve", help="Run the HTTP service with the OAuth redirect page")
    serve.add_argument("--bind", "-b", default=None, help="Override bind address (default: from config)")
    serve.add_argument("--port", type=int, default=None, help="Override port (default: from config)")

    return parser


def run(args: argparse.Namespace) -> int:
    registry = get_provider_registry()
    store = commands.open_store(args.token_file)
    manager = TokenLifecycleManager(
        store,
        registry,
        expiring_soon_seconds=settings.EXPIRING_SOON_SECONDS,
        timeout=settings.REQUEST_TIMEOUT,
    )

    if args.command == "connect":
        ok = asyncio.run(commands.connect(registry, store, args.provider, args.country, console))
        return 0 if ok else 1

    if args.command == "status":
        commands.show_status(store, registry, args.country, args.provider, console)
        return 0

    if args.command == "disconnect":
        commands.disconnect(manager, args.provider, args.country, console)
        return 0

    if args.command == "send":
        body = args.body if args.body is not None else Path(args.body_file).read_text(encoding="utf-8")
        message = EmailMessage(
            to=args.to,
            subject=args.subject,
            body=body,
            attachments=commands.load_attachments(args.attach),
        )
        dispatcher = EmailDispatcher(timeout=settings.REQUEST_TIMEOUT)
        ok = asyncio.run(commands.send(manager, dispatcher, args.provider, args.country, message, console))
        return 0 if ok else 1

    if args.command == "serve":
        from server import MailServer

        MailServer(bind_address=args.bind, port=args.port).run()
        return 0

    return 2


def main():
    """Entry point for the CLI"""
    parser = build_parser()
    args = parser.parse_args()

    level = settings.LOG_LEVEL if args.command == "serve" else "warning"
    setup_logging(debug=args.debug, level=level)

    try:
        sys.exit(run(args))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except (OAuthError, OSError) as e:
        console.print(f"\n[red]Fatal error:[/red] {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
