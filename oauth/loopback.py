"""
Loopback popup for terminal use.

The system browser plays the popup and a local aiohttp server on the
redirect URI plays the redirect page: every callback it receives is posted
to the opener's MessageChannel with the opener origin, exactly as the web
redirect page would do with window.opener.postMessage.
"""
import html
import logging
import webbrowser
from typing import Callable, Optional
from urllib.parse import urlparse

from aiohttp import web

from .popup import MessageChannel, MessageEvent

logger = logging.getLogger(__name__)

SUCCESS_PAGE = """
<html>
    <body>
        <h1>Authentication Successful!</h1>
        <p>You can now close this window and return to the terminal.</p>
        <script>
            setTimeout(function() {
                window.close();
            }, 2000);
        </script>
    </body>
</html>
"""

ERROR_PAGE = """
<html>
    <body>
        <h1>Authentication Failed</h1>
        <p>Error: {error}</p>
        <p>{description}</p>
        <p>You can close this window.</p>
    </body>
</html>
"""


class LoopbackPopup:
    """Local HTTP server for the OAuth redirect, usable as a PopupWindow"""

    def __init__(
        self,
        channel: MessageChannel,
        origin: str,
        redirect_uri: str,
        browser_open: Callable[[str], bool] = webbrowser.open,
    ):
        """
        Args:
            channel: Opener message target that receives callback messages
            origin: Origin stamped on posted messages (the opener's origin)
            redirect_uri: Registered redirect URI; must be an http://localhost URL
            browser_open: Opens the authorization URL, False if it could not
        """
        parsed = urlparse(redirect_uri)
        if parsed.scheme != "http" or parsed.hostname not in ("localhost", "127.0.0.1"):
            raise ValueError(f"Loopback popup needs an http://localhost redirect URI, got {redirect_uri}")

        self.channel = channel
        self.origin = origin
        self.host = parsed.hostname
        self.port = parsed.port or 80
        self.path = parsed.path or "/"
        self.browser_open = browser_open

        self.app = web.Application()
        self.app.router.add_get(self.path, self._handle_callback)
        self.runner: Optional[web.AppRunner] = None
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Mark the popup closed; the server itself is stopped by stop()"""
        self._closed = True

    def open(self, url: str, name: str = "", features: str = "") -> Optional["LoopbackPopup"]:
        """WindowOpener: open url in the system browser

        Returns None when no browser could be launched, like a blocked popup.
        """
        if not self.browser_open(url):
            logger.warning("Could not open browser automatically")
            return None
        self._closed = False
        return self

    async def _handle_callback(self, request: web.Request) -> web.Response:
        """Handle OAuth callback request"""
        code = request.query.get("code")
        state = request.query.get("state")
        error = request.query.get("error")
        error_description = request.query.get("error_description")

        if error:
            logger.error(f"OAuth error: {error} {error_description or ''}".rstrip())
            message = f"{error}: {error_description}" if error_description else error
            self.channel.post(MessageEvent(self.origin, {"type": "oauth_error", "error": message}))
            return web.Response(
                text=ERROR_PAGE.format(
                    error=html.escape(error),
                    description=html.escape(error_description or ""),
                ),
                content_type="text/html",
                status=400,
            )

        if not code:
            return web.Response(text="Missing code parameter", status=400)

        self.channel.post(MessageEvent(self.origin, {"type": "oauth_success", "code": code, "state": state}))
        return web.Response(text=SUCCESS_PAGE, content_type="text/html")

    async def start(self) -> None:
        """Start the callback server"""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, host=self.host, port=self.port)
        await site.start()
        logger.info(f"OAuth callback server listening on {self.host}:{self.port}{self.path}")

    async def stop(self) -> None:
        """Stop the callback server"""
        self._closed = True
        if self.runner:
            await self.runner.cleanup()
            self.runner = None

    async def __aenter__(self) -> "LoopbackPopup":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
