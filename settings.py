from pathlib import Path
from config.loader import get_config_loader

# Get the config loader instance
config = get_config_loader()

# Server configuration
PORT = config.get("PORT", 8081)
LOG_LEVEL = config.get("LOG_LEVEL", "info")
BIND_ADDRESS = config.get("BIND_ADDRESS", "127.0.0.1")

# Origin the application (and therefore the popup opener) is served from.
# The registered redirect URI always lives under this origin.
APP_ORIGIN = config.get("APP_ORIGIN", f"http://localhost:{PORT}").rstrip("/")
REDIRECT_PATH = config.get("REDIRECT_PATH", "/auth/callback")
REDIRECT_URI = f"{APP_ORIGIN}{REDIRECT_PATH}"

# OAuth client ids (public PKCE clients, no secret)
GOOGLE_CLIENT_ID = config.get("GOOGLE_CLIENT_ID", "")
MICROSOFT_CLIENT_ID = config.get("MICROSOFT_CLIENT_ID", "")

# Popup flow timing
POPUP_TIMEOUT = config.get("POPUP_TIMEOUT", 120.0)
POPUP_POLL_INTERVAL = config.get("POPUP_POLL_INTERVAL", 1.0)

# Total timeout for provider HTTP calls
REQUEST_TIMEOUT = config.get("REQUEST_TIMEOUT", 30.0)

# Proactive refresh window for callers about to do something time sensitive
EXPIRING_SOON_SECONDS = config.get("EXPIRING_SOON_SECONDS", 300)

# Token storage
TOKEN_FILE = config.get("TOKEN_FILE", str(Path.home() / ".mail-delegate" / "store.json"))
