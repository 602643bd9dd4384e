import json
import logging
import os
import platform
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol

from oauth.models import AuthTokens, UserInfo

logger = logging.getLogger(__name__)

TOKEN_KEY_PREFIX = "email_auth"
USER_INFO_KEY_PREFIX = "email_userinfo"


class KeyValueStore(Protocol):
    """Synchronous string key/value storage"""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Process local store, mostly for tests and the HTTP service"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class JsonFileKeyValueStore:
    """Key/value pairs kept in one JSON file with owner-only permissions"""

    def __init__(self, path: str):
        self.path = Path(path)
        self._ensure_secure_directory()

    def _ensure_secure_directory(self):
        """Create parent directory with secure permissions"""
        parent_dir = self.path.parent
        if not parent_dir.exists():
            parent_dir.mkdir(parents=True, exist_ok=True)
            # Set directory permissions to 700 on Unix-like systems
            if platform.system() != "Windows":
                os.chmod(parent_dir, 0o700)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            logger.error(f"Failed to read store file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Store file {self.path} does not hold an object, ignoring it")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]) -> None:
        self.path.write_text(json.dumps(data, indent=2))
        # Set file permissions to 600 on Unix-like systems
        if platform.system() != "Windows":
            os.chmod(self.path, 0o600)

    def get_item(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


def token_key(country: str, provider: str) -> str:
    return f"{TOKEN_KEY_PREFIX}_{country}_{provider}"


def user_info_key(country: str, provider: str) -> str:
    return f"{USER_INFO_KEY_PREFIX}_{country}_{provider}"


class TokenStore:
    """Tokens and user info per (country, provider) identity"""

    def __init__(self, backend: Optional[KeyValueStore] = None, clock: Callable[[], float] = time.time):
        self.backend = backend if backend is not None else MemoryKeyValueStore()
        self.clock = clock

    def _load_json(self, key: str) -> Any:
        try:
            raw = self.backend.get_item(key)
        except OSError as e:
            logger.error(f"Failed to read {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Ignoring malformed record stored under {key}")
            return None

    def save_tokens(self, country: str, provider: str, tokens: AuthTokens) -> None:
        self.backend.set_item(token_key(country, provider), json.dumps(tokens.to_dict()))

    def load_tokens(self, country: str, provider: str) -> Optional[AuthTokens]:
        """Stored tokens, or None when absent or malformed"""
        data = self._load_json(token_key(country, provider))
        if data is None:
            return None
        try:
            return AuthTokens.from_dict(data)
        except ValueError as e:
            logger.warning(f"Ignoring malformed tokens for {country}/{provider}: {e}")
            return None

    def clear_tokens(self, country: str, provider: str) -> None:
        """Remove stored tokens and the user info shown for them"""
        self.backend.remove_item(token_key(country, provider))
        self.clear_user_info(country, provider)

    # Short aliases for the persistence contract
    put = save_tokens
    get = load_tokens
    clear = clear_tokens

    def save_user_info(self, country: str, provider: str, user_info: UserInfo) -> None:
        self.backend.set_item(user_info_key(country, provider), json.dumps(user_info.to_dict()))

    def load_user_info(self, country: str, provider: str) -> Optional[UserInfo]:
        data = self._load_json(user_info_key(country, provider))
        if data is None:
            return None
        try:
            return UserInfo.from_dict(data)
        except ValueError as e:
            logger.warning(f"Ignoring malformed user info for {country}/{provider}: {e}")
            return None

    def clear_user_info(self, country: str, provider: str) -> None:
        self.backend.remove_item(user_info_key(country, provider))

    def get_status(self, country: str, provider: str) -> Dict[str, Any]:
        """Get token status without exposing secrets"""
        tokens = self.load_tokens(country, provider)
        user_info = self.load_user_info(country, provider)
        if not tokens:
            return {
                "country": country,
                "provider": provider,
                "has_tokens": False,
                "is_expired": True,
                "expires_at": None,
                "time_until_expiry": "No tokens",
                "has_refresh_token": False,
                "email": None,
            }

        now = self.clock()
        current_time = int(now)
        expires_at = int(tokens.expires_at)
        expires_str = datetime.fromtimestamp(expires_at).isoformat()

        is_expired = tokens.is_expired(now)
        if is_expired:
            time_since = current_time - expires_at
            hours_since = time_since // 3600
            mins_since = (time_since % 3600) // 60
            if hours_since > 0:
                time_str = f"{hours_since}h {mins_since}m ago"
            else:
                time_str = f"{mins_since}m ago"
        else:
            time_remaining = expires_at - current_time
            hours = time_remaining // 3600
            minutes = (time_remaining % 3600) // 60
            time_str = f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"

        return {
            "country": country,
            "provider": provider,
            "has_tokens": True,
            "is_expired": is_expired,
            "expires_at": expires_str,
            "time_until_expiry": time_str,
            "has_refresh_token": tokens.refresh_token is not None,
            "email": user_info.email if user_info else None,
        }
