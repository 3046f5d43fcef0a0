"""
Process-wide configuration for the menu chat client.

Values come from the environment (optionally populated from a .env file by
the entry points). Nothing here is conversational state: the backend base
URL and timeouts are packed into a ClientConfig and passed explicitly into
the transport at construction time.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_API_BASE_URL = "http://localhost:3000"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_LOCALE_FILE = Path.home() / ".menuchat" / "locale.json"

# Backend routes
PROCESS_PATH = "/api/chat/process"
MENU_PATH = "/api/chat/menu"
HEALTH_PATH = "/api/chat/health"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class ClientConfig:
    """
    Transport configuration.

    Attributes:
        api_base_url: Backend origin without trailing slash
        timeout_seconds: Per-request deadline; expiry is a Timeout failure
        max_retries: Retries for idempotent GETs on 502/503/504
        process_path: Route of the message-processing endpoint
        menu_path: Route of the top-level menu endpoint
        health_path: Route of the health endpoint
    """
    api_base_url: str = DEFAULT_API_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    process_path: str = PROCESS_PATH
    menu_path: str = MENU_PATH
    health_path: str = HEALTH_PATH

    def __post_init__(self):
        # Frozen: normalize through object.__setattr__
        object.__setattr__(self, 'api_base_url', self.api_base_url.strip().rstrip('/'))
        if not self.api_base_url:
            raise ValueError("api_base_url must not be empty")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {self.timeout_seconds}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    def url_for(self, path: str) -> str:
        return f"{self.api_base_url}{path}"

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """
        Build configuration from MENUCHAT_* environment variables

        Raises:
            ValueError: If a numeric variable does not parse
        """
        return cls(
            api_base_url=os.getenv("MENUCHAT_API_BASE_URL", DEFAULT_API_BASE_URL),
            timeout_seconds=_env_float("MENUCHAT_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
            max_retries=_env_int("MENUCHAT_MAX_RETRIES", DEFAULT_MAX_RETRIES),
        )


def locale_file_path() -> Path:
    raw = os.getenv("MENUCHAT_LOCALE_FILE", "").strip()
    return Path(raw) if raw else DEFAULT_LOCALE_FILE


def log_level() -> int:
    """Log level from MENUCHAT_LOG_LEVEL (default INFO)"""
    name = os.getenv("MENUCHAT_LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO
