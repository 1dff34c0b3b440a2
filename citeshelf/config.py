"""Runtime settings loaded from the environment (and a local .env file)."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_API_URL = "http://localhost:5000"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class Settings:
    """CiteShelf client settings."""

    api_url: str = DEFAULT_API_URL
    timeout: float = 10.0
    fallback_timeout: float = 10.0
    home_dir: Path = field(default_factory=lambda: Path.home() / ".citeshelf")
    cache_ttl_days: int = 7

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from CITESHELF_* environment variables.

        A .env file in the working directory is loaded first; variables
        already set in the environment win.
        """
        load_dotenv()
        home = os.getenv("CITESHELF_HOME")
        return cls(
            api_url=(os.getenv("CITESHELF_API_URL") or DEFAULT_API_URL).rstrip("/"),
            timeout=_float_env("CITESHELF_TIMEOUT", 10.0),
            fallback_timeout=_float_env("CITESHELF_FALLBACK_TIMEOUT", 10.0),
            home_dir=Path(home).expanduser() if home else Path.home() / ".citeshelf",
            cache_ttl_days=_int_env("CITESHELF_CACHE_TTL_DAYS", 7),
        )

    def endpoint(self, path: str) -> str:
        """Join an API path onto the base URL."""
        return f"{self.api_url.rstrip('/')}/{path.lstrip('/')}"
