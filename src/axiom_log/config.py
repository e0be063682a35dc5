"""Runtime configuration and logging setup."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError

# Default data directory
DATA_DIR = Path(__file__).parent.parent.parent / "data"

DRIVE_API_URL = "https://www.googleapis.com"
USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
DISCOVERY_API_URL = "https://generativelanguage.googleapis.com/v1beta"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Settings:
    """Settings for the store, sync scheduler and external services."""

    data_dir: Path = DATA_DIR
    sync_folder: str = "Axiom"
    sync_retention: int = 5
    sync_debounce_seconds: float = 2.0
    week_starts_on: int = 6  # Python weekday: Monday=0 ... Sunday=6
    drive_api_url: str = DRIVE_API_URL
    userinfo_url: str = USERINFO_URL
    google_client_id: str | None = None
    discovery_api_url: str = DISCOVERY_API_URL
    discovery_api_key: str | None = None
    discovery_model: str = "gemini-3-pro-preview"

    @property
    def db_path(self) -> Path:
        return self.data_dir / "axiom_log.db"


def _int_env(environ: dict, key: str, default: int, minimum: int = 0) -> int:
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}, got {value}")
    return value


def _float_env(environ: dict, key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None
    if value < 0:
        raise ConfigError(f"{key} must not be negative, got {value}")
    return value


def load_settings(environ: dict | None = None) -> Settings:
    """Build settings from environment variables.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``)

    Returns:
        Populated settings

    Raises:
        ConfigError: If a numeric variable cannot be parsed
    """
    if environ is None:
        environ = dict(os.environ)

    week_starts_on = _int_env(environ, "AXIOM_WEEK_STARTS_ON", 6)
    if week_starts_on > 6:
        raise ConfigError(f"AXIOM_WEEK_STARTS_ON must be 0-6, got {week_starts_on}")

    data_dir = environ.get("AXIOM_DATA_DIR")

    return Settings(
        data_dir=Path(data_dir) if data_dir else DATA_DIR,
        sync_folder=environ.get("AXIOM_SYNC_FOLDER") or "Axiom",
        sync_retention=_int_env(environ, "AXIOM_SYNC_RETENTION", 5, minimum=1),
        sync_debounce_seconds=_float_env(environ, "AXIOM_SYNC_DEBOUNCE", 2.0),
        week_starts_on=week_starts_on,
        drive_api_url=environ.get("AXIOM_DRIVE_API_URL") or DRIVE_API_URL,
        userinfo_url=environ.get("AXIOM_USERINFO_URL") or USERINFO_URL,
        google_client_id=environ.get("GOOGLE_CLIENT_ID") or None,
        discovery_api_url=environ.get("AXIOM_DISCOVERY_API_URL") or DISCOVERY_API_URL,
        discovery_api_key=environ.get("API_KEY") or None,
        discovery_model=environ.get("AXIOM_DISCOVERY_MODEL") or "gemini-3-pro-preview",
    )


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging for CLI and server entry points."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
