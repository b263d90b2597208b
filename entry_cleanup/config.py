import os
import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

ADDRESSING_STYLES = ("path", "virtual", "auto")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
CONNECTIONS_FILENAME = "connections.json"


@dataclass(frozen=True)
class Settings:
    """Runtime settings for one cleanup pass.

    Credentials are not part of the settings; boto3 resolves them from the
    environment, the shared profile or the instance role.
    """
    connections_file: Optional[Path] = None
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    addressing_style: str = "path"
    orphan_max_age: timedelta = timedelta(hours=24)
    max_attempts: int = 3
    log_level: str = "INFO"

    @property
    def use_path_style(self) -> bool:
        return self.addressing_style == "path"


def _get_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build Settings from the environment (and a .env file if present)"""
    load_dotenv(env_file)

    addressing_style = os.getenv("S3_ADDRESSING_STYLE", "path").strip().lower()
    if addressing_style not in ADDRESSING_STYLES:
        raise ConfigError(
            f"S3_ADDRESSING_STYLE must be one of {', '.join(ADDRESSING_STYLES)}, got {addressing_style!r}"
        )

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

    endpoint_url = os.getenv("S3_ENDPOINT_URL") or None
    if endpoint_url:
        parsed = urlparse(endpoint_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigError(f"S3_ENDPOINT_URL must be an http(s) URL, got {endpoint_url!r}")

    connections_file = os.getenv("CONNECTIONS_FILE")

    settings = Settings(
        connections_file=Path(connections_file) if connections_file else None,
        region=os.getenv("AWS_REGION") or None,
        endpoint_url=endpoint_url,
        addressing_style=addressing_style,
        orphan_max_age=timedelta(hours=_get_int("ORPHAN_MAX_AGE_HOURS", 24)),
        max_attempts=_get_int("S3_MAX_ATTEMPTS", 3, minimum=1),
        log_level=log_level,
    )
    logger.debug(f"Loaded settings: {settings}")
    return settings


def resolve_connections_file(settings: Settings, script_dir: Optional[Path] = None) -> Path:
    """Locate connections.json: explicit setting, then beside the script, then the working directory"""
    if settings.connections_file is not None:
        return settings.connections_file
    if script_dir is not None:
        candidate = Path(script_dir) / CONNECTIONS_FILENAME
        if candidate.is_file():
            return candidate
    return Path.cwd() / CONNECTIONS_FILENAME
