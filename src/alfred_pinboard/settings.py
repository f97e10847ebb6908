"""Developer settings for alfred-pinboard.

These live in an optional ``settings.toml`` next to the user configuration
in the workflow data directory. Users never need it; it exists to turn on
file logging or point the updater and API client somewhere else.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import tomli

logger = logging.getLogger("alfred_pinboard.settings")

SETTINGS_FILE = "settings.toml"


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"           # INFO or DEBUG
    output: str = "console"       # console, file, or both
    file: str = ""                # log file path
    rotate: bool = True           # enable rotation
    max_size_mb: int = 1          # max file size before rotation
    backup_count: int = 2         # rotated files to keep


@dataclass
class UpdaterConfig:
    repo: str = "spamwax/alfred-pinboard-rs"
    api_url: str = "https://api.github.com"
    check_interval: int = 86400   # seconds between release probes
    timeout: float = 15.0


@dataclass
class PinboardConfig:
    api_url: str = "https://api.pinboard.in/v1"
    timeout: float = 30.0


@dataclass
class Settings:
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    updater: UpdaterConfig = field(default_factory=UpdaterConfig)
    pinboard: PinboardConfig = field(default_factory=PinboardConfig)


def load_settings(settings_path: Path | None = None) -> Settings:
    """Load settings from TOML, falling back to defaults."""
    if settings_path is None or not settings_path.exists():
        return Settings()

    try:
        with open(settings_path, "rb") as f:
            data = tomli.load(f)
    except (OSError, tomli.TOMLDecodeError) as e:
        logger.error("Error loading settings %s: %s", settings_path, e)
        return Settings()

    settings = Settings()

    if "logging" in data:
        log = data["logging"]
        settings.logging = LoggingConfig(
            level=log.get("level", "INFO"),
            output=log.get("output", "console"),
            file=log.get("file", ""),
            rotate=log.get("rotate", True),
            max_size_mb=log.get("max_size_mb", 1),
            backup_count=log.get("backup_count", 2),
        )

    if "updater" in data:
        upd = data["updater"]
        settings.updater = UpdaterConfig(
            repo=upd.get("repo", "spamwax/alfred-pinboard-rs"),
            api_url=upd.get("api_url", "https://api.github.com"),
            check_interval=upd.get("check_interval", 86400),
            timeout=upd.get("timeout", 15.0),
        )

    if "pinboard" in data:
        pb = data["pinboard"]
        settings.pinboard = PinboardConfig(
            api_url=pb.get("api_url", "https://api.pinboard.in/v1"),
            timeout=pb.get("timeout", 30.0),
        )

    return settings
