"""Persisted user configuration (``settings.json`` in the workflow data dir)."""

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from .errors import ConfigFileErr, InvalidInput, MissingConfigFile

logger = logging.getLogger("alfred_pinboard.config")

CONFIG_FILE = "settings.json"


@dataclass
class Configuration:
    """User settings, changed only through the ``config`` verb."""
    auth_token: str = ""
    bookmark_count: int = 10           # bookmarks shown in Alfred
    tag_count: int = 10                # tags shown in Alfred
    shared_by_default: bool = False
    toread_by_default: bool = False
    fuzzy_search: bool = False
    tags_only_search: bool = False
    auto_update_cache: bool = True     # refresh cache after post/delete/rename
    suggest_tags: bool = True          # show popular tags when posting
    check_bookmarked_page: bool = False
    show_url_vs_tags: bool = False     # False: url in subtitle, True: tags


@dataclass
class ConfigUpdates:
    """Fields the user supplied to ``config``. None means not supplied."""
    auth_token: str | None = None
    bookmark_count: int | None = None
    tag_count: int | None = None
    shared_by_default: bool | None = None
    toread_by_default: bool | None = None
    fuzzy_search: bool | None = None
    tags_only_search: bool | None = None
    auto_update_cache: bool | None = None
    suggest_tags: bool | None = None
    check_bookmarked_page: bool | None = None
    show_url_vs_tags: bool | None = None

    def supplied(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


_FIELD_TYPES = {f.name: type(f.default) for f in fields(Configuration)}

_DISPLAY_NAMES = {
    "auth_token": "API token",
    "bookmark_count": "Number of bookmarks",
    "tag_count": "Number of tags",
    "shared_by_default": "New bookmarks are shared",
    "toread_by_default": "New bookmarks are toread",
    "fuzzy_search": "Fuzzy search",
    "tags_only_search": "Search tags only",
    "auto_update_cache": "Auto update cache",
    "suggest_tags": "Suggest popular tags",
    "check_bookmarked_page": "Check if page is bookmarked",
    "show_url_vs_tags": "Show tags in subtitle",
}


def _parse(data: object) -> Configuration:
    if not isinstance(data, dict):
        raise ConfigFileErr()
    values = {}
    for name, expected in _FIELD_TYPES.items():
        if name not in data:
            continue
        value = data[name]
        # bool is an int subclass; keep the two apart
        if type(value) is not expected:
            logger.warning("Config field %s has unexpected type %s", name, type(value).__name__)
            raise ConfigFileErr()
        values[name] = value
    return Configuration(**values)


def _validate(config: Configuration) -> None:
    for name in ("bookmark_count", "tag_count"):
        value = getattr(config, name)
        if value < 1:
            raise InvalidInput(f"{_DISPLAY_NAMES[name]} must be a positive number")


class ConfigStore:
    """Loads, merges and atomically saves the user Configuration."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.path = self.data_dir / CONFIG_FILE

    def load(self) -> Configuration:
        """Read the saved configuration.

        Raises MissingConfigFile if nothing was ever saved and
        ConfigFileErr if the file can't be parsed.
        """
        if not self.path.exists():
            raise MissingConfigFile()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error("Error reading config %s: %s", self.path, e)
            raise ConfigFileErr() from e
        config = _parse(data)
        logger.debug("Loaded config from %s", self.path)
        return config

    def apply(self, updates: ConfigUpdates) -> Configuration:
        """Merge the supplied fields over the stored config and save it."""
        try:
            current = self.load()
        except MissingConfigFile:
            current = Configuration()
        except ConfigFileErr:
            logger.warning("Replacing unreadable config at %s", self.path)
            current = Configuration()

        merged = Configuration(**{**asdict(current), **updates.supplied()})
        _validate(merged)
        self._save(merged)
        return merged

    def display(self, config: Configuration) -> list[tuple[str, str]]:
        """Key/value pairs for echoing the configuration back to the user."""
        pairs = []
        for name, value in asdict(config).items():
            if name == "auth_token":
                value = mask_token(value)
            elif isinstance(value, bool):
                value = "yes" if value else "no"
            pairs.append((_DISPLAY_NAMES[name], str(value)))
        return pairs

    def _save(self, config: Configuration) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(asdict(config), indent=2, sort_keys=True)
        with tempfile.NamedTemporaryFile(
            "w", dir=self.data_dir, prefix=".settings-", suffix=".tmp",
            encoding="utf-8", delete=False,
        ) as tmp:
            tmp.write(payload)
            tmp.flush()
            os.fsync(tmp.fileno())
        try:
            os.replace(tmp.name, self.path)
        except OSError:
            os.unlink(tmp.name)
            raise
        logger.debug("Saved config to %s", self.path)


def mask_token(token: str) -> str:
    """Hide the secret part of a ``user:HEX`` API token."""
    if not token:
        return "(not set)"
    user, sep, secret = token.partition(":")
    if not sep:
        return "*" * 8
    return f"{user}:{'*' * min(len(secret), 8)}"
