"""Logging for alfred-pinboard.

Alfred reads the item list from stdout, so records go to stderr (visible in
Alfred's workflow debugger) and optionally to a log file. Every record is
stamped with Alfred's execution counter: several invocations per second are
normal while the user types, and the counter tells their lines apart.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .settings import LoggingConfig, Settings

CONSOLE_FORMAT = "%(levelname)-5s #%(run)s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s #%(run)s %(levelname)-5s %(name)s: %(message)s"

_initialized = False


class RunFilter(logging.Filter):
    """Adds ``record.run``, the Alfred execution counter of this process."""

    def __init__(self, run: str):
        super().__init__()
        self.run = run

    def filter(self, record: logging.LogRecord) -> bool:
        record.run = self.run
        return True


def _file_handler(log_config: LoggingConfig) -> logging.Handler:
    path = Path(log_config.file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    if not log_config.rotate:
        return logging.FileHandler(path)
    return RotatingFileHandler(
        path,
        maxBytes=log_config.max_size_mb * 1024 * 1024,
        backupCount=log_config.backup_count,
    )


def setup_logging(settings: Settings, verbose: bool = False, run: str = "1") -> None:
    """Attach the workflow's handlers to the ``alfred_pinboard`` logger.

    Only the first call in a process has an effect. ``verbose`` (``-v`` or
    Alfred's debug mode) forces DEBUG regardless of settings.toml.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    log_config = settings.logging
    level = logging.DEBUG if verbose else getattr(logging, log_config.level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []
    if log_config.output in ("console", "both"):
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        handlers.append(console)
    if log_config.output in ("file", "both") and log_config.file:
        to_file = _file_handler(log_config)
        to_file.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handlers.append(to_file)

    logger = logging.getLogger("alfred_pinboard")
    logger.setLevel(level)
    logger.handlers.clear()
    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(RunFilter(run))
        logger.addHandler(handler)

    # Request lines would include the auth token
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def reset_logging() -> None:
    """Forget a previous setup_logging call (tests only)."""
    global _initialized
    _initialized = False
    logging.getLogger("alfred_pinboard").handlers.clear()
