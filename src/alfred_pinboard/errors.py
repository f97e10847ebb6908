"""Failure kinds surfaced to Alfred.

Every failure that reaches the launcher is one of the classes below.
Collaborator errors are mapped with ``map_store_error`` at the Runner's
dispatch boundary.
"""

import logging

import httpx

from .pinboard import PinboardError

logger = logging.getLogger("alfred_pinboard.errors")

MAX_REASON_LENGTH = 200


class AlfredError(Exception):
    """Base class for errors rendered as a single Alfred error item."""

    message = "What did you do?"

    def __str__(self) -> str:
        return self.message


class WorkflowNotSetUp(AlfredError):
    message = "Your workflow is not set up properly. Check alfred_workflow_* env var."


class ConfigFileErr(AlfredError):
    message = "Config file may be corrupted"


class MissingConfigFile(AlfredError):
    message = "Missing config file (did you set API token?)"


class _ReasonError(AlfredError):
    prefix = ""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = one_line(reason)

    @property
    def message(self) -> str:
        if self.prefix:
            return f"{self.prefix}: {self.reason}"
        return self.reason


class CacheUpdateFailed(_ReasonError):
    prefix = "Cache"


class Post2PinboardFailed(_ReasonError):
    prefix = "Post"


class DeleteFailed(_ReasonError):
    prefix = "Delete"


class RenameFailed(_ReasonError):
    prefix = "Rename"


class InvalidInput(_ReasonError):
    """User input rejected before any remote call."""


class Other(AlfredError):
    """Catch-all. The user sees a generic message, the cause is logged."""

    def __init__(self, cause: BaseException | None = None):
        super().__init__(cause)
        self.cause = cause
        if cause is not None:
            logger.error("Unmapped failure: %s", cause, exc_info=cause)


def one_line(text: object) -> str:
    """Collapse text to a single trimmed line."""
    line = " ".join(str(text).split())
    if len(line) > MAX_REASON_LENGTH:
        line = line[: MAX_REASON_LENGTH - 3] + "..."
    return line or "unknown error"


_VERB_ERRORS: dict[str, type[_ReasonError]] = {
    "post": Post2PinboardFailed,
    "delete": DeleteFailed,
    "rename": RenameFailed,
    "update": CacheUpdateFailed,
    "list": CacheUpdateFailed,
    "search": CacheUpdateFailed,
}


def map_store_error(verb: str, exc: Exception) -> AlfredError:
    """Map a BookmarkStore failure raised while running ``verb``."""
    if isinstance(exc, AlfredError):
        return exc
    error_cls = _VERB_ERRORS.get(verb)
    if error_cls is None or not isinstance(exc, (PinboardError, httpx.HTTPError, OSError)):
        return Other(exc)
    if isinstance(exc, httpx.HTTPStatusError):
        return error_cls(f"HTTP {exc.response.status_code} from Pinboard")
    if isinstance(exc, httpx.TimeoutException):
        return error_cls("Pinboard did not respond in time")
    if isinstance(exc, httpx.HTTPError):
        return error_cls(f"Network error: {exc}")
    return error_cls(str(exc))
