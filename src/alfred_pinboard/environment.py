"""Alfred runtime environment checks."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .errors import WorkflowNotSetUp

logger = logging.getLogger("alfred_pinboard.environment")

REQUIRED_VARS = (
    "alfred_workflow_version",
    "alfred_workflow_data",
    "alfred_workflow_cache",
    "alfred_workflow_uid",
    "alfred_workflow_name",
    "alfred_version",
)


@dataclass(frozen=True)
class WorkflowEnv:
    """The parts of Alfred's environment the workflow relies on."""
    version: str
    data_dir: Path
    cache_dir: Path
    uid: str
    name: str
    alfred_version: str
    bundle_id: str = ""
    debug: bool = False
    execution_counter: str = "1"

    @property
    def supports_json(self) -> bool:
        """Alfred 3 and later read JSON; Alfred 2 only understands XML."""
        major = self.alfred_version.split(".", 1)[0]
        try:
            return int(major) >= 3
        except ValueError:
            return True


def validate_environment(environ: Mapping[str, str]) -> WorkflowEnv:
    """Check that every required Alfred variable is present.

    Only presence is checked. Any missing variable raises the same
    WorkflowNotSetUp error; the missing names are logged for debugging.
    """
    missing = [name for name in REQUIRED_VARS if environ.get(name) is None]
    if missing:
        logger.debug("Missing Alfred variables: %s", ", ".join(missing))
        raise WorkflowNotSetUp()

    return WorkflowEnv(
        version=environ["alfred_workflow_version"],
        data_dir=Path(environ["alfred_workflow_data"]),
        cache_dir=Path(environ["alfred_workflow_cache"]),
        uid=environ["alfred_workflow_uid"],
        name=environ["alfred_workflow_name"],
        alfred_version=environ["alfred_version"],
        bundle_id=environ.get("alfred_workflow_bundleid", ""),
        debug=environ.get("alfred_debug") == "1",
        execution_counter=environ.get("apr_execution_counter", "1"),
    )
