"""Self-update checks against the workflow's GitHub releases.

The last probe result is kept in ``updater.json`` in the workflow cache
directory so the network is only hit once per check interval.
"""

import json
import logging
import os
import re
import tempfile
import time
from dataclasses import asdict, dataclass
from pathlib import Path

import httpx

logger = logging.getLogger("alfred_pinboard.updater")

STATE_FILE = "updater.json"
DEFAULT_INTERVAL = 86400
ASSET_SUFFIX = ".alfredworkflow"


@dataclass
class UpdateState:
    last_check: float = 0.0
    latest_version: str = ""
    download_url: str = ""


@dataclass
class UpdateStatus:
    current_version: str
    latest_version: str
    available: bool
    downloaded_to: Path | None = None


def parse_version(version: str) -> tuple[int, ...]:
    """``v0.16.2`` -> (0, 16, 2). Non-numeric suffixes are ignored."""
    parts = []
    for piece in version.strip().lstrip("vV").split("."):
        match = re.match(r"\d+", piece)
        if not match:
            break
        parts.append(int(match.group()))
    return tuple(parts)


class UpdateChecker:
    """Rate-limited probe for a newer release of the workflow."""

    def __init__(
        self,
        repo: str,
        current_version: str,
        cache_dir: Path,
        api_url: str = "https://api.github.com",
        interval: int = DEFAULT_INTERVAL,
        timeout: float = 15.0,
        clock=time.time,
    ):
        self.repo = repo
        self.current_version = current_version
        self.cache_dir = Path(cache_dir)
        self.api_url = api_url.rstrip("/")
        self.interval = interval
        self.timeout = timeout
        self.clock = clock
        self.state = UpdateState()
        self._probed = False
        self._probe_error: Exception | None = None

    @property
    def state_path(self) -> Path:
        return self.cache_dir / STATE_FILE

    def set_check_interval(self, seconds: int) -> None:
        self.interval = seconds

    def init(self) -> None:
        """Load the saved state and probe if the interval has elapsed.

        A failed periodic probe only logs a warning and is kept for
        ``probe_and_maybe_download``; the command the user asked for still runs.
        """
        self.state = self._load_state()
        if not self._due():
            return
        try:
            self._probe()
        except (httpx.HTTPError, OSError, ValueError, KeyError) as e:
            logger.warning("Update check failed: %s", e)
            self._probe_error = e

    def update_ready(self) -> bool:
        if not self.state.latest_version:
            return False
        return parse_version(self.state.latest_version) > parse_version(self.current_version)

    def probe_and_maybe_download(self, download: bool) -> UpdateStatus:
        """Report the latest known release, fetching it if asked.

        Probes at most once per invocation, and only when due. Network
        errors propagate to the caller, including one already hit by ``init``.
        """
        if self._probe_error is not None:
            raise self._probe_error
        if not self._probed and self._due():
            self._probe()

        status = UpdateStatus(
            current_version=self.current_version,
            latest_version=self.state.latest_version,
            available=self.update_ready(),
        )
        if download and status.available:
            status.downloaded_to = self._download()
        return status

    def _due(self) -> bool:
        return self.clock() - self.state.last_check >= self.interval

    def _probe(self) -> None:
        url = f"{self.api_url}/repos/{self.repo}/releases/latest"
        logger.debug("Checking for updates at %s", url)
        self._probed = True
        resp = httpx.request(
            "GET", url,
            headers={"Accept": "application/vnd.github+json"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        release = resp.json()

        download_url = ""
        for asset in release.get("assets", []):
            if asset.get("name", "").endswith(ASSET_SUFFIX):
                download_url = asset["browser_download_url"]
                break

        self.state = UpdateState(
            last_check=self.clock(),
            latest_version=release["tag_name"],
            download_url=download_url,
        )
        self._save_state()
        logger.info(
            "Latest release %s (running %s)", self.state.latest_version, self.current_version,
        )

    def _download(self) -> Path:
        if not self.state.download_url:
            raise ValueError(f"Release {self.state.latest_version} has no workflow file")
        target = self.cache_dir / f"alfred-pinboard-{self.state.latest_version}{ASSET_SUFFIX}"
        logger.info("Downloading %s to %s", self.state.download_url, target)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        tmp = tempfile.NamedTemporaryFile(dir=self.cache_dir, suffix=".part", delete=False)
        try:
            with tmp, httpx.stream(
                "GET", self.state.download_url, follow_redirects=True, timeout=self.timeout,
            ) as resp:
                resp.raise_for_status()
                for chunk in resp.iter_bytes():
                    tmp.write(chunk)
            os.replace(tmp.name, target)
        except BaseException:
            tmp.close()
            os.unlink(tmp.name)
            raise
        return target

    def _load_state(self) -> UpdateState:
        if not self.state_path.exists():
            return UpdateState()
        try:
            data = json.loads(self.state_path.read_text(encoding="utf-8"))
            return UpdateState(
                last_check=float(data.get("last_check", 0.0)),
                latest_version=str(data.get("latest_version", "")),
                download_url=str(data.get("download_url", "")),
            )
        except (OSError, ValueError, AttributeError) as e:
            logger.warning("Ignoring unreadable updater state: %s", e)
            return UpdateState()

    def _save_state(self) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.state_path.write_text(json.dumps(asdict(self.state)), encoding="utf-8")
