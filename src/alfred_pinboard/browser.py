"""Look up the active tab of the front-most browser (macOS only)."""

import logging
import subprocess
import sys
from dataclasses import dataclass

logger = logging.getLogger("alfred_pinboard.browser")

OSASCRIPT = "/usr/bin/osascript"
OSASCRIPT_TIMEOUT = 5

FRONT_APP_SCRIPT = (
    'tell application "System Events" to get name of first application process '
    "whose frontmost is true"
)

# App name -> AppleScript returning "url\ntitle" of the active tab
TAB_SCRIPTS = {
    "Safari": (
        'tell application "Safari" to return (URL of front document) '
        '& linefeed & (name of front document)'
    ),
    "Safari Technology Preview": (
        'tell application "Safari Technology Preview" to return (URL of front document) '
        '& linefeed & (name of front document)'
    ),
}
for _chromium in ("Google Chrome", "Google Chrome Canary", "Chromium",
                  "Brave Browser", "Microsoft Edge", "Vivaldi", "Arc"):
    TAB_SCRIPTS[_chromium] = (
        f'tell application "{_chromium}" to return (URL of active tab of front window) '
        '& linefeed & (title of active tab of front window)'
    )


@dataclass
class BrowserTab:
    url: str
    title: str
    browser: str


def _osascript(script: str, runner=subprocess.run) -> str | None:
    try:
        result = runner(
            [OSASCRIPT, "-e", script],
            capture_output=True,
            text=True,
            timeout=OSASCRIPT_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("osascript failed: %s", e)
        return None
    if result.returncode != 0:
        logger.debug("osascript exited %d: %s", result.returncode, result.stderr.strip())
        return None
    return result.stdout.strip()


def frontmost_tab(runner=subprocess.run, platform: str = sys.platform) -> BrowserTab | None:
    """URL and title of the active tab, or None if no browser is in front."""
    if platform != "darwin":
        return None

    app = _osascript(FRONT_APP_SCRIPT, runner)
    if not app or app not in TAB_SCRIPTS:
        logger.debug("Front application %r is not a known browser", app)
        return None

    output = _osascript(TAB_SCRIPTS[app], runner)
    if not output:
        return None
    url, _, title = output.partition("\n")
    if not url:
        return None
    return BrowserTab(url=url.strip(), title=title.strip(), browser=app)
