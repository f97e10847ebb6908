"""Shared test fixtures for alfred-pinboard tests."""

import io

import pytest

from alfred_pinboard.config import Configuration
from alfred_pinboard.environment import validate_environment
from alfred_pinboard.logging_setup import reset_logging
from alfred_pinboard.output import AlfredOutput
from alfred_pinboard.pinboard import Bookmark, Tag
from alfred_pinboard.runner import Runner, Session
from alfred_pinboard.updater import UpdateStatus


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    reset_logging()


@pytest.fixture
def workflow_environ(tmp_path):
    """The Alfred variables a workflow sees, with tmp data/cache dirs."""
    return {
        "alfred_workflow_version": "0.17.0",
        "alfred_workflow_data": str(tmp_path / "data"),
        "alfred_workflow_cache": str(tmp_path / "cache"),
        "alfred_workflow_uid": "user.workflow.TEST",
        "alfred_workflow_name": "alfred-pinboard",
        "alfred_workflow_bundleid": "cc.hamid.alfred-pinboard-rs",
        "alfred_version": "5.5",
    }


@pytest.fixture
def env(workflow_environ):
    return validate_environment(workflow_environ)


@pytest.fixture
def make_config():
    """Factory fixture that creates Configuration instances with a token set."""
    def _make_config(**overrides):
        defaults = {"auth_token": "hamid:ABCDEF0123456789"}
        defaults.update(overrides)
        return Configuration(**defaults)
    return _make_config


SAMPLE_PINS = [
    Bookmark(
        url="https://docs.python.org/3/library/argparse.html",
        title="argparse - Parser for command-line options",
        description="Stdlib CLI parsing",
        tags=["python", "cli"],
        time="2026-03-01T10:00:00Z",
    ),
    Bookmark(
        url="https://www.rust-lang.org/",
        title="Rust Programming Language",
        tags=["rust", "programming"],
        time="2026-04-01T10:00:00Z",
    ),
]

SAMPLE_TAGS = [Tag("python", 12), Tag("rust", 4), Tag("programming", 20), Tag("cli", 2)]


class FakeStore:
    """Records every BookmarkStore call in order; fails on demand."""

    def __init__(self, pins=None, tags=None):
        self.calls: list[tuple] = []
        self.pins = list(SAMPLE_PINS if pins is None else pins)
        self.tags = list(SAMPLE_TAGS if tags is None else tags)
        self.fail: dict[str, Exception] = {}
        self.suggestions: list[str] = []

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name in self.fail:
            raise self.fail[name]

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    def refresh_all(self):
        self._record("refresh_all")

    def create(self, url, title, tags, description="", shared=None, toread=None):
        self._record("create", url, title, tags, description, shared, toread)

    def delete(self, url=None, tag=None):
        self._record("delete", url, tag)

    def rename_tag(self, old, new):
        self._record("rename_tag", old, new)

    def suggest_tags(self, url):
        self._record("suggest_tags", url)
        return self.suggestions

    def search(self, query_words, fields=None, exact_tag=False):
        self._record("search", list(query_words), fields, exact_tag)
        words = [w.lower() for w in query_words]
        return [
            p for p in self.pins
            if all(w in f"{p.title} {p.url} {' '.join(p.tags)}".lower() for w in words)
        ]

    def list_tags(self, query=None):
        self._record("list_tags", query)
        tags = [t for t in self.tags if not query or query.lower() in t.name.lower()]
        return sorted(tags, key=lambda t: -t.count)

    def list_bookmarks(self):
        self._record("list_bookmarks")
        return sorted(self.pins, key=lambda p: p.time, reverse=True)

    def find_url(self, url):
        return next((p for p in self.pins if p.url == url), None)


class FakeUpdater:
    def __init__(self, latest="", current="0.17.0"):
        self.calls: list[tuple] = []
        self.interval = 86400
        self.latest = latest
        self.current = current
        self.fail: Exception | None = None

        class _State:
            latest_version = latest
        self.state = _State()

    def init(self):
        self.calls.append(("init",))

    def set_check_interval(self, seconds):
        self.calls.append(("set_check_interval", seconds))
        self.interval = seconds

    def update_ready(self):
        return bool(self.latest) and self.latest != self.current

    def probe_and_maybe_download(self, download):
        self.calls.append(("probe_and_maybe_download", download))
        if self.fail:
            raise self.fail
        return UpdateStatus(
            current_version=self.current,
            latest_version=self.latest or self.current,
            available=self.update_ready(),
        )


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def updater():
    return FakeUpdater()


@pytest.fixture
def make_runner(env, make_config, store, updater):
    """Factory fixture returning (runner, output stream)."""
    def _make_runner(config=None, browser=lambda: None, query_as_item=False, **config_overrides):
        config = config or make_config(**config_overrides)
        stream = io.StringIO()
        sink = AlfredOutput(stream)
        session = Session(config=config, store=store, updater=updater)
        runner = Runner(session, sink, env, query_as_item=query_as_item, browser=browser)
        return runner, stream
    return _make_runner
