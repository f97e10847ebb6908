"""Per-invocation session and command handlers.

One ``Runner`` serves one process: it owns the user's configuration, the
Pinboard store and the update checker, runs a single command and writes
exactly one result to Alfred.
"""

import logging
from dataclasses import dataclass, field

import httpx

from .browser import BrowserTab, frontmost_tab
from .config import Configuration
from .environment import WorkflowEnv
from .errors import AlfredError, InvalidInput, MissingConfigFile, map_store_error
from .output import AlfredOutput, Item
from .pinboard import Bookmark, PinboardClient, PinboardError, PinboardStore
from .settings import Settings
from .updater import UpdateChecker

logger = logging.getLogger("alfred_pinboard.runner")


@dataclass
class Session:
    config: Configuration
    store: PinboardStore
    updater: UpdateChecker


@dataclass
class CommandResult:
    """Items for Alfred, or plain lines when ``lines`` is set."""
    items: list[Item] = field(default_factory=list)
    variables: dict[str, str] = field(default_factory=dict)
    lines: list[str] | None = None


def build_session(config: Configuration, env: WorkflowEnv, settings: Settings) -> Session:
    """Wire the store and updater for one invocation."""
    if not config.auth_token:
        raise MissingConfigFile()

    client = PinboardClient(
        config.auth_token,
        base_url=settings.pinboard.api_url,
        timeout=settings.pinboard.timeout,
    )
    store = PinboardStore(client, env.cache_dir)
    store.configure(
        fuzzy=config.fuzzy_search,
        tags_only=config.tags_only_search,
        private_default=not config.shared_by_default,
        toread_default=config.toread_by_default,
    )
    updater = UpdateChecker(
        settings.updater.repo,
        env.version,
        env.cache_dir,
        api_url=settings.updater.api_url,
        interval=settings.updater.check_interval,
        timeout=settings.updater.timeout,
    )
    return Session(config=config, store=store, updater=updater)


class Runner:
    def __init__(
        self,
        session: Session,
        sink: AlfredOutput,
        env: WorkflowEnv,
        query_as_item: bool = False,
        browser=frontmost_tab,
    ):
        self.session = session
        self.sink = sink
        self.env = env
        self.query_as_item = query_as_item
        self._browser = browser
        self._tab: BrowserTab | None = None
        self._tab_looked_up = False
        self._handlers = {
            "list": self.list_items,
            "search": self.search,
            "post": self.post,
            "delete": self.delete,
            "rename": self.rename,
            "update": self.update_cache,
            "self": self.upgrade,
        }

    @property
    def config(self) -> Configuration:
        return self.session.config

    @property
    def store(self) -> PinboardStore:
        return self.session.store

    def dispatch(self, verb: str, **kwargs) -> None:
        """Run one command and report its result or its error to Alfred."""
        handler = self._handlers[verb]
        logger.debug("Dispatching %s %s", verb, kwargs)
        try:
            result = handler(**kwargs)
        except AlfredError as e:
            logger.info("%s failed: %s", verb, e)
            self.sink.write_error(str(e))
            return
        except Exception as e:  # noqa: BLE001 - every failure becomes an Alfred item
            error = map_store_error(verb, e)
            logger.info("%s failed: %s", verb, error)
            self.sink.write_error(str(error))
            return

        if result.lines is not None:
            self.sink.write_lines(result.lines)
        else:
            self.sink.write(result.items, self.env.supports_json, result.variables)

    # --- Shared policies ---

    def _refresh_after_mutation(self) -> bool:
        """Refresh the cache after a successful post/delete/rename, if enabled."""
        if not self.config.auto_update_cache:
            return False
        try:
            self.store.refresh_all()
        except (PinboardError, httpx.HTTPError, OSError) as e:
            raise map_store_error("update", e) from e
        return True

    def _active_tab(self) -> BrowserTab | None:
        if not self._tab_looked_up:
            self._tab = self._browser()
            self._tab_looked_up = True
        return self._tab

    def _bookmark_item(self, pin: Bookmark) -> Item:
        tags = " ".join(f"#{t}" for t in pin.tags) or "(no tags)"
        shown, other = (tags, pin.url) if self.config.show_url_vs_tags else (pin.url, tags)
        return Item(
            title=pin.title or pin.url,
            subtitle=shown,
            arg=pin.url,
            quicklook_url=pin.url,
            mods={"alt": {"subtitle": other, "arg": pin.url, "valid": True}},
        )

    def _decorate(self, items: list[Item], query: str | None) -> CommandResult:
        """Add the exact-query and update-available items to a result list."""
        if self.query_as_item and query:
            items.insert(0, Item(
                title=query, subtitle="Use exact query", arg=query, autocomplete=query,
            ))
        variables = {}
        if self.session.updater.update_ready():
            variables["workflow_update_ready"] = "1"
            items.insert(0, Item(
                title="New version of workflow is available!",
                subtitle=f"Version {self.session.updater.state.latest_version}, "
                         "press Enter to download",
                arg="download_update",
                autocomplete="self -d",
            ))
        return CommandResult(items=items, variables=variables)

    # --- Commands ---

    def list_items(
        self,
        tags: bool = False,
        suggest: bool | None = None,
        query: str | None = None,
        no_existing_page: bool = False,
    ) -> CommandResult:
        """List tags (optionally completing the last word of ``query``) or bookmarks."""
        items: list[Item] = []
        if tags:
            items.extend(self._suggested_tag_items(query, suggest))
            items.extend(self._tag_items(query))
        else:
            pins = self.store.list_bookmarks()[: self.config.bookmark_count]
            items.extend(self._bookmark_item(p) for p in pins)

        if self.config.check_bookmarked_page and not no_existing_page:
            tab = self._active_tab()
            pin = self.store.find_url(tab.url) if tab else None
            if pin:
                items.insert(0, Item(
                    title="You already have this page bookmarked",
                    subtitle=" ".join(f"#{t}" for t in pin.tags) or pin.title,
                    arg=pin.url,
                    valid=False,
                ))

        if not items:
            items.append(Item(title="Nothing found", subtitle=query or "", valid=False))
        return self._decorate(items, query)

    def _split_query(self, query: str | None) -> tuple[list[str], str | None]:
        """Previous words and the word being typed (None after a trailing space)."""
        if not query:
            return [], None
        words = query.split()
        if query.endswith(" ") or not words:
            return words, None
        return words[:-1], words[-1]

    def _tag_items(self, query: str | None) -> list[Item]:
        previous, current = self._split_query(query)
        taken = {w.lower() for w in previous}
        items = []
        for tag in self.store.list_tags(current):
            if tag.name.lower() in taken:
                continue
            completed = " ".join(previous + [tag.name])
            items.append(Item(
                title=tag.name,
                subtitle=f"{tag.count} bookmarks",
                arg=completed,
                autocomplete=completed + " ",
            ))
            if len(items) >= self.config.tag_count:
                break
        return items

    def _suggested_tag_items(self, query: str | None, suggest: bool | None) -> list[Item]:
        if not (self.config.suggest_tags if suggest is None else suggest):
            return []
        tab = self._active_tab()
        if tab is None:
            return []
        try:
            popular = self.store.suggest_tags(tab.url)
        except (PinboardError, httpx.HTTPError) as e:
            logger.warning("Tag suggestions unavailable: %s", e)
            return []
        previous, _ = self._split_query(query)
        return [
            Item(
                title=tag,
                subtitle="Popular tag for this page",
                arg=" ".join(previous + [tag]),
                autocomplete=" ".join(previous + [tag]) + " ",
            )
            for tag in popular
            if tag.lower() not in {w.lower() for w in previous}
        ]

    def search(
        self,
        query: list[str],
        tags: bool = False,
        title: bool = False,
        description: bool = False,
        url: bool = False,
        show_only_url: bool = False,
        exact_tag: bool = False,
    ) -> CommandResult:
        words = [w for w in query if w]
        if not words:
            raise InvalidInput("Type something to search for")
        if exact_tag and len(words) != 1:
            raise InvalidInput("Exact tag search takes a single word")

        selected = (("tags", tags), ("title", title), ("description", description), ("url", url))
        fields = tuple(name for name, on in selected if on) or None
        pins = self.store.search(words, fields=fields, exact_tag=exact_tag)

        if show_only_url:
            return CommandResult(lines=[p.url for p in pins])

        items = [self._bookmark_item(p) for p in pins[: self.config.bookmark_count]]
        if not items:
            items.append(Item(title="No bookmarks found", subtitle=" ".join(words), valid=False))
        return self._decorate(items, " ".join(query))

    def post(
        self,
        tags: list[str] | None = None,
        description: str | None = None,
        shared: bool | None = None,
        toread: bool | None = None,
        url: str | None = None,
        title: str | None = None,
    ) -> CommandResult:
        if not url:
            tab = self._active_tab()
            if tab is None:
                raise InvalidInput("Couldn't find the active browser tab")
            url, title = tab.url, title or tab.title

        self.store.create(
            url, title or url, list(tags or []), description or "",
            shared=shared, toread=toread,
        )
        self._refresh_after_mutation()
        return CommandResult(items=[
            Item(title="Successfully posted bookmark", subtitle=title or url, arg=url),
        ])

    def delete(self, url: str | None = None, tag: str | None = None) -> CommandResult:
        if url and tag:
            raise InvalidInput("Delete either a url or a tag, not both")
        if not url and not tag:
            tab = self._active_tab()
            if tab is None:
                raise InvalidInput("Couldn't find the active browser tab")
            url = tab.url

        self.store.delete(url=url, tag=tag)
        self._refresh_after_mutation()
        if tag:
            item = Item(title="Successfully deleted tag", subtitle=tag, arg=tag)
        else:
            item = Item(title="Successfully deleted bookmark", subtitle=url, arg=url)
        return CommandResult(items=[item])

    def rename(self, tags: list[str]) -> CommandResult:
        if len(tags) != 2 or any(not tag.strip() for tag in tags):
            raise InvalidInput("Enter 2 tags please!")
        old, new = tags

        self.store.rename_tag(old, new)
        self._refresh_after_mutation()
        return CommandResult(items=[
            Item(title="Successfully renamed tag.", subtitle=f"{old} → {new}", arg=new),
        ])

    def update_cache(self) -> CommandResult:
        """Full resync, regardless of auto_update_cache."""
        self.store.refresh_all()
        return CommandResult(items=[
            Item(
                title="Bookmarks cache updated",
                subtitle=f"{len(self.store.pins)} bookmarks, {len(self.store.tags)} tags",
                valid=False,
            ),
        ])

    def upgrade(self, check: bool = False, download: bool = False) -> CommandResult:
        status = self.session.updater.probe_and_maybe_download(download)
        if status.downloaded_to is not None:
            item = Item(
                title=f"Downloaded version {status.latest_version}",
                subtitle=str(status.downloaded_to),
                arg=str(status.downloaded_to),
            )
        elif status.available:
            item = Item(
                title=f"Version {status.latest_version} is available",
                subtitle=f"You have {status.current_version}, use 'self -d' to download",
                autocomplete="self -d",
                valid=False,
            )
        else:
            item = Item(
                title="You have the latest version of the workflow",
                subtitle=f"Version {status.current_version}",
                valid=False,
            )
        return CommandResult(items=[item])
