"""Pinboard bookmarks: API client, local cache and search.

The cache is two JSON files in the workflow cache directory
(``pins.json`` and ``tags.json``). Search and list read the cache only;
create, delete and rename go to the API and leave refreshing the cache to
the caller.
"""

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field
from pathlib import Path

import httpx

logger = logging.getLogger("alfred_pinboard.pinboard")

API_URL = "https://api.pinboard.in/v1"
REQUEST_TIMEOUT = 30.0
PINS_CACHE = "pins.json"
TAGS_CACHE = "tags.json"

SEARCH_FIELDS = ("tags", "title", "description", "url")


class PinboardError(Exception):
    """Pinboard answered, but not with ``done``."""


@dataclass
class Bookmark:
    url: str
    title: str = ""
    description: str = ""
    tags: list[str] = field(default_factory=list)
    shared: bool = True
    toread: bool = False
    time: str = ""

    @classmethod
    def from_api(cls, post: dict) -> "Bookmark":
        return cls(
            url=post["href"],
            title=post.get("description", ""),
            description=post.get("extended", ""),
            tags=post.get("tags", "").split(),
            shared=post.get("shared", "yes") == "yes",
            toread=post.get("toread", "no") == "yes",
            time=post.get("time", ""),
        )


@dataclass
class Tag:
    name: str
    count: int = 0


class PinboardClient:
    """Thin httpx client for the Pinboard v1 API."""

    def __init__(self, auth_token: str, base_url: str = API_URL, timeout: float = REQUEST_TIMEOUT):
        self.auth_token = auth_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _request(self, path: str, **params) -> object:
        """GET an API method and return parsed JSON."""
        url = f"{self.base_url}/{path}"
        query = {"auth_token": self.auth_token, "format": "json", **params}
        logger.debug("Pinboard request: %s", path)
        resp = httpx.request("GET", url, params=query, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    @staticmethod
    def _check_result(data: object) -> None:
        # posts/* answer with result_code, tags/* with result
        if not isinstance(data, dict):
            raise PinboardError("Unexpected response from Pinboard")
        code = data.get("result_code", data.get("result"))
        if code != "done":
            raise PinboardError(str(code or "Unexpected response from Pinboard"))

    # --- Bookmarks ---

    def all_posts(self) -> list[dict]:
        data = self._request("posts/all")
        if not isinstance(data, list):
            raise PinboardError("Unexpected response from Pinboard")
        return data

    def add_post(
        self,
        url: str,
        title: str,
        tags: list[str],
        extended: str = "",
        shared: bool = True,
        toread: bool = False,
    ) -> None:
        data = self._request(
            "posts/add",
            url=url,
            description=title,
            extended=extended,
            tags=" ".join(tags),
            shared="yes" if shared else "no",
            toread="yes" if toread else "no",
            replace="yes",
        )
        self._check_result(data)

    def delete_post(self, url: str) -> None:
        self._check_result(self._request("posts/delete", url=url))

    def suggest(self, url: str) -> list[str]:
        """Popular tags Pinboard suggests for ``url``."""
        data = self._request("posts/suggest", url=url)
        popular: list[str] = []
        for entry in data if isinstance(data, list) else []:
            popular.extend(entry.get("popular", []))
        return popular

    # --- Tags ---

    def get_tags(self) -> dict[str, int]:
        data = self._request("tags/get")
        if not isinstance(data, dict):
            raise PinboardError("Unexpected response from Pinboard")
        return {name: int(count) for name, count in data.items()}

    def delete_tag(self, tag: str) -> None:
        self._check_result(self._request("tags/delete", tag=tag))

    def rename_tag(self, old: str, new: str) -> None:
        self._check_result(self._request("tags/rename", old=old, new=new))


def _write_json(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp",
        encoding="utf-8", delete=False,
    ) as tmp:
        json.dump(payload, tmp)
    os.replace(tmp.name, path)


def _matches(needle: str, haystack: str, fuzzy: bool) -> bool:
    haystack = haystack.lower()
    if not fuzzy:
        return needle in haystack
    # Characters of the needle appear in order
    pos = 0
    for ch in needle:
        pos = haystack.find(ch, pos)
        if pos < 0:
            return False
        pos += 1
    return True


class PinboardStore:
    """Pinboard account with a local cache."""

    def __init__(self, client: PinboardClient, cache_dir: Path):
        self.client = client
        self.cache_dir = Path(cache_dir)
        self.fuzzy = False
        self.tags_only = False
        self.private_default = True
        self.toread_default = False
        self._pins: list[Bookmark] | None = None
        self._tags: list[Tag] | None = None

    def configure(
        self,
        fuzzy: bool,
        tags_only: bool,
        private_default: bool,
        toread_default: bool,
    ) -> None:
        self.fuzzy = fuzzy
        self.tags_only = tags_only
        self.private_default = private_default
        self.toread_default = toread_default

    # --- Cache ---

    def refresh_all(self) -> None:
        """Download every bookmark and tag and rewrite the cache."""
        logger.info("Refreshing bookmark cache")
        posts = self.client.all_posts()
        tags = self.client.get_tags()
        pins = [Bookmark.from_api(p) for p in posts]
        tag_list = [Tag(name, count) for name, count in tags.items()]
        _write_json(self.cache_dir / PINS_CACHE, [asdict(p) for p in pins])
        _write_json(self.cache_dir / TAGS_CACHE, [asdict(t) for t in tag_list])
        self._pins = pins
        self._tags = tag_list
        logger.info("Cached %d bookmarks and %d tags", len(pins), len(tag_list))

    def _read_cache(self, name: str) -> list[dict]:
        path = self.cache_dir / name
        if not path.exists():
            self.refresh_all()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PinboardError(f"Unreadable cache file {name}, run update") from e
        if not isinstance(data, list):
            raise PinboardError(f"Unreadable cache file {name}, run update")
        return data

    @property
    def pins(self) -> list[Bookmark]:
        if self._pins is None:
            self._pins = [Bookmark(**p) for p in self._read_cache(PINS_CACHE)]
        return self._pins

    @property
    def tags(self) -> list[Tag]:
        if self._tags is None:
            self._tags = [Tag(**t) for t in self._read_cache(TAGS_CACHE)]
        return self._tags

    # --- Mutations ---

    def create(
        self,
        url: str,
        title: str,
        tags: list[str],
        description: str = "",
        shared: bool | None = None,
        toread: bool | None = None,
    ) -> None:
        if shared is None:
            shared = not self.private_default
        if toread is None:
            toread = self.toread_default
        logger.info("Posting %s (shared=%s, toread=%s)", url, shared, toread)
        self.client.add_post(url, title or url, tags, description, shared=shared, toread=toread)

    def delete(self, url: str | None = None, tag: str | None = None) -> None:
        if url:
            logger.info("Deleting bookmark %s", url)
            self.client.delete_post(url)
        elif tag:
            logger.info("Deleting tag %s", tag)
            self.client.delete_tag(tag)
        else:
            raise ValueError("Must provide either url or tag")

    def rename_tag(self, old: str, new: str) -> None:
        logger.info("Renaming tag %s -> %s", old, new)
        self.client.rename_tag(old, new)

    def suggest_tags(self, url: str) -> list[str]:
        return self.client.suggest(url)

    # --- Queries ---

    def search(
        self,
        query_words: list[str],
        fields: tuple[str, ...] | None = None,
        exact_tag: bool = False,
    ) -> list[Bookmark]:
        """Bookmarks containing every query word in the searched fields.

        Without explicit fields all fields are searched, or only tags when
        tags-only search is enabled.
        """
        words = [w.lower() for w in query_words if w]
        if exact_tag:
            if len(words) != 1:
                raise ValueError("--exact-tag takes exactly one word")
            return [p for p in self.pins if words[0] in (t.lower() for t in p.tags)]

        if not fields:
            fields = ("tags",) if self.tags_only else SEARCH_FIELDS

        def texts(pin: Bookmark) -> list[str]:
            values = {
                "tags": " ".join(pin.tags),
                "title": pin.title,
                "description": pin.description,
                "url": pin.url,
            }
            return [values[f] for f in fields]

        results = []
        for pin in self.pins:
            haystacks = texts(pin)
            if all(any(_matches(w, h, self.fuzzy) for h in haystacks) for w in words):
                results.append(pin)
        return results

    def list_tags(self, query: str | None = None) -> list[Tag]:
        """Tags matching ``query`` (all tags without one), most used first."""
        tags = self.tags
        if query:
            needle = query.lower()
            tags = [t for t in tags if _matches(needle, t.name, self.fuzzy)]
        return sorted(tags, key=lambda t: (-t.count, t.name.lower()))

    def list_bookmarks(self) -> list[Bookmark]:
        """Every cached bookmark, newest first."""
        return sorted(self.pins, key=lambda p: p.time, reverse=True)

    def find_url(self, url: str) -> Bookmark | None:
        target = url.rstrip("/")
        return next((p for p in self.pins if p.url.rstrip("/") == target), None)
