"""Command line component of the Alfred workflow for Pinboard."""

import argparse
import logging
import os
import sys
from typing import Mapping, TextIO

from .config import ConfigStore, ConfigUpdates
from .environment import validate_environment
from .errors import AlfredError, ConfigFileErr, MissingConfigFile, Other, WorkflowNotSetUp
from .logging_setup import setup_logging
from .output import AlfredOutput, Item
from .runner import Runner, build_session
from .settings import SETTINGS_FILE, load_settings

logger = logging.getLogger("alfred_pinboard.cli")

_TRUE = ("true", "yes", "on", "1")
_FALSE = ("false", "no", "off", "0")


def _bool_arg(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got {value!r}")


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number, got {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError("must be a positive number")
    return number


def cmd_config(args, store: ConfigStore, sink: AlfredOutput, supports_json: bool) -> int:
    """Apply the given settings and optionally echo them back."""
    updates = ConfigUpdates(
        auth_token=args.auth_token,
        bookmark_count=args.bookmark_count,
        tag_count=args.tag_count,
        shared_by_default=args.shared,
        toread_by_default=args.toread,
        fuzzy_search=args.fuzzy,
        tags_only_search=args.tags_only,
        auto_update_cache=args.auto_update,
        suggest_tags=args.suggest_tags,
        check_bookmarked_page=args.check_bookmarked_page,
        show_url_vs_tags=args.show_url_vs_tags,
    )
    try:
        config = store.apply(updates)
    except AlfredError as e:
        sink.write_error(str(e))
        return 0
    except OSError as e:
        sink.write_error(str(Other(e)))
        return 0

    if args.display:
        items = [Item(title=f"{key}: {value}", subtitle=key, valid=False)
                 for key, value in store.display(config)]
    else:
        items = [Item(title="Settings saved", subtitle=str(store.path), valid=False)]
    sink.write(items, supports_json)
    return 0


def cmd_list(runner: Runner, args) -> None:
    runner.dispatch(
        "list",
        tags=args.tags,
        suggest=args.suggest,
        query=args.query,
        no_existing_page=args.no_existing_page,
    )


def cmd_search(runner: Runner, args) -> None:
    runner.dispatch(
        "search",
        query=args.query,
        tags=args.tags,
        title=args.title,
        description=args.description,
        url=args.url,
        show_only_url=args.show_only_url,
        exact_tag=args.exact_tag,
    )


def cmd_post(runner: Runner, args) -> None:
    runner.dispatch(
        "post",
        tags=args.tags,
        description=args.description,
        shared=args.shared,
        toread=args.toread,
        url=args.url,
        title=args.title,
    )


def cmd_delete(runner: Runner, args) -> None:
    runner.dispatch("delete", url=args.url, tag=args.tag)


def cmd_rename(runner: Runner, args) -> None:
    runner.dispatch("rename", tags=args.tags)


def cmd_update(runner: Runner, args) -> None:
    runner.dispatch("update")


def cmd_self(runner: Runner, args) -> None:
    runner.dispatch("self", check=args.check, download=args.download)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="alfred-pinboard",
        description="Command line component of the Alfred workflow for Pinboard",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    parser.add_argument(
        "-q", "--query-as-item", action="store_true",
        help="Show the exact query at the top of Alfred's list",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # config
    p_config = sub.add_parser("config", help="Configure the workflow")
    p_config.add_argument("-d", "--display", action="store_true",
                          help="Show all settings after applying the given ones")
    p_config.add_argument("-a", "--authorization", dest="auth_token",
                          help="Pinboard API token (user:HEX, from the settings page)")
    p_config.add_argument("-p", "--bookmark-numbers", dest="bookmark_count", type=_positive_int,
                          help="Bookmarks to show [default: 10]")
    p_config.add_argument("-l", "--tag-numbers", dest="tag_count", type=_positive_int,
                          help="Tags to show [default: 10]")
    p_config.add_argument("-s", "--shared", type=_bool_arg,
                          help="Make new bookmarks shared [default: false]")
    p_config.add_argument("-r", "--toread", type=_bool_arg,
                          help="Mark new bookmarks toread [default: false]")
    p_config.add_argument("-f", "--fuzzy", type=_bool_arg,
                          help="Fuzzy search [default: false]")
    p_config.add_argument("-t", "--tags-only", type=_bool_arg,
                          help="Only search the tags field [default: false]")
    p_config.add_argument("-u", "--auto-update", type=_bool_arg,
                          help="Update the cache after post/delete/rename [default: true]")
    p_config.add_argument("-o", "--suggest-tags", type=_bool_arg,
                          help="Show popular tags for the page when posting [default: true]")
    p_config.add_argument("-b", "--check-bookmarked-page", type=_bool_arg,
                          help="Check if the current page is bookmarked [default: false]")
    p_config.add_argument("-e", "--show-urls-vs-tags", dest="show_url_vs_tags", type=_bool_arg,
                          help="Show tags instead of urls in subtitles [default: false]")

    # list
    p_list = sub.add_parser("list", help="List bookmarks (default) or tags")
    p_list.add_argument("-t", "--tags", action="store_true", help="List tags")
    p_list.add_argument("-s", "--suggest", type=_bool_arg,
                        help="Show popular tags for the current page (tags only)")
    p_list.add_argument("-n", "--no-existing-page", action="store_true",
                        help="Don't check if the current page is bookmarked")
    p_list.add_argument("query", nargs="?", help="Narrow the tag list")

    # post
    p_post = sub.add_parser("post", help="Bookmark the current browser page")
    p_post.add_argument("-t", "--tags", nargs="*", default=[], help="Tags for the bookmark")
    p_post.add_argument("-d", "--description", help="Extended description")
    p_post.add_argument("-s", "--shared", type=_bool_arg, help="Override shared setting")
    p_post.add_argument("-b", "--toread", type=_bool_arg, help="Override toread setting")
    p_post.add_argument("--url", help="Bookmark this url instead of the browser's")
    p_post.add_argument("--title", help="Title to use with --url")

    # delete
    p_delete = sub.add_parser("delete", help="Delete a bookmark or a tag")
    target = p_delete.add_mutually_exclusive_group()
    target.add_argument("-u", "--url", help="Bookmark to delete [default: current page]")
    target.add_argument("-t", "--tag", help="Tag to delete")

    # rename
    p_rename = sub.add_parser("rename", help="Rename a tag")
    p_rename.add_argument("tags", nargs="*", help="OLD NEW")

    # search
    p_search = sub.add_parser("search", help="Search bookmarks")
    p_search.add_argument("-t", "--tags", action="store_true", help="Search tags")
    p_search.add_argument("-T", "--title", action="store_true", help="Search titles")
    p_search.add_argument("-d", "--description", action="store_true", help="Search descriptions")
    p_search.add_argument("-u", "--url", action="store_true", help="Search urls")
    p_search.add_argument("-U", "--show-only-url", action="store_true",
                          help="Print matching urls, one per line")
    p_search.add_argument("-e", "--exact-tag", action="store_true",
                          help="Bookmarks with a tag exactly matching the single query word")
    p_search.add_argument("query", nargs="+", help="Words that must all match")

    # update
    sub.add_parser("update", help="Download all bookmarks into the cache")

    # self
    p_self = sub.add_parser("self", help="Check for or download a new workflow version")
    p_self.add_argument("-c", "--check", action="store_true", help="Check now")
    p_self.add_argument("-d", "--download", action="store_true", help="Download the new version")

    return parser


COMMANDS = {
    "list": cmd_list,
    "search": cmd_search,
    "post": cmd_post,
    "delete": cmd_delete,
    "rename": cmd_rename,
    "update": cmd_update,
    "self": cmd_self,
}


def run(
    argv: list[str] | None = None,
    environ: Mapping[str, str] | None = None,
    stream: TextIO | None = None,
    browser=None,
) -> int:
    """Run one invocation and return the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "search" and args.exact_tag and (
        args.tags or args.title or args.description or args.url
    ):
        parser.error("--exact-tag cannot be combined with -t, -T, -d or -u")

    environ = os.environ if environ is None else environ
    sink = AlfredOutput(stream)

    try:
        env = validate_environment(environ)
    except WorkflowNotSetUp as e:
        sink.write_error(str(e))
        return 1

    settings = load_settings(env.data_dir / SETTINGS_FILE)
    setup_logging(settings, verbose=args.verbose or env.debug, run=env.execution_counter)
    sink.execution_counter = env.execution_counter
    logger.debug(
        "%s %s (%s) under Alfred %s: %s",
        env.name, env.version, env.bundle_id or env.uid, env.alfred_version, args.command,
    )

    config_store = ConfigStore(env.data_dir)
    if args.command == "config":
        return cmd_config(args, config_store, sink, env.supports_json)

    try:
        config = config_store.load()
        session = build_session(config, env, settings)
    except (MissingConfigFile, ConfigFileErr) as e:
        sink.write_error(str(e))
        return 1

    # An explicit check must hit the network
    if args.command == "self" and args.check:
        session.updater.set_check_interval(0)
    session.updater.init()

    runner_kwargs = {"browser": browser} if browser is not None else {}
    runner = Runner(session, sink, env, query_as_item=args.query_as_item, **runner_kwargs)
    COMMANDS[args.command](runner, args)
    return 0


def main():
    sys.exit(run())


if __name__ == "__main__":
    main()
