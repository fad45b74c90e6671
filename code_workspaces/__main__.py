"""
Command-line entry point.

Usage:
    python -m code_workspaces instances
    python -m code_workspaces list [--json]
    python -m code_workspaces search api --strict --page-size 20 --pages 2
    python -m code_workspaces open api
    python -m code_workspaces copy api
    python -m code_workspaces settings pageSize 25

Command output goes to stdout, logs to stderr. Exit status is 1 when
nothing matched or an action failed.
"""

import argparse
import asyncio
import json
import logging
import sys

from .actions import notify
from .aggregator import Aggregator
from .controller import QueryController
from .errors import ActionResult, ErrorCodes, action_error
from .locator import InstanceLocator
from .models import SearchMode
from .protocols import SettingsProvider
from .rows import ListRow
from .settings_manager import DEFAULTS, SettingsManager, SettingsValidationError, get_settings

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    """Send logs to stderr, leaving stdout for command output."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


class SearchOverrides:
    """Settings view with command-line overrides for search mode and page size."""

    def __init__(self, settings: SettingsProvider, mode: SearchMode | None = None, page_size: int | None = None):
        self._settings = settings
        self._mode = mode
        self._page_size = page_size

    @property
    def search_mode(self) -> SearchMode:
        return self._mode or self._settings.search_mode

    @property
    def page_size(self) -> int:
        return self._page_size or self._settings.page_size

    def __getattr__(self, name: str):
        return getattr(self._settings, name)


def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="code-workspaces",
        description="Find and reopen recent VS Code folders and workspaces",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--notify",
        action="store_true",
        help="Also show open/copy results as a desktop notification",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    instances = commands.add_parser("instances", help="List located VS Code installations")
    instances.add_argument("--json", action="store_true", help="Print JSON")

    list_cmd = commands.add_parser("list", help="List all recent workspaces")
    list_cmd.add_argument("--json", action="store_true", help="Print JSON")

    search = commands.add_parser("search", help="Search recent workspaces")
    search.add_argument("query", help="Search text")
    mode = search.add_mutually_exclusive_group()
    mode.add_argument("--strict", dest="mode", action="store_const", const=SearchMode.STRICT)
    mode.add_argument("--fuzzy", dest="mode", action="store_const", const=SearchMode.FUZZY)
    search.add_argument("--page-size", type=int, default=None, help="Rows per page")
    search.add_argument("--pages", type=int, default=1, help="Number of pages to show")
    search.add_argument("--json", action="store_true", help="Print JSON")

    open_cmd = commands.add_parser("open", help="Open the best match")
    open_cmd.add_argument("query", help="Search text")

    copy = commands.add_parser("copy", help="Copy the best match's path")
    copy.add_argument("query", help="Search text")

    settings = commands.add_parser("settings", help="Show or change settings")
    settings.add_argument("key", nargs="?", help="Setting name")
    settings.add_argument("value", nargs="?", help="New value")

    return parser


# ==================== Commands ====================


def format_row(row: ListRow) -> str:
    tags = f" [{', '.join(row.tags)}]" if row.tags else ""
    return f"{row.title}{tags}\t{row.subtitle}"


async def search_rows(settings: SettingsProvider, query: str, pages: int = 1) -> list[ListRow]:
    """Load, filter and page through results the way an interactive list would."""
    async with QueryController(settings) as controller:
        controller.get_items()
        await controller.settle()
        controller.update_search_text(query)
        await controller.settle()
        for _ in range(pages - 1):
            if not controller.load_more():
                break
        return controller.get_items()


def cmd_instances(settings: SettingsProvider, as_json: bool) -> int:
    installations = InstanceLocator().locate(settings.preferred_edition)
    if as_json:
        print(json.dumps([inst.to_dict() for inst in installations], indent=2))
    else:
        for inst in installations:
            print(f"{inst.display_name}\t{inst.executable_path}")
    return 0 if installations else 1


async def cmd_list(settings: SettingsProvider, as_json: bool) -> int:
    workspaces = await Aggregator().refresh(settings.preferred_edition)
    if as_json:
        print(json.dumps([ws.to_dict() for ws in workspaces], indent=2))
    else:
        for ws in workspaces:
            print(f"{ws.display_name}\t{ws.decoded_path}\t{ws.installation.display_name}")
    return 0 if workspaces else 1


async def cmd_search(settings: SettingsProvider, args: argparse.Namespace) -> int:
    view = SearchOverrides(settings, args.mode, args.page_size if args.page_size and args.page_size > 0 else None)
    rows = await search_rows(view, args.query, max(args.pages, 1))

    if rows and rows[0].is_placeholder:
        print(f"{rows[0].title}. {rows[0].subtitle}.", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps([row.workspace.to_dict() for row in rows if row.workspace], indent=2))
    else:
        for row in rows:
            print(format_row(row))
    return 0


async def cmd_action(settings: SettingsProvider, query: str, action: str, show_notification: bool) -> int:
    """Run the open or copy command of the best match."""
    rows = await search_rows(settings, query)
    result: ActionResult
    if not rows or rows[0].is_placeholder:
        result = action_error(f"No workspace matches {query!r}", code=ErrorCodes.NOT_FOUND)
        print(result.to_string(), file=sys.stderr)
    else:
        row = rows[0]
        command = row.command if action == "open" else row.more_commands[0]
        result = await command.invoke()
        print(result.to_string())

    if show_notification:
        await notify("Code Workspaces", result.message, success=result.success)
    return 0 if result.success else 1


def cmd_settings(settings: SettingsManager, key: str | None, value: str | None) -> int:
    if key is None:
        for name, current in settings.as_dict().items():
            print(f"{name} = {json.dumps(current)}")
        return 0

    if key not in DEFAULTS:
        print(f"Unknown setting: {key}", file=sys.stderr)
        return 1

    if value is None:
        print(json.dumps(settings.as_dict()[key]))
        return 0

    try:
        settings.set_value(key, value)
    except SettingsValidationError as e:
        print(str(e), file=sys.stderr)
        return 1
    print(f"{key} = {json.dumps(settings.as_dict()[key])}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = create_argument_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose)

    settings = get_settings()

    if args.command == "instances":
        return cmd_instances(settings, args.json)
    if args.command == "list":
        return asyncio.run(cmd_list(settings, args.json))
    if args.command == "search":
        return asyncio.run(cmd_search(settings, args))
    if args.command in ("open", "copy"):
        return asyncio.run(cmd_action(settings, args.query, args.command, args.notify))
    if args.command == "settings":
        return cmd_settings(settings, args.key, args.value)

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
