"""Command-line interface for cmdify-sync.

Every subcommand works on the local collection in the configured data
directory.  ``sync``, ``push``, ``pull``, ``link`` and ``unlink`` talk to
the gist and need a GitHub token; the others work offline.

Exit codes: 0 on success or when the user cancelled, 1 on any error.
"""

import argparse
import json
import logging
import sys
from typing import Callable

import yaml
from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import find_config_files, load_config_files
from .config_schema import CONFLICT_POLICIES, UnifiedConfig, build_config
from .core.client import GistClient
from .errors import CancelledError, CmdifySyncError
from .logger import setup_logging
from .storage import CommandStore
from .sync.engine import SyncEngine
from .sync.file_sync import FileSync
from .sync.models import (
    ConflictResolution,
    SyncConflict,
    SyncReport,
    create_command,
)
from .sync.reporter import format_conflict, format_sync_report, report_to_json
from .sync.resolver import create_resolver
from .sync.state import SyncState

logger = logging.getLogger(__name__)

REMOTE_COMMANDS = frozenset({"sync", "push", "pull", "link"})

_CONFLICT_CHOICES: dict[str, ConflictResolution] = {
    "l": ConflictResolution.KEEP_LOCAL,
    "r": ConflictResolution.KEEP_REMOTE,
    "b": ConflictResolution.KEEP_BOTH,
}


def _stderr_print(msg: str) -> None:
    print(msg, file=sys.stderr)


# ---------------------------------------------------------------------------
# Interactive prompts
# ---------------------------------------------------------------------------


def prompt_conflict(conflict: SyncConflict) -> ConflictResolution | None:
    """Ask on the terminal how to settle *conflict*.

    Returns ``None`` when the user quits (or stdin is closed).
    """
    print(format_conflict(conflict))
    while True:
        try:
            answer = input(
                "Keep [l]ocal, [r]emote, [b]oth, or [q]uit? "
            ).strip().lower()
        except EOFError:
            return None
        if answer in ("q", "quit"):
            return None
        if answer[:1] in _CONFLICT_CHOICES:
            return _CONFLICT_CHOICES[answer[:1]]
        print("Please answer l, r, b or q.")


def prompt_import_mode(count: int) -> str | None:
    """Ask whether to merge or replace; ``None`` cancels."""
    while True:
        try:
            answer = input(
                f"Import {count} commands: [m]erge, [r]eplace, or [c]ancel? "
            ).strip().lower()
        except EOFError:
            return None
        if answer.startswith("m"):
            return "merge"
        if answer.startswith("r"):
            return "replace"
        if answer.startswith("c") or not answer:
            return None
        print("Please answer m, r or c.")


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


def _build_client(config: Config) -> GistClient:
    return GistClient(config, SyncState(config.data_path))


def _print_report(report: SyncReport, as_json: bool) -> None:
    if as_json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print(format_sync_report(report))


def _run_sync(
    args: argparse.Namespace, config: Config, direction: str
) -> int:
    resolver = create_resolver(
        config.conflict_resolution, prompt=prompt_conflict
    )
    engine = SyncEngine(
        store=CommandStore(config.data_path),
        client=_build_client(config),
        resolver=resolver,
    )
    report = engine.run(
        direction=direction, dry_run=getattr(args, "dry_run", False)
    )
    _print_report(report, getattr(args, "json", False))
    return 0


def cmd_sync(
    args: argparse.Namespace, config: Config, unified: UnifiedConfig
) -> int:
    return _run_sync(args, config, args.direction or unified.sync.direction)


def cmd_push(
    args: argparse.Namespace, config: Config, unified: UnifiedConfig
) -> int:
    return _run_sync(args, config, "push")


def cmd_pull(
    args: argparse.Namespace, config: Config, unified: UnifiedConfig
) -> int:
    return _run_sync(args, config, "pull")


def cmd_export(
    args: argparse.Namespace, config: Config, unified: UnifiedConfig
) -> int:
    count = FileSync(CommandStore(config.data_path)).export_to_file(
        lambda: args.path
    )
    if count:
        print(f"Exported {count} commands to {args.path}")
    else:
        print("No commands to export.")
    return 0


def cmd_import(
    args: argparse.Namespace, config: Config, unified: UnifiedConfig
) -> int:
    def pick_mode(payload):
        return args.mode or prompt_import_mode(len(payload.commands))

    count = FileSync(CommandStore(config.data_path)).import_from_file(
        lambda: args.path, pick_mode
    )
    print(f"Imported {count} commands from {args.path}")
    return 0


def cmd_link(
    args: argparse.Namespace, config: Config, unified: UnifiedConfig
) -> int:
    client = _build_client(config)
    if client.discover():
        print(f"Linked to gist {client.gist_id}")
        return 0
    _stderr_print("No gist with synced commands found.")
    return 1


def cmd_unlink(
    args: argparse.Namespace, config: Config, unified: UnifiedConfig
) -> int:
    client = _build_client(config)
    if not client.has_known_blob():
        print("Not linked to a gist.")
        return 0
    previous = client.gist_id
    client.clear_known_blob()
    print(f"Unlinked from gist {previous}")
    return 0


def cmd_list(
    args: argparse.Namespace, config: Config, unified: UnifiedConfig
) -> int:
    commands = CommandStore(config.data_path).visible()
    if not commands:
        print("No commands.")
        return 0
    for cmd in commands:
        star = "*" if cmd.is_favorite else " "
        tags = f"  [{', '.join(cmd.tags)}]" if cmd.tags else ""
        print(f"{star} {cmd.id}  {cmd.prompt}{tags}")
        print(f"    {cmd.command}")
    return 0


def cmd_add(
    args: argparse.Namespace, config: Config, unified: UnifiedConfig
) -> int:
    cmd = create_command(args.prompt, args.command_text, tags=args.tag or [])
    CommandStore(config.data_path).add(cmd)
    print(f"Added {cmd.id}")
    return 0


def cmd_delete(
    args: argparse.Namespace, config: Config, unified: UnifiedConfig
) -> int:
    CommandStore(config.data_path).delete(args.id)
    print(f"Deleted {args.id}")
    return 0


Handler = Callable[[argparse.Namespace, Config, UnifiedConfig], int]

_HANDLERS: dict[str, Handler] = {
    "sync": cmd_sync,
    "push": cmd_push,
    "pull": cmd_pull,
    "export": cmd_export,
    "import": cmd_import,
    "link": cmd_link,
    "unlink": cmd_unlink,
    "list": cmd_list,
    "add": cmd_add,
    "delete": cmd_delete,
}


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cmdify-sync",
        description="Sync a personal collection of CLI commands through a GitHub gist or a file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Two-way sync, asking about every conflict
  cmdify-sync sync

  # Preview what a sync would change
  cmdify-sync sync --dry-run

  # Keep both copies of every conflicting command
  cmdify-sync sync --policy keep_both

  # Move the collection to another machine without network access
  cmdify-sync export ~/commands.json
  cmdify-sync import ~/commands.json --merge

The GitHub token is read from CMDIFY_GITHUB_TOKEN (or GITHUB_TOKEN),
a .env file, --token, or the gist section of config.yml.
        """,
    )
    parser.add_argument(
        "--token",
        help="GitHub token with the gist scope (visible in process list -- prefer CMDIFY_GITHUB_TOKEN)",
    )
    parser.add_argument(
        "--data-dir",
        help="Directory holding commands.json and sync_state.json (default: ~/.cmdify)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        default="text",
        help="Log output format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"cmdify-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    p = sub.add_parser("sync", help="Merge with the gist and push the result")
    p.add_argument("--dry-run", action="store_true", help="Preview only")
    p.add_argument(
        "--policy",
        choices=CONFLICT_POLICIES,
        help="Conflict policy for this run (default from config: ask)",
    )
    p.add_argument(
        "--direction",
        choices=("bidirectional", "pull", "push"),
        help="Override the configured sync direction",
    )
    p.add_argument("--json", action="store_true", help="Print a JSON report")

    p = sub.add_parser("push", help="Upload the local collection as-is")
    p.add_argument("--json", action="store_true", help="Print a JSON report")

    p = sub.add_parser("pull", help="Merge the gist into the local collection")
    p.add_argument("--dry-run", action="store_true", help="Preview only")
    p.add_argument(
        "--policy",
        choices=CONFLICT_POLICIES,
        help="Conflict policy for this run",
    )
    p.add_argument("--json", action="store_true", help="Print a JSON report")

    p = sub.add_parser("export", help="Write the collection to a JSON file")
    p.add_argument("path", help="Destination file")

    p = sub.add_parser("import", help="Read the collection from a JSON file")
    p.add_argument("path", help="Source file")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument(
        "--merge",
        dest="mode",
        action="store_const",
        const="merge",
        help="Merge with the local collection (later edit wins)",
    )
    mode.add_argument(
        "--replace",
        dest="mode",
        action="store_const",
        const="replace",
        help="Replace the local collection",
    )

    sub.add_parser("link", help="Find an existing synced gist and use it")
    sub.add_parser("unlink", help="Forget the linked gist")
    sub.add_parser("list", help="List local commands")

    p = sub.add_parser("add", help="Add a command")
    p.add_argument("prompt", help="Natural language description")
    p.add_argument("command_text", metavar="command", help="The command")
    p.add_argument(
        "--tag", action="append", help="Tag (repeat for several tags)"
    )

    p = sub.add_parser("delete", help="Delete a command")
    p.add_argument("id", help="Command id (see 'list')")

    return parser


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, load configuration and run one subcommand.

    Returns:
        Process exit code.
    """
    args = build_parser().parse_args(argv)

    # CLI args > env vars (.env loaded first) > YAML config > defaults
    load_dotenv()
    try:
        unified = build_config(load_config_files())
    except (OSError, ValueError, yaml.YAMLError) as e:
        _stderr_print(f"ERROR: Invalid configuration file: {e}")
        return 1

    try:
        config = load_config(
            token=args.token,
            data_dir=args.data_dir,
            conflict_resolution=getattr(args, "policy", None),
            debug=args.debug,
            unified=unified,
            require_token=args.command in REMOTE_COMMANDS,
        )
    except ValueError as e:
        _stderr_print(f"ERROR: Configuration error: {e}")
        return 1

    setup_logging(
        mode="cli",
        debug=config.debug,
        log_file=args.log_file or unified.logging.file,
        debug_format=args.log_format,
        level=unified.logging.level,
    )
    config_files = find_config_files()
    if config_files:
        logger.debug("Configuration file: %s", config_files[0])

    try:
        return _HANDLERS[args.command](args, config, unified)
    except CancelledError as e:
        print(f"Cancelled: {e}")
        return 0
    except CmdifySyncError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        _stderr_print(f"ERROR: {e}")
        return 1
    except KeyError as e:
        _stderr_print(f"ERROR: {e.args[0] if e.args else e}")
        return 1
    except ValueError as e:
        _stderr_print(f"ERROR: {e}")
        return 1


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        _stderr_print("\nInterrupted.")
        sys.exit(0)


if __name__ == "__main__":
    run()
