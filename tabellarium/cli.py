"""CLI entry point for tabellarium."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from imapclient.exceptions import IMAPClientError

from .config import ExecutorConfig, load_config
from .errors import (
    AggregateFailure,
    ConfigurationError,
    MailboxConnectionError,
    RollbackError,
    TaskExecutorError,
)
from .executor import ImapFolderTaskExecutor
from .handlers import ChangeMessageFlagEmailHandler, PrintingEmailHandler, PrintInFileEmailHandler
from .imap_client import ImapMailbox

logger = logging.getLogger("tabellarium")


def add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add config and task-toggle arguments to a parser."""
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=Path("config.toml"),
        help="Path to configuration file",
    )
    parser.add_argument(
        "--folder",
        type=str,
        help="Override the folder to work on",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        help="Process at most this many messages (0 = all)",
    )
    parser.add_argument(
        "--include-seen",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Also process messages already marked as seen",
    )
    parser.add_argument(
        "--delete",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Delete messages after they were processed",
    )
    parser.add_argument(
        "--timeout-ms",
        type=int,
        help="Connect timeout in milliseconds (-1 = none)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        description="Batch tasks against a single IMAP folder",
    )
    add_common_args(parser)
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("remaining", help="Check whether matching messages remain")

    retrieve_parser = subparsers.add_parser("retrieve", help="Retrieve and list messages")
    retrieve_parser.add_argument(
        "--save-dir",
        type=Path,
        help="Write each retrieved message to <uid>.eml in this directory",
    )

    print_parser = subparsers.add_parser("print", help="Print each message")
    print_parser.add_argument("--headers-only", action="store_true", help="Print headers only")

    dump_parser = subparsers.add_parser("dump", help="Write each message to a file")
    dump_parser.add_argument("file", type=Path, help="Output file")
    dump_parser.add_argument("--headers-only", action="store_true", help="Write headers only")

    flag_parser = subparsers.add_parser("flag", help="Set or clear a flag on each message")
    flag_parser.add_argument("flag", help="Flag name (seen, flagged, ... or a custom keyword)")
    flag_parser.add_argument("--unset", action="store_true", help="Clear the flag instead of setting it")
    flag_parser.add_argument(
        "--only-if",
        nargs="+",
        default=[],
        metavar="FLAG",
        help="Only change messages that carry all of these flags",
    )

    return parser


def apply_cli_overrides(config: ExecutorConfig, args: argparse.Namespace) -> ExecutorConfig:
    """Apply command line overrides to the loaded configuration."""
    overrides = {}
    if getattr(args, "folder", None):
        overrides["folder"] = args.folder
    if getattr(args, "batch_size", None) is not None:
        overrides["batch_size"] = args.batch_size
    if getattr(args, "include_seen", None) is not None:
        overrides["retrieve_seen_messages"] = args.include_seen
    if getattr(args, "delete", None) is not None:
        overrides["delete_after_processing"] = args.delete
    if getattr(args, "timeout_ms", None) is not None:
        overrides["connection_timeout_ms"] = args.timeout_ms
    return replace(config, **overrides) if overrides else config


def remaining_cmd(executor: ImapFolderTaskExecutor) -> int:
    if executor.are_there_remaining_emails():
        print(f"Messages remain in {executor.config.folder}")
        return 0
    print(f"No messages remain in {executor.config.folder}")
    return 1


def retrieve_cmd(executor: ImapFolderTaskExecutor, save_dir: Path | None = None) -> int:
    messages = executor.retrieve_emails()

    print(f"{'UID':<8} {'From':<30} {'Subject':<50}")
    print("-" * 90)
    for message in messages:
        print(f"{message.uid:<8} {message.from_addr[:28]:<30} {message.subject[:48]:<50}")
        if save_dir is not None:
            save_dir.mkdir(parents=True, exist_ok=True)
            (save_dir / f"{message.uid}.eml").write_bytes(message.raw)
    print(f"\nTotal: {len(messages)} emails")
    return 0


def print_cmd(executor: ImapFolderTaskExecutor, headers_only: bool = False) -> int:
    executor.execute_for_each_email(PrintingEmailHandler(headers_only=headers_only))
    return 0


def dump_cmd(executor: ImapFolderTaskExecutor, path: Path, headers_only: bool = False) -> int:
    with PrintInFileEmailHandler(path, headers_only=headers_only) as handler:
        executor.execute_for_each_email(handler)
    logger.info(f"Wrote messages to {path}")
    return 0


def flag_cmd(
    executor: ImapFolderTaskExecutor,
    flag: str,
    value: bool = True,
    only_if: list[str] | None = None,
) -> int:
    """Change a flag on each message through a second connection."""
    config = executor.config
    flag_store = ImapMailbox(config)
    try:
        try:
            flag_store.connect()
        except (IMAPClientError, OSError) as e:
            raise MailboxConnectionError(f"Could not connect to {config.host}: {e}") from e
        if not flag_store.folder_exists(config.folder):
            raise ConfigurationError(f"Folder does not exist: {config.folder}")
        flag_store.select_folder(config.folder)
        handler = ChangeMessageFlagEmailHandler(flag_store, flag, value, only_if or ())
        executor.execute_for_each_email(handler)
    finally:
        if flag_store.connected:
            flag_store.disconnect()
    return 0


def run_command(executor: ImapFolderTaskExecutor, args: argparse.Namespace) -> int:
    if args.command == "remaining":
        return remaining_cmd(executor)
    if args.command == "retrieve":
        return retrieve_cmd(executor, getattr(args, "save_dir", None))
    if args.command == "print":
        return print_cmd(executor, args.headers_only)
    if args.command == "dump":
        return dump_cmd(executor, args.file, args.headers_only)
    if args.command == "flag":
        return flag_cmd(executor, args.flag, not args.unset, args.only_if)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Show help if no command specified
    if not args.command:
        parser.print_help()
        sys.exit(0)

    if not args.config.exists():
        logger.error(f"Configuration file not found: {args.config}")
        sys.exit(2)

    try:
        config = apply_cli_overrides(load_config(args.config), args)
        executor = ImapFolderTaskExecutor.from_config(config)
        sys.exit(run_command(executor, args))
    except (AggregateFailure, RollbackError) as e:
        logger.error(str(e))
        for failure in e.failures:
            logger.error(f"  {failure}")
        sys.exit(2)
    except TaskExecutorError as e:
        logger.error(str(e))
        sys.exit(2)


if __name__ == "__main__":
    main()
