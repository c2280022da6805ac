"""Application entry point for the `cw` command."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from rich.console import Console

from cwlogs import __version__, settings
from cwlogs.adapters.editor import query_from_editor, read_query_file
from cwlogs.adapters.event_formatting import build_formatter
from cwlogs.adapters.sqlite_storage import SQLiteHistoryStore
from cwlogs.client import build_client
from cwlogs.core.config import OutputFormat, OutputOptions, TailOptions
from cwlogs.core.errors import InvalidTimeExpression
from cwlogs.core.listing import iter_log_groups, iter_log_streams
from cwlogs.core.query import list_history, run_query
from cwlogs.core.source_refs import parse_source_refs
from cwlogs.core.tail import run_tail
from cwlogs.core.time_utils import default_start_time_ms, parse_human_time
from cwlogs.core.writer import OutputWriter

NAME = "CW"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)

DEFAULT_REDACT_PATTERNS = ["AWS_SECRET_ACCESS_KEY", "AWS_SESSION_TOKEN"]

_VERBOSITY_LEVELS = {
    1: logging.ERROR,
    2: logging.WARNING,
    3: logging.INFO,
}


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    values = []
    for name in redact_cfg.get("patterns", DEFAULT_REDACT_PATTERNS):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _log_level(verbose: int, config: dict) -> Optional[int]:
    """-v flags win over the config file; neither means logging stays off."""

    if verbose:
        return _VERBOSITY_LEVELS.get(verbose, logging.DEBUG)
    level_name = config.get("level")
    if not level_name:
        return None
    return getattr(logging, str(level_name).upper(), logging.INFO)


def _configure_logging(verbose: int = 0) -> None:
    config = settings.LOGGING or {}
    level = _log_level(verbose, config)
    if level is None:
        return

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    # stdout carries events and query rows, so console logs go to stderr.
    if config.get("console", False):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", True):
        path = file_cfg.get("path") or settings.LOG_PATH
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # botocore is chatty below WARNING and may log request details.
    logging.getLogger("botocore").setLevel(max(level, logging.WARNING))


def _time_arg(value: str) -> int:
    try:
        return parse_human_time(value)
    except InvalidTimeExpression as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _stdout_supports_color() -> bool:
    if os.getenv("NO_COLOR"):
        return False
    return sys.stdout.isatty()


def _open_store() -> SQLiteHistoryStore:
    store = SQLiteHistoryStore(settings.DB_PATH)
    store.init_db()
    return store


def _tail(args: argparse.Namespace) -> int:
    refs = parse_source_refs(args.groups)
    options = TailOptions(
        start_time_ms=args.start_time if args.start_time is not None else default_start_time_ms(),
        end_time_ms=args.end_time,
        filter_pattern=args.filter,
        follow=args.follow,
        channel_capacity=settings.CHANNEL_CAPACITY,
    )
    output = OutputOptions(
        format=OutputFormat(args.output),
        with_timestamp=args.timestamp,
        with_source_name=args.group_name,
        with_substream_name=args.stream_name,
        with_event_id=args.event_id,
        use_local_time=args.local,
        use_colors=_stdout_supports_color(),
    )
    writer = OutputWriter(build_formatter(output))
    client = build_client(args.profile, args.region)

    LOGGER.info("Tailing %s source(s), follow=%s", len(refs), options.follow)
    asyncio.run(run_tail(client, refs, options, writer))
    return 0


def _query(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    store = _open_store()

    if args.target == "history":
        rows = asyncio.run(list_history(store))
        if args.tui:
            from cwlogs.frontend.history_app import HistoryApp

            HistoryApp(rows, db_path=store.db_path).run()
            return 0
        for item in rows:
            print(f"{item.query_id} | {item.contents}")
        return 0

    if not args.groups:
        parser.error("the following arguments are required: -g/--group-name")

    query_text = read_query_file(args.target) if args.target else query_from_editor()
    client = build_client(args.profile, args.region)
    history = asyncio.run(
        run_query(client, store, query_text, args.groups, args.start_time, args.end_time)
    )
    if not history.status.is_terminal:
        Console(stderr=True, highlight=False).print(
            f"Query {history.query_id} stopped in an indeterminate state ({history.status}); "
            f"see {settings.LOG_PATH} for details.",
            markup=False,
        )
    return 0


async def _print_groups(client, pattern: Optional[str]) -> None:
    async for group in iter_log_groups(client, pattern):
        print(group.name)


async def _print_streams(client, group_name: str, show_expired: bool) -> None:
    async for stream in iter_log_streams(client, group_name, show_expired=show_expired):
        print(stream.name)


def _ls(args: argparse.Namespace) -> int:
    client = build_client(args.profile, args.region)
    if args.ls_command == "groups":
        asyncio.run(_print_groups(client, args.pattern))
    else:
        asyncio.run(_print_streams(client, args.group_name, args.show_expired))
    return 0


def _info(args: argparse.Namespace) -> int:
    _print_banner()
    store = _open_store()
    version = asyncio.run(store.version())

    print(f"Version:        {__version__}")
    print(f"Database:       {store.engine}-{version}")
    print(f"Database Path:  {store.db_path}")
    print(f"Logs:           {settings.LOG_PATH}")
    print(f"Config:         {settings.CONFIG_PATH}")
    return 0


def _root_cause(exc: BaseException) -> BaseException:
    root = exc
    while root.__cause__ is not None:
        root = root.__cause__
    return root


def _report_error(exc: BaseException) -> None:
    console = Console(stderr=True, highlight=False)
    console.print(f"Error: {exc}", style="red", markup=False)
    cause = _root_cause(exc)
    if cause is exc:
        return
    console.print("")
    console.print("Caused by:", style="red")
    console.print(f"  {cause}", style="red", markup=False)


def _global_options() -> argparse.ArgumentParser:
    """Options accepted both before and after any subcommand.

    Unset options are left off the namespace so a subcommand never resets a
    value given before it; the root parser supplies the defaults.
    """

    common = argparse.ArgumentParser(add_help=False, argument_default=argparse.SUPPRESS)
    common.add_argument(
        "--profile",
        help="The AWS profile to use. Defaults to the AWS_PROFILE environment variable.",
    )
    common.add_argument(
        "--region",
        help="The AWS region to use. Defaults to AWS_REGION or the region of the profile.",
    )
    common.add_argument(
        "-v",
        "--verbose",
        action="count",
        help="Write log messages to the log file; repeat for more detail.",
    )
    return common


def _build_parser() -> argparse.ArgumentParser:
    common = _global_options()
    parser = argparse.ArgumentParser(
        prog="cw",
        description="Swiss army knife to query CloudWatch logs from the CLI.",
        parents=[common],
    )
    parser.set_defaults(profile=None, region=None, verbose=0)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    tail = subparsers.add_parser(
        "tail",
        parents=[common],
        help="Print or follow the events of one or more log groups",
    )
    tail.add_argument("groups", metavar="groupName[:logStreamPrefix][,...]")
    tail.add_argument(
        "-s",
        "--start-time",
        type=_time_arg,
        help="The UTC start time, as a date/time or a duration ago (e.g. 15m). Defaults to 30s ago.",
    )
    tail.add_argument(
        "-e",
        "--end-time",
        type=_time_arg,
        help="The UTC end time, as a date/time or a duration ago.",
    )
    tail.add_argument("-f", "--follow", action="store_true", help="Tail or continue following the logs.")
    tail.add_argument(
        "-g",
        "--filter",
        "--grep",
        dest="filter",
        help="Pattern to filter logs by, in CloudWatch filter pattern syntax.",
    )
    tail.add_argument("-t", "--timestamp", action="store_true", help="Print the event timestamp.")
    tail.add_argument("-i", "--event-id", action="store_true", help="Print the event id.")
    tail.add_argument(
        "--stream-name",
        action="store_true",
        help="Print the log stream name that this event belongs to.",
    )
    tail.add_argument(
        "--group-name",
        action="store_true",
        help="Print the log group name that this event belongs to.",
    )
    tail.add_argument(
        "-o",
        "--output",
        choices=[fmt.value for fmt in OutputFormat],
        default=OutputFormat.TEXT.value,
    )
    tail.add_argument("-l", "--local", action="store_true", help="Treat date and time in local timezone.")

    query = subparsers.add_parser(
        "query",
        parents=[common],
        help="Run a Logs Insights query, or show the query history ('query history')",
    )
    query.add_argument(
        "target",
        nargs="?",
        metavar="FILE|history",
        help="File with the query text. Opens $EDITOR when omitted.",
    )
    query.add_argument("-g", "--group-name", dest="groups", action="append", default=[])
    query.add_argument("-s", "--start-time", type=_time_arg)
    query.add_argument("-e", "--end-time", type=_time_arg)
    query.add_argument("--tui", action="store_true", help="Browse the history in a terminal UI.")

    ls = subparsers.add_parser("ls", parents=[common], help="List log groups or log streams")
    ls_commands = ls.add_subparsers(dest="ls_command", required=True)
    groups = ls_commands.add_parser("groups", parents=[common], help="List log groups")
    groups.add_argument("pattern", nargs="?", help="Only groups whose name contains this pattern.")
    streams = ls_commands.add_parser("streams", parents=[common], help="List the streams of a log group")
    streams.add_argument("group_name")
    streams.add_argument(
        "-s",
        "--show-expired",
        action="store_true",
        help="Also show streams whose last event is older than the group's retention.",
    )

    subparsers.add_parser("info", parents=[common], help="Show version and file locations")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 2

    _configure_logging(args.verbose)
    LOGGER.info("cw starting up")
    LOGGER.info("Running command %s", args.command)

    try:
        if args.command == "tail":
            return _tail(args)
        if args.command == "query":
            return _query(args, parser)
        if args.command == "ls":
            return _ls(args)
        return _info(args)
    except KeyboardInterrupt:
        return 130
    except Exception as exc:
        LOGGER.exception("Failed running command %s", args.command)
        _report_error(exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
