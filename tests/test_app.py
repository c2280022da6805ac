from __future__ import annotations

import asyncio
import logging

import pytest

from cwlogs import app, settings
from cwlogs.adapters.sqlite_storage import SQLiteHistoryStore
from cwlogs.core.config import OutputFormat
from cwlogs.core.models import QueryHistory


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DB_PATH", str(tmp_path / "db.sqlite3"))
    monkeypatch.setattr(settings, "LOG_PATH", str(tmp_path / "cw.log"))
    monkeypatch.setattr(settings, "LOGGING", {})


def _fail_build_client(*args, **kwargs):
    raise AssertionError("no AWS client should be created")


def test_no_command_prints_help() -> None:
    assert app.main([]) == 2


def test_tail_arguments_are_parsed() -> None:
    args = app._build_parser().parse_args(
        ["tail", "app:web,api", "-f", "--grep", "ERROR", "-t", "--group-name", "-o", "json", "-s", "2024-01-01T00:00:00Z"]
    )

    assert args.groups == "app:web,api"
    assert args.follow
    assert args.filter == "ERROR"
    assert args.timestamp and args.group_name and not args.stream_name
    assert OutputFormat(args.output) is OutputFormat.JSON
    assert args.start_time == 1_704_067_200_000


def test_invalid_time_is_a_usage_error() -> None:
    with pytest.raises(SystemExit) as excinfo:
        app.main(["tail", "app", "-s", "the day before"])
    assert excinfo.value.code == 2


def test_end_time_with_follow_is_reported(monkeypatch, capsys) -> None:
    monkeypatch.setattr(app, "build_client", _fail_build_client)

    assert app.main(["tail", "app", "-e", "2024-01-01", "-f"]) == 1
    assert "You can not use --end-time together with --follow!" in capsys.readouterr().err


def test_empty_group_name_is_reported(monkeypatch, capsys) -> None:
    monkeypatch.setattr(app, "build_client", _fail_build_client)

    assert app.main(["tail", ":prefix"]) == 1
    err = capsys.readouterr().err
    assert "Error:" in err
    assert "group name cannot be empty" in err


def test_tail_wires_refs_and_options(monkeypatch) -> None:
    seen = {}

    async def fake_run_tail(client, refs, options, writer):
        seen.update(client=client, refs=refs, options=options)

    monkeypatch.setattr(app, "build_client", lambda profile, region: "client")
    monkeypatch.setattr(app, "run_tail", fake_run_tail)

    assert app.main(["--region", "eu-west-1", "tail", "a,b:web", "-g", "ERROR"]) == 0
    assert seen["client"] == "client"
    assert [(ref.name, ref.substream_prefix) for ref in seen["refs"]] == [("a", None), ("b", "web")]
    assert seen["options"].filter_pattern == "ERROR"
    assert not seen["options"].follow


def test_keyboard_interrupt_exits_130(monkeypatch) -> None:
    def interrupted(*args, **kwargs):
        raise KeyboardInterrupt

    monkeypatch.setattr(app, "build_client", interrupted)
    assert app.main(["ls", "groups"]) == 130


def test_query_requires_a_group(monkeypatch) -> None:
    monkeypatch.setattr(app, "build_client", _fail_build_client)

    with pytest.raises(SystemExit) as excinfo:
        app.main(["query", "query.lq"])
    assert excinfo.value.code == 2


def test_query_history_lists_saved_queries(capsys) -> None:
    store = SQLiteHistoryStore(settings.DB_PATH)
    store.init_db()
    asyncio.run(store.save(QueryHistory(query_id="q-1", contents="fields @message")))

    assert app.main(["query", "history"]) == 0
    assert capsys.readouterr().out == "q-1 | fields @message\n"


def test_redacting_formatter_masks_secrets(monkeypatch) -> None:
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "s3cr3t")
    secrets = app._collect_redaction_values({})
    formatter = app._RedactingFormatter(secrets, fmt="%(message)s")
    record = logging.LogRecord("cwlogs", logging.INFO, __file__, 1, "key=%s", ("s3cr3t",), None)

    assert formatter.format(record) == "key=***"


def test_redaction_can_be_disabled(monkeypatch) -> None:
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "s3cr3t")
    assert app._collect_redaction_values({"redact": {"enabled": False}}) == []


@pytest.mark.parametrize(
    ("verbose", "config", "expected"),
    [
        (0, {}, None),
        (1, {}, logging.ERROR),
        (2, {}, logging.WARNING),
        (3, {}, logging.INFO),
        (4, {}, logging.DEBUG),
        (7, {}, logging.DEBUG),
        (0, {"level": "debug"}, logging.DEBUG),
        (1, {"level": "debug"}, logging.ERROR),
    ],
)
def test_log_level(verbose: int, config: dict, expected) -> None:
    assert app._log_level(verbose, config) == expected


@pytest.mark.parametrize(
    ("argv", "expected"),
    [
        (["tail", "app", "--profile", "dev"], {"profile": "dev", "region": None, "verbose": 0}),
        (["query", "history", "--region", "eu-west-1"], {"profile": None, "region": "eu-west-1", "verbose": 0}),
        (["ls", "groups", "-vvv"], {"profile": None, "region": None, "verbose": 3}),
        (["ls", "streams", "app", "--profile", "dev", "-v"], {"profile": "dev", "region": None, "verbose": 1}),
        (["info", "--region", "us-east-1"], {"profile": None, "region": "us-east-1", "verbose": 0}),
    ],
)
def test_global_options_after_subcommand(argv: list[str], expected: dict) -> None:
    args = app._build_parser().parse_args(argv)
    assert {key: getattr(args, key) for key in expected} == expected


def test_global_options_before_subcommand_survive() -> None:
    args = app._build_parser().parse_args(["--profile", "dev", "-vv", "--region", "eu-west-1", "tail", "app"])

    assert (args.profile, args.region, args.verbose) == ("dev", "eu-west-1", 2)


def test_error_without_cause_is_reported_once(capsys) -> None:
    app._report_error(ValueError("bad input"))

    err = capsys.readouterr().err
    assert "Error: bad input" in err
    assert "Caused by:" not in err


def test_error_with_cause_reports_root_cause(capsys) -> None:
    try:
        try:
            raise ConnectionResetError("connection reset by peer")
        except ConnectionResetError as exc:
            raise RuntimeError("Failed to fetch CloudWatch logs.") from exc
    except RuntimeError as error:
        app._report_error(error)

    err = capsys.readouterr().err
    assert "Error: Failed to fetch CloudWatch logs." in err
    assert "Caused by:" in err
    assert "connection reset by peer" in err
