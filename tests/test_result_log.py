"""!
@brief Tests for :mod:`install_orchestrator.result_log`.
@details Validates the line format, channel routing, error recording, and
append-only file persistence of :class:`ResultLogger`.
"""

from __future__ import annotations

import datetime as dt
import io
import re
import sys
from pathlib import Path
from typing import Dict, List

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from install_orchestrator.result_log import Channel, ColorHint, ResultLogger  # noqa: E402

_FIXED = dt.datetime(2024, 5, 1, 13, 45, 9)
_LINE = re.compile(r"^Error: \[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] : Done$")


class _StubLogger:
    """!
    @brief Lightweight logger capturing calls by level.
    """

    def __init__(self) -> None:
        self.records: List[tuple[str, str, Dict[str, object]]] = []

    def _record(self, level: str, message: str, args: tuple[object, ...], kwargs: Dict[str, object]) -> None:
        text = message % args if args else message
        self.records.append((level, text, dict(kwargs)))

    def debug(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("debug", message, args, kwargs)

    def info(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("info", message, args, kwargs)

    def warning(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("warning", message, args, kwargs)

    def error(self, message: str, *args: object, **kwargs: object) -> None:
        self._record("error", message, args, kwargs)


class _TtyStream(io.StringIO):
    def isatty(self) -> bool:
        return True


def _make_logger(destination: Path | None = None, **kwargs: object) -> tuple[ResultLogger, _StubLogger, _StubLogger]:
    human = _StubLogger()
    machine = _StubLogger()
    kwargs.setdefault("host_stream", io.StringIO())
    kwargs.setdefault("stdout_stream", io.StringIO())
    logger = ResultLogger(
        destination,
        clock=lambda: _FIXED,
        human_logger=human,  # type: ignore[arg-type]
        machine_logger=machine,  # type: ignore[arg-type]
        **kwargs,  # type: ignore[arg-type]
    )
    return logger, human, machine


def test_error_line_appends_without_truncating(tmp_path: Path) -> None:
    """!
    @brief An error entry is appended after existing content.
    """

    target = tmp_path / "x.log"
    target.write_text("previous line\n", encoding="utf-8")
    logger, _, _ = _make_logger()

    logger.log("Done", Channel.ERROR, target)

    lines = target.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "previous line"
    assert _LINE.match(lines[1])
    assert lines[1] == "Error: [2024-05-01 13:45:09] : Done"


def test_constructor_destination_is_used_and_created(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "ops.log"
    logger, _, _ = _make_logger(target)

    logger.log("first", Channel.HOST)
    logger.log("second", Channel.WARNING)

    assert target.read_text(encoding="utf-8").splitlines() == [
        "Host: [2024-05-01 13:45:09] : first",
        "Warning: [2024-05-01 13:45:09] : second",
    ]


def test_console_only_without_destination(tmp_path: Path) -> None:
    host = io.StringIO()
    logger, _, machine = _make_logger(host_stream=host)

    entry = logger.log("hello", Channel.HOST)

    assert host.getvalue() == "Host: [2024-05-01 13:45:09] : hello\n"
    assert entry.format() == "Host: [2024-05-01 13:45:09] : hello"
    assert not list(tmp_path.iterdir())
    assert machine.records[-1][2]["extra"]["destination"] is None


def test_stdout_channel_emits_raw_text_only() -> None:
    stdout = io.StringIO()
    host = io.StringIO()
    logger, _, _ = _make_logger(stdout_stream=stdout, host_stream=host)

    logger.log("SUCCESS", Channel.STDOUT)

    assert stdout.getvalue() == "SUCCESS\n"
    assert host.getvalue() == ""


def test_channels_route_to_human_logger() -> None:
    logger, human, _ = _make_logger()

    logger.verbose("diag")
    logger.warning("careful")
    logger.error("broken")

    assert [(level, text) for level, text, _ in human.records] == [
        ("debug", "Verbose: [2024-05-01 13:45:09] : diag"),
        ("warning", "Warning: [2024-05-01 13:45:09] : careful"),
        ("error", "Error: [2024-05-01 13:45:09] : broken"),
    ]


def test_error_is_recorded_not_raised() -> None:
    logger, _, _ = _make_logger()
    assert not logger.has_errors

    logger.log("first failure", Channel.ERROR)
    logger.log("just a warning", Channel.WARNING)

    assert logger.has_errors
    assert [entry.text for entry in logger.errors] == ["first failure"]


def test_host_color_only_on_terminals() -> None:
    plain = io.StringIO()
    logger, _, _ = _make_logger(host_stream=plain)
    logger.host("ok", color=ColorHint.GREEN)
    assert "\033[" not in plain.getvalue()

    tty = _TtyStream()
    logger, _, _ = _make_logger(host_stream=tty)
    logger.host("ok", color=ColorHint.GREEN)
    assert tty.getvalue().startswith("\033[32mHost:")

    tty = _TtyStream()
    logger, _, _ = _make_logger(host_stream=tty, use_color=False)
    logger.host("ok", color=ColorHint.GREEN)
    assert "\033[" not in tty.getvalue()


def test_sequential_appends_preserve_order(tmp_path: Path) -> None:
    target = tmp_path / "order.log"
    logger, _, _ = _make_logger(target)

    for index in range(5):
        logger.log(f"step {index}", Channel.VERBOSE)

    texts = [line.rsplit(" : ", 1)[1] for line in target.read_text(encoding="utf-8").splitlines()]
    assert texts == [f"step {index}" for index in range(5)]


def test_write_failure_is_recorded_once(tmp_path: Path) -> None:
    blocked = tmp_path / "is-a-directory"
    blocked.mkdir()
    logger, human, _ = _make_logger(blocked)

    logger.log("one", Channel.HOST)
    logger.log("two", Channel.HOST)

    assert len(logger.write_failures) == 2
    assert sum(1 for level, _, _ in human.records if level == "error") == 1
    assert not logger.has_errors


def test_quiet_suppresses_host_console_but_keeps_file(tmp_path: Path) -> None:
    """!
    @brief Quiet mode drops host lines from the console only.
    """

    host = io.StringIO()
    target = tmp_path / "quiet.log"
    logger, human, _ = _make_logger(target, host_stream=host, quiet=True)

    logger.host("installed")
    logger.warning("careful")

    assert host.getvalue() == ""
    assert target.read_text(encoding="utf-8").splitlines()[0] == "Host: [2024-05-01 13:45:09] : installed"
    assert human.records == [("warning", "Warning: [2024-05-01 13:45:09] : careful", {})]
