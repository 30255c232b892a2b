"""!
@brief Channel-tagged result logging for installer operations.
@details :class:`ResultLogger` formats every message as
``"<Channel>: [<timestamp>] : <text>"``, dispatches it to the sink bound to
its :class:`Channel`, and optionally appends the formatted line to a log
file. Sinks are chosen once at construction; the log destination is an
explicit constructor value (``None`` means console only).
"""
from __future__ import annotations

import datetime as _dt
import enum
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, TextIO

from . import logging_ext
from .errors import LogWriteError

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class Channel(enum.Enum):
    """!
    @brief Output channels a result message can be routed to.
    """

    VERBOSE = "Verbose"
    HOST = "Host"
    STDOUT = "StdOut"
    WARNING = "Warning"
    ERROR = "Error"


class ColorHint(enum.Enum):
    """!
    @brief Console colours available to the host channel.
    """

    GREEN = "32"
    YELLOW = "33"
    RED = "31"
    CYAN = "36"
    MAGENTA = "35"
    WHITE = "37"


@dataclass(frozen=True)
class LogEntry:
    """!
    @brief One formatted log message.
    """

    timestamp: _dt.datetime
    channel: Channel
    text: str
    color: ColorHint | None = None

    def format(self) -> str:
        stamp = self.timestamp.strftime(TIMESTAMP_FORMAT)
        return f"{self.channel.value}: [{stamp}] : {self.text}"


class ResultLogger:
    """!
    @brief Format, route, and persist operation messages.
    @details ``ERROR`` entries are recorded in :attr:`errors` so the invoking
    context can report them; logging an error never terminates anything.
    Append failures are kept in :attr:`write_failures` and reported once on
    the human logger instead of interrupting the operation being logged.
    With ``quiet`` set the host channel is not echoed to the console; its
    lines still reach the log file and the machine log.
    """

    def __init__(
        self,
        destination: Path | str | None = None,
        *,
        host_stream: TextIO | None = None,
        stdout_stream: TextIO | None = None,
        use_color: bool = True,
        quiet: bool = False,
        clock: Callable[[], _dt.datetime] | None = None,
        human_logger: logging.Logger | None = None,
        machine_logger: logging.Logger | None = None,
    ) -> None:
        self.destination = Path(destination) if destination else None
        self._host_stream = host_stream
        self._stdout_stream = stdout_stream
        self._use_color = use_color
        self._quiet = quiet
        self._clock = clock or _dt.datetime.now
        self._human = human_logger or logging_ext.get_human_logger()
        self._machine = machine_logger or logging_ext.get_machine_logger()
        self.errors: List[LogEntry] = []
        self.write_failures: List[LogWriteError] = []
        self._sinks: Dict[Channel, Callable[[LogEntry], None]] = {
            Channel.VERBOSE: self._to_verbose,
            Channel.HOST: self._to_host,
            Channel.STDOUT: self._to_stdout,
            Channel.WARNING: self._to_warning,
            Channel.ERROR: self._to_error,
        }

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def log(
        self,
        message: str,
        channel: Channel = Channel.HOST,
        destination: Path | str | None = None,
        color: ColorHint | None = None,
    ) -> LogEntry:
        """!
        @brief Format ``message`` and write it to its channel and log file.
        @param message Text to record.
        @param channel Routing channel.
        @param destination Log file overriding the constructor destination.
        @param color Optional colour for the host channel.
        @returns The :class:`LogEntry` that was written.
        """

        entry = LogEntry(timestamp=self._clock(), channel=channel, text=str(message), color=color)
        self._sinks[channel](entry)

        target = Path(destination) if destination else self.destination
        if target is not None:
            self._append(target, entry)

        self._machine.info(
            "log_entry",
            extra={
                "event": "log_entry",
                "log_channel": channel.value,
                "text": entry.text,
                "destination": str(target) if target is not None else None,
            },
        )
        return entry

    def verbose(self, message: str) -> LogEntry:
        return self.log(message, Channel.VERBOSE)

    def host(self, message: str, color: ColorHint | None = None) -> LogEntry:
        return self.log(message, Channel.HOST, color=color)

    def warning(self, message: str) -> LogEntry:
        return self.log(message, Channel.WARNING)

    def error(self, message: str) -> LogEntry:
        return self.log(message, Channel.ERROR)

    def _append(self, target: Path, entry: LogEntry) -> None:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("a", encoding="utf-8") as handle:
                handle.write(entry.format() + "\n")
        except OSError as exc:
            failure = LogWriteError(str(target), str(exc))
            if not any(item.destination == failure.destination for item in self.write_failures):
                self._human.error("%s", failure)
            self.write_failures.append(failure)

    def _to_verbose(self, entry: LogEntry) -> None:
        self._human.debug("%s", entry.format())

    def _to_host(self, entry: LogEntry) -> None:
        if self._quiet:
            return
        stream = self._host_stream or sys.stderr
        line = entry.format()
        if entry.color is not None and self._use_color and _is_tty(stream):
            line = f"\033[{entry.color.value}m{line}\033[0m"
        stream.write(line + "\n")
        stream.flush()

    def _to_stdout(self, entry: LogEntry) -> None:
        stream = self._stdout_stream or sys.stdout
        stream.write(entry.text + "\n")
        stream.flush()

    def _to_warning(self, entry: LogEntry) -> None:
        self._human.warning("%s", entry.format())

    def _to_error(self, entry: LogEntry) -> None:
        self._human.error("%s", entry.format())
        self.errors.append(entry)


def _is_tty(stream: TextIO) -> bool:
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty and isatty())
    except ValueError:
        return False


__all__ = [
    "Channel",
    "ColorHint",
    "LogEntry",
    "ResultLogger",
    "TIMESTAMP_FORMAT",
]
