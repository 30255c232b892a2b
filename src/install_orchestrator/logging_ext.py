"""!
@brief Structured logging helpers for Install Orchestrator.
@details Implements a dual-stream pipeline: a human-readable logger backed by
a rotating text file (plus an optional console handler) and a machine logger
emitting JSONL telemetry. Startup metadata sourced from
:mod:`install_orchestrator.version` is recorded so automation can correlate
log bundles across runs.
"""
from __future__ import annotations

import datetime as _dt
import json
import logging
import sys
import uuid
from logging import handlers
from pathlib import Path
from typing import Dict, Iterable, Mapping, TextIO, Tuple

from . import version

HUMAN_LOGGER_NAME = "install_orchestrator.human"
"""!
@brief Logger name for human-readable output.
"""

MACHINE_LOGGER_NAME = "install_orchestrator.machine"
"""!
@brief Logger name for JSONL telemetry output.
"""

HUMAN_LOG_FILENAME = "install-orchestrator.log"
MACHINE_LOG_FILENAME = "install-orchestrator.jsonl"

_STANDARD_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "asctime",
        "channel",
    }
)

_RUN_METADATA: Dict[str, object] | None = None


class _ChannelFilter(logging.Filter):
    """!
    @brief Inject a fixed ``channel`` attribute on log records.
    """

    def __init__(self, channel: str) -> None:
        super().__init__()
        self._channel = channel

    def filter(self, record: logging.LogRecord) -> bool:
        record.channel = self._channel
        return True


class _JsonLineFormatter(logging.Formatter):
    """!
    @brief Format ``LogRecord`` instances as single-line JSON objects.
    @details Standard metadata (timestamp, level, logger, message) is merged
    with any ``extra`` attributes supplied by callers. Values that are not
    JSON serializable are coerced to their ``repr``.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - concise override
        moment = _dt.datetime.fromtimestamp(record.created, tz=_dt.timezone.utc)
        payload: Dict[str, object] = {
            "timestamp": moment.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "channel": getattr(record, "channel", "machine"),
        }
        payload.update(_extract_extras(record))
        try:
            return json.dumps(payload, ensure_ascii=False)
        except TypeError:
            sanitized = {key: _coerce_json(value) for key, value in payload.items()}
            return json.dumps(sanitized, ensure_ascii=False)


def _extract_extras(record: logging.LogRecord) -> Dict[str, object]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_RECORD_KEYS
    }


def _coerce_json(value: object) -> object:
    try:
        json.dumps(value)
    except TypeError:
        return repr(value)
    return value


def _configure_logger(
    logger: logging.Logger,
    formatter: logging.Formatter,
    handlers_to_add: Iterable[logging.Handler],
) -> None:
    """!
    @brief Reset a logger and attach the supplied handlers.
    """

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for flt in list(logger.filters):
        logger.removeFilter(flt)
    for handler in handlers_to_add:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False


def setup_logging(
    root_dir: Path | None,
    *,
    json_to_stdout: bool = False,
    console: TextIO | None = None,
    level: int = logging.INFO,
) -> Tuple[logging.Logger, logging.Logger]:
    """!
    @brief Set up the human and machine loggers.
    @details When ``root_dir`` is given it is created and rotating files are
    attached for both streams. ``console`` mirrors human records to a text
    stream (typically ``sys.stderr``); ``json_to_stdout`` mirrors telemetry to
    standard output.
    @returns Tuple of ``(human_logger, machine_logger)``.
    """

    human_logger = logging.getLogger(HUMAN_LOGGER_NAME)
    machine_logger = logging.getLogger(MACHINE_LOGGER_NAME)
    human_logger.setLevel(level)
    machine_logger.setLevel(level)

    human_formatter = logging.Formatter(
        "%(asctime)s %(levelname)-8s [%(channel)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    machine_formatter = _JsonLineFormatter()

    human_handlers: list[logging.Handler] = []
    machine_handlers: list[logging.Handler] = []

    if root_dir is not None:
        root_dir.mkdir(parents=True, exist_ok=True)
        human_handlers.append(
            handlers.RotatingFileHandler(
                root_dir / HUMAN_LOG_FILENAME,
                maxBytes=1_048_576,
                backupCount=5,
                encoding="utf-8",
            )
        )
        machine_handlers.append(
            handlers.RotatingFileHandler(
                root_dir / MACHINE_LOG_FILENAME,
                maxBytes=1_048_576,
                backupCount=5,
                encoding="utf-8",
            )
        )
    if console is not None:
        human_handlers.append(logging.StreamHandler(stream=console))
    if json_to_stdout:
        machine_handlers.append(logging.StreamHandler(stream=sys.stdout))
    if not machine_handlers:
        machine_handlers.append(logging.NullHandler())

    _configure_logger(human_logger, human_formatter, human_handlers)
    _configure_logger(machine_logger, machine_formatter, machine_handlers)

    human_logger.addFilter(_ChannelFilter("human"))
    machine_logger.addFilter(_ChannelFilter("machine"))

    _emit_run_metadata(human_logger, machine_logger, root_dir)

    return human_logger, machine_logger


def get_human_logger() -> logging.Logger:
    """!
    @brief Retrieve the configured human-readable logger.
    """

    return logging.getLogger(HUMAN_LOGGER_NAME)


def get_machine_logger() -> logging.Logger:
    """!
    @brief Retrieve the configured machine/JSON logger.
    """

    return logging.getLogger(MACHINE_LOGGER_NAME)


def get_run_metadata() -> Mapping[str, object] | None:
    """!
    @brief Return the metadata recorded by the most recent :func:`setup_logging`.
    @details Contains ``run_id`` (UUID4 hex), an ISO-8601 UTC ``timestamp``,
    the version/build identifiers, and the log directory if any.
    """

    return dict(_RUN_METADATA) if _RUN_METADATA is not None else None


def _emit_run_metadata(
    human_logger: logging.Logger,
    machine_logger: logging.Logger,
    root_dir: Path | None,
) -> None:
    global _RUN_METADATA

    moment = _dt.datetime.now(tz=_dt.timezone.utc)
    _RUN_METADATA = {
        "run_id": uuid.uuid4().hex,
        "timestamp": moment.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "version": version.__version__,
        "build": version.__build__,
        "python": sys.version.split()[0],
        "logdir": str(root_dir) if root_dir is not None else None,
    }

    human_logger.debug(
        "Install Orchestrator %s (%s) starting, run %s",
        version.__version__,
        version.__build__,
        _RUN_METADATA["run_id"],
    )
    if root_dir is not None:
        human_logger.debug("Logs directory: %s", root_dir)

    machine_logger.info("run_start", extra={"event": "run_start", "run": dict(_RUN_METADATA)})


__all__ = [
    "HUMAN_LOGGER_NAME",
    "HUMAN_LOG_FILENAME",
    "MACHINE_LOGGER_NAME",
    "MACHINE_LOG_FILENAME",
    "get_human_logger",
    "get_machine_logger",
    "get_run_metadata",
    "setup_logging",
]
