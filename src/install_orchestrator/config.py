"""!
@brief Runtime configuration for installer orchestration.
@details :class:`OrchestratorConfig` is built once at startup and passed to the
orchestrator explicitly. Values are resolved with the following precedence
(highest first):

1. Command-line arguments explicitly specified
2. JSON configuration file values (``--config``)
3. Built-in defaults

JSON keys use hyphens (``log-file``) where the CLI namespace uses underscores.
"""

from __future__ import annotations

import argparse
import json
import pathlib
from dataclasses import dataclass, field
from typing import Any, Mapping, Tuple

from . import constants
from .errors import ConfigError
from .exit_codes import (
    BUSY_RETRY_OVERRIDES,
    DEFAULT_TABLE,
    Classification,
    ClassificationTable,
    parse_classification,
)


@dataclass(frozen=True)
class OrchestratorConfig:
    """!
    @brief Immutable settings shared by one orchestration run.
    """

    installer: str = constants.DEFAULT_INSTALLER
    log_destination: pathlib.Path | None = None
    logdir: pathlib.Path | None = None
    classification_overrides: Mapping[int, Classification] = field(default_factory=dict)
    busy_retryable: bool = False
    timeout: float | None = None
    dry_run: bool = False
    installer_log_dir: pathlib.Path | None = None
    report_malformed: bool = False
    retries: int = 0
    retry_delay: float = 5.0
    close_processes: Tuple[str, ...] = ()
    use_color: bool = True

    def classification_table(self) -> ClassificationTable:
        """!
        @brief Default table overlaid with the busy policy and caller overrides.
        """

        table = DEFAULT_TABLE
        if self.busy_retryable:
            table = table.with_overrides(BUSY_RETRY_OVERRIDES)
        if self.classification_overrides:
            table = table.with_overrides(self.classification_overrides)
        return table


def parse_success_code(token: str) -> Tuple[int, Classification]:
    """!
    @brief Parse ``CODE`` or ``CODE=CLASSIFICATION``; a bare code means success.
    @throws ConfigError When the code or classification is not recognised.
    """

    text = str(token).strip()
    code_text, sep, label = text.partition("=")
    try:
        code = int(code_text.strip())
    except ValueError as exc:
        raise ConfigError(f"Exit code override must start with an integer: {token!r}") from exc
    if not sep:
        return code, Classification.SUCCESS
    try:
        return code, parse_classification(label)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def _parse_overrides(raw: object) -> dict[int, Classification]:
    """!
    @brief Accept a JSON list of codes/``CODE=CLASS`` strings or a code → class object.
    """

    overrides: dict[int, Classification] = {}
    if raw is None:
        return overrides
    if isinstance(raw, Mapping):
        for code, label in raw.items():
            parsed_code, classification = parse_success_code(f"{code}={label}")
            overrides[parsed_code] = classification
        return overrides
    if isinstance(raw, (list, tuple)):
        for item in raw:
            parsed_code, classification = parse_success_code(str(item))
            overrides[parsed_code] = classification
        return overrides
    raise ConfigError("success-codes must be a list or an object")


def load_config_file(config_path: str | pathlib.Path | None) -> dict[str, object]:
    """!
    @brief Load and parse a JSON configuration file.
    @param config_path Path to the JSON file, or ``None`` to skip.
    @returns Dictionary of configuration options, empty if no file specified.
    @throws ConfigError If the file cannot be read or does not hold an object.
    """

    if not config_path:
        return {}

    path = pathlib.Path(config_path).expanduser().resolve()
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, encoding="utf-8") as handle:
            config = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in configuration file: {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file: {path}: {exc}") from exc

    if not isinstance(config, dict):
        raise ConfigError(f"Configuration file must contain a JSON object: {path}")
    return config


def _optional_path(value: object) -> pathlib.Path | None:
    if value in (None, ""):
        return None
    return pathlib.Path(str(value)).expanduser()


def _as_float(name: str, value: object) -> float | None:
    if value is None:
        return None
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc
    if parsed < 0:
        raise ConfigError(f"{name} must not be negative")
    return parsed


def resolve_config(args: argparse.Namespace) -> OrchestratorConfig:
    """!
    @brief Translate parsed CLI arguments and the optional config file into settings.
    @throws ConfigError For unreadable files or invalid values.
    """

    file_values = load_config_file(getattr(args, "config", None))

    def _get(attr: str, default: Any = None, config_key: str | None = None, is_bool: bool = False) -> Any:
        """Get option value with CLI > config > default precedence."""
        cli_val = getattr(args, attr, None)
        cfg_key = config_key or attr.replace("_", "-")
        if is_bool:
            if cli_val:
                return True
            return bool(file_values.get(cfg_key, default))
        if cli_val is not None:
            return cli_val
        return file_values.get(cfg_key, default)

    overrides = _parse_overrides(file_values.get("success-codes"))
    for token in getattr(args, "success_codes", None) or ():
        code, classification = parse_success_code(token)
        overrides[code] = classification

    timeout = _as_float("timeout", _get("timeout"))
    retry_delay = _as_float("retry-delay", _get("retry_delay", 5.0))
    retries_raw = _get("retries", 0)
    try:
        retries = int(retries_raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"retries must be an integer, got {retries_raw!r}") from exc
    if retries < 0:
        raise ConfigError("retries must not be negative")

    closers = getattr(args, "close_processes", None) or file_values.get("close-processes") or ()
    if isinstance(closers, str):
        closers = [closers]

    return OrchestratorConfig(
        installer=str(_get("installer", constants.DEFAULT_INSTALLER)),
        log_destination=_optional_path(_get("log_file")),
        logdir=_optional_path(_get("logdir")),
        classification_overrides=overrides,
        busy_retryable=_get("busy_retryable", False, is_bool=True),
        timeout=timeout or None,
        dry_run=_get("dry_run", False, is_bool=True),
        installer_log_dir=_optional_path(_get("installer_log_dir")),
        report_malformed=_get("report_malformed", False, is_bool=True),
        retries=retries,
        retry_delay=retry_delay if retry_delay is not None else 5.0,
        close_processes=tuple(str(name).strip() for name in closers if str(name).strip()),
        use_color=not _get("no_color", False, is_bool=True),
    )


__all__ = [
    "OrchestratorConfig",
    "load_config_file",
    "parse_success_code",
    "resolve_config",
]
