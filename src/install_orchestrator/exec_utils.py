"""!
@brief Installer process execution with sanitised environments.
@details Centralises invocation of :func:`subprocess.run` so every installer
call shares the same telemetry, dry-run behaviour, and environment hygiene.
Commands are always passed as argument lists so the exit code returned is the
installer's own, never that of an intermediate shell. A process that cannot
be started raises :class:`~install_orchestrator.errors.LaunchError` rather
than masquerading as an exit code.
"""

from __future__ import annotations

import os
import subprocess
import time
from collections.abc import Iterable, Mapping, MutableMapping, Sequence
from dataclasses import dataclass

from . import logging_ext
from .errors import LaunchError, ProcessTimeoutError

_SANITIZE_BLOCKLIST = {
    "PYTHONPATH",
    "PYTHONHOME",
    "PYTHONWARNINGS",
    "VIRTUAL_ENV",
    "PIP_REQUIRE_VIRTUALENV",
    "CONDA_PREFIX",
    "CONDA_DEFAULT_ENV",
    "PYENV_VERSION",
    "POETRY_ACTIVE",
    "__PYVENV_LAUNCHER__",
}


@dataclass
class CommandResult:
    """!
    @brief Outcome information from :func:`run_command`.
    @details ``skipped`` is ``True`` when dry-run mode bypassed execution.
    """

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    duration: float
    skipped: bool = False


def _build_call_payload(
    command_list: Sequence[str],
    *,
    timeout: float | int | None,
    extra: Mapping[str, object] | None,
) -> MutableMapping[str, object]:
    payload: MutableMapping[str, object] = {
        "command": list(command_list),
        "timeout": timeout,
    }
    if extra:
        for key, value in extra.items():
            if key not in {"event", "result"}:
                payload[key] = value
    return payload


def _build_result_payload(
    *,
    return_code: int | None,
    duration: float,
    stdout: str = "",
    stderr: str = "",
    error: str | None = None,
) -> dict[str, object]:
    return {
        "rc": return_code,
        "duration_ms": round(duration * 1000, 3),
        "stdout": stdout,
        "stderr": stderr,
        "error": error,
    }


def sanitize_environment(
    *,
    base_env: Mapping[str, str] | None = None,
    inherit: bool = True,
    extra: Mapping[str, str] | None = None,
    remove: Iterable[str] | None = None,
) -> MutableMapping[str, str]:
    """!
    @brief Produce a subprocess environment stripped of virtualenv artefacts.
    @param base_env Source mapping to copy prior to sanitisation.
    @param inherit When ``True`` and ``base_env`` is ``None`` start from
    :data:`os.environ`.
    @param extra Overrides applied after sanitisation.
    @param remove Additional variable names to drop.
    @returns Mutable mapping ready for subprocess invocation.
    """

    if base_env is not None:
        environment: MutableMapping[str, str] = {
            str(k): str(v) for k, v in base_env.items() if v is not None
        }
    elif inherit:
        environment = {str(k): str(v) for k, v in os.environ.items() if v is not None}
    else:
        environment = {}

    for key in _SANITIZE_BLOCKLIST:
        environment.pop(key, None)

    if remove is not None:
        for key in remove:
            environment.pop(key, None)

    if extra:
        for key, value in extra.items():
            environment[str(key)] = str(value)

    return environment


def run_command(
    command: Sequence[str],
    *,
    event: str,
    timeout: int | float | None = None,
    dry_run: bool = False,
    human_message: str | None = None,
    extra: Mapping[str, object] | None = None,
    env: Mapping[str, str] | None = None,
) -> CommandResult:
    """!
    @brief Execute ``command`` and wait for it with consistent telemetry.
    @details Emits ``*_plan`` and ``*_result`` machine-log events (or
    ``*_missing``/``*_error``/``*_timeout`` before raising).
    @param command Executable followed by its arguments.
    @param event Base name for structured log events.
    @param timeout Optional limit in seconds; the child is killed on expiry.
    @param dry_run When ``True`` no subprocess is spawned and the result is
    marked as ``skipped`` with return code ``0``.
    @param human_message Optional message emitted to the human logger first.
    @param extra Additional metadata merged into machine log payloads.
    @param env Explicit environment to sanitise instead of :data:`os.environ`.
    @returns :class:`CommandResult` describing the observed outcome.
    @throws LaunchError The executable could not be started.
    @throws ProcessTimeoutError ``timeout`` elapsed before the process exited.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    command_list = [str(part) for part in command]
    if not command_list:
        raise LaunchError(command_list, "empty command")

    call_payload = _build_call_payload(command_list, timeout=timeout, extra=extra)
    machine_logger.info(
        f"{event}_plan",
        extra={"event": f"{event}_plan", "call": dict(call_payload), "dry_run": dry_run},
    )

    if dry_run:
        if human_message:
            human_logger.info("%s [dry-run]", human_message)
        else:
            human_logger.info("Dry-run: would execute %s", subprocess.list2cmdline(command_list))
        machine_logger.info(
            f"{event}_dry_run",
            extra={
                "event": f"{event}_dry_run",
                "call": dict(call_payload),
                "result": _build_result_payload(return_code=0, duration=0.0),
            },
        )
        return CommandResult(
            command=command_list,
            returncode=0,
            stdout="",
            stderr="",
            duration=0.0,
            skipped=True,
        )

    if human_message:
        human_logger.info(human_message)

    start = time.monotonic()
    try:
        completed = subprocess.run(  # noqa: S603 - intentional command execution
            command_list,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
            env=sanitize_environment(base_env=env),
        )
    except FileNotFoundError as exc:
        duration = time.monotonic() - start
        machine_logger.error(
            f"{event}_missing",
            extra={
                "event": f"{event}_missing",
                "call": dict(call_payload),
                "result": _build_result_payload(
                    return_code=None, duration=duration, error=str(exc)
                ),
            },
        )
        raise LaunchError(command_list, "executable not found") from exc
    except subprocess.TimeoutExpired as exc:
        duration = time.monotonic() - start
        machine_logger.error(
            f"{event}_timeout",
            extra={
                "event": f"{event}_timeout",
                "call": dict(call_payload),
                "result": _build_result_payload(
                    return_code=None,
                    duration=duration,
                    stdout=str(exc.stdout or ""),
                    stderr=str(exc.stderr or ""),
                    error="timeout",
                ),
            },
        )
        raise ProcessTimeoutError(command_list, float(timeout or 0)) from exc
    except OSError as exc:
        duration = time.monotonic() - start
        machine_logger.error(
            f"{event}_error",
            extra={
                "event": f"{event}_error",
                "call": dict(call_payload),
                "result": _build_result_payload(
                    return_code=None, duration=duration, error=str(exc)
                ),
            },
        )
        raise LaunchError(command_list, str(exc)) from exc

    duration = time.monotonic() - start
    machine_logger.info(
        f"{event}_result",
        extra={
            "event": f"{event}_result",
            "call": dict(call_payload),
            "result": _build_result_payload(
                return_code=completed.returncode,
                duration=duration,
                stdout=str(completed.stdout or ""),
                stderr=str(completed.stderr or ""),
            ),
        },
    )

    return CommandResult(
        command=command_list,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
        duration=duration,
    )


class ProcessRunner:
    """!
    @brief Launch an installer, block until it exits, return its exit code.
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        dry_run: bool = False,
        event: str = "installer",
    ) -> None:
        self.timeout = timeout
        self.dry_run = dry_run
        self.event = event

    def run(self, executable: str, arguments: Sequence[str]) -> int:
        """!
        @brief Run ``executable`` with ``arguments`` and return its exit code.
        @throws LaunchError The executable could not be started.
        @throws ProcessTimeoutError The configured timeout elapsed.
        """

        result = run_command(
            [executable, *arguments],
            event=self.event,
            timeout=self.timeout,
            dry_run=self.dry_run,
        )
        return result.returncode


__all__ = [
    "CommandResult",
    "ProcessRunner",
    "run_command",
    "sanitize_environment",
]
