"""!
@brief Exec utils behaviour tests.
@details Validates environment sanitisation, dry-run flows, exit-code
capture, and launch-failure reporting for :mod:`install_orchestrator.exec_utils`.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, List

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from install_orchestrator import exec_utils  # noqa: E402
from install_orchestrator.errors import LaunchError, ProcessTimeoutError  # noqa: E402


class _StubLogger:
    """!
    @brief Lightweight logger capturing structured log calls.
    """

    def __init__(self) -> None:
        self.records: List[tuple[str, str, Dict[str, object]]] = []

    def _record(self, level: str, message: str, args: tuple[object, ...], kwargs: Dict[str, object]) -> None:
        text = message % args if args else message
        self.records.append((level, text, dict(kwargs)))

    def info(self, message: str, *args: object, **kwargs: object) -> None:  # noqa: D401 - logging compatibility
        self._record("info", message, args, kwargs)

    def warning(self, message: str, *args: object, **kwargs: object) -> None:  # noqa: D401 - logging compatibility
        self._record("warning", message, args, kwargs)

    def error(self, message: str, *args: object, **kwargs: object) -> None:  # noqa: D401 - logging compatibility
        self._record("error", message, args, kwargs)


@pytest.fixture
def loggers(monkeypatch: pytest.MonkeyPatch) -> tuple[_StubLogger, _StubLogger]:
    human_logger = _StubLogger()
    machine_logger = _StubLogger()
    monkeypatch.setattr(exec_utils.logging_ext, "get_human_logger", lambda: human_logger)
    monkeypatch.setattr(exec_utils.logging_ext, "get_machine_logger", lambda: machine_logger)
    return human_logger, machine_logger


def test_sanitize_environment_strips_blocklist_and_overrides() -> None:
    """!
    @brief Sanitisation removes Python-specific variables and applies overrides.
    """

    base_env = {"PYTHONPATH": "should_remove", "KEEP": "1", "LANG": "C"}

    sanitized = exec_utils.sanitize_environment(
        base_env=base_env,
        inherit=False,
        extra={"NEW": "value"},
        remove=["KEEP"],
    )

    assert "PYTHONPATH" not in sanitized
    assert "KEEP" not in sanitized
    assert sanitized["LANG"] == "C"
    assert sanitized["NEW"] == "value"


def test_run_command_dry_run_logs_without_invocation(monkeypatch: pytest.MonkeyPatch, loggers) -> None:
    """!
    @brief Dry-run execution skips the subprocess while logging intent.
    """

    human_logger, machine_logger = loggers

    def fake_run(*args: object, **kwargs: object) -> None:  # pragma: no cover - should not be called
        raise AssertionError("subprocess.run should not be invoked in dry-run mode")

    monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)

    result = exec_utils.run_command(
        ["msiexec.exe", "/i", "app.msi"],
        event="installer",
        dry_run=True,
        human_message="Installing app",
    )

    assert result.skipped is True
    assert result.returncode == 0
    assert machine_logger.records[0][1] == "installer_plan"
    assert machine_logger.records[0][2]["extra"]["call"]["command"] == ["msiexec.exe", "/i", "app.msi"]
    assert machine_logger.records[1][1] == "installer_dry_run"
    assert "[dry-run]" in human_logger.records[0][1]


def test_run_command_passes_argument_list_without_shell(monkeypatch: pytest.MonkeyPatch, loggers) -> None:
    """!
    @brief Commands are handed to ``subprocess.run`` as lists with a sanitised environment.
    """

    _, machine_logger = loggers
    captured: Dict[str, object] = {}

    def fake_run(command, **kwargs):
        captured["command"] = command
        captured.update(kwargs)
        return SimpleNamespace(returncode=1603, stdout="", stderr="")

    monkeypatch.setenv("PYTHONPATH", "leak")
    monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)

    result = exec_utils.run_command(["msiexec.exe", "/x", "{GUID}"], event="installer")

    assert result.returncode == 1603
    assert captured["command"] == ["msiexec.exe", "/x", "{GUID}"]
    assert "shell" not in captured
    assert "PYTHONPATH" not in captured["env"]  # type: ignore[operator]
    assert machine_logger.records[-1][1] == "installer_result"
    assert machine_logger.records[-1][2]["extra"]["result"]["rc"] == 1603


def test_run_command_returns_actual_exit_code(loggers) -> None:
    """!
    @brief The child's own exit code is returned.
    """

    result = exec_utils.run_command(
        [sys.executable, "-c", "import sys; sys.exit(42)"],
        event="probe",
    )

    assert result.returncode == 42
    assert result.skipped is False


def test_missing_executable_raises_launch_error(loggers) -> None:
    """!
    @brief A binary that does not exist is a launch failure, not an exit code.
    """

    _, machine_logger = loggers

    with pytest.raises(LaunchError) as excinfo:
        exec_utils.run_command(["definitely-not-installed-binary-0x1f"], event="probe")

    assert excinfo.value.command == ["definitely-not-installed-binary-0x1f"]
    assert machine_logger.records[-1][1] == "probe_missing"


def test_permission_denied_raises_launch_error(monkeypatch: pytest.MonkeyPatch, loggers) -> None:
    def fake_run(command, **kwargs):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)

    with pytest.raises(LaunchError) as excinfo:
        exec_utils.run_command(["installer.exe"], event="probe")

    assert "Permission denied" in excinfo.value.reason


def test_timeout_raises_process_timeout(monkeypatch: pytest.MonkeyPatch, loggers) -> None:
    def fake_run(command, **kwargs):
        raise subprocess.TimeoutExpired(command, kwargs["timeout"])

    monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)

    with pytest.raises(ProcessTimeoutError) as excinfo:
        exec_utils.run_command(["installer.exe"], event="probe", timeout=5)

    assert excinfo.value.timeout == 5.0


def test_empty_command_is_launch_error(loggers) -> None:
    with pytest.raises(LaunchError):
        exec_utils.run_command([], event="probe")


def test_process_runner_returns_code(monkeypatch: pytest.MonkeyPatch, loggers) -> None:
    """!
    @brief :class:`ProcessRunner` forwards executable and arguments and returns the code.
    """

    calls: List[List[str]] = []

    def fake_run_command(command, *, event, timeout=None, dry_run=False, **kwargs):
        calls.append(list(command))
        assert timeout == 30
        assert dry_run is False
        return exec_utils.CommandResult(
            command=list(command), returncode=3010, stdout="", stderr="", duration=0.1
        )

    monkeypatch.setattr(exec_utils, "run_command", fake_run_command)

    runner = exec_utils.ProcessRunner(timeout=30)
    assert runner.run("msiexec.exe", ["/i", "a.msi"]) == 3010
    assert calls == [["msiexec.exe", "/i", "a.msi"]]
