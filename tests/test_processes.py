"""!
@brief Blocking-process termination tests.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from install_orchestrator import exec_utils, processes  # noqa: E402
from install_orchestrator.errors import LaunchError  # noqa: E402


def _result(command: List[str], returncode: int, stderr: str = "") -> exec_utils.CommandResult:
    return exec_utils.CommandResult(
        command=command, returncode=returncode, stdout="", stderr=stderr, duration=0.01
    )


def test_terminate_processes_reports_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    """!
    @brief Running images are killed, absent images ignored, errors reported.
    """

    codes = {"agent.exe": 0, "helper.exe": processes.TASKKILL_NOT_FOUND, "locked.exe": 1}
    commands: List[List[str]] = []

    def fake_run_command(command, *, event, timeout=None, dry_run=False, extra=None, **kwargs):
        commands.append(list(command))
        assert event == "terminate_process"
        return _result(list(command), codes[command[2]], stderr="Access is denied.")

    monkeypatch.setattr(processes.exec_utils, "run_command", fake_run_command)

    failed = processes.terminate_processes(["agent.exe", " helper.exe ", "", "locked.exe"])

    assert failed == ["locked.exe"]
    assert commands[0] == ["taskkill.exe", "/IM", "agent.exe", "/F", "/T"]
    assert len(commands) == 3


def test_missing_taskkill_counts_as_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run_command(command, **kwargs):
        raise LaunchError(command, "executable not found")

    monkeypatch.setattr(processes.exec_utils, "run_command", fake_run_command)

    assert processes.terminate_processes(["agent.exe"]) == ["agent.exe"]


def test_dry_run_is_forwarded(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: List[bool] = []

    def fake_run_command(command, *, dry_run=False, **kwargs):
        seen.append(dry_run)
        result = _result(list(command), 0)
        result.skipped = True
        return result

    monkeypatch.setattr(processes.exec_utils, "run_command", fake_run_command)

    assert processes.terminate_processes(["agent.exe"], dry_run=True) == []
    assert seen == [True]


def test_no_names_is_noop(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        processes.exec_utils, "run_command", lambda *a, **k: pytest.fail("should not run")
    )
    assert processes.terminate_processes([]) == []
