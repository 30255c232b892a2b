"""!
@brief Tests for :mod:`install_orchestrator.exit_codes`.
@details Covers the default success table, override layering, fault-code
phase bands, and description lookups.
"""

from __future__ import annotations

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from install_orchestrator import exit_codes  # noqa: E402
from install_orchestrator.exit_codes import (  # noqa: E402
    BUSY_RETRY_OVERRIDES,
    DEFAULT_TABLE,
    Classification,
    ClassificationTable,
    FaultCode,
    Phase,
)


class TestDefaultTable:
    """Default classification table behaviour."""

    @pytest.mark.parametrize(
        "code,expected",
        [
            (0, Classification.SUCCESS),
            (1614, Classification.SUCCESS),
            (1707, Classification.SUCCESS),
            (3010, Classification.SUCCESS_REBOOT_PENDING),
            (1641, Classification.SUCCESS_REBOOT_INITIATED),
        ],
    )
    def test_success_family(self, code: int, expected: Classification) -> None:
        """Every default code lands in the success family."""
        classification = exit_codes.classify(code)
        assert classification is expected
        assert classification.is_success

    @pytest.mark.parametrize("code", [1, 1603, 1605, 1618, 1619, -1, 2147483647])
    def test_unknown_codes_fail(self, code: int) -> None:
        """Codes absent from the table classify as failure."""
        assert exit_codes.classify(code, DEFAULT_TABLE) is Classification.FAILURE

    def test_classify_is_deterministic(self) -> None:
        """Repeated calls with identical input agree."""
        results = {exit_codes.classify(3010) for _ in range(10)}
        assert results == {Classification.SUCCESS_REBOOT_PENDING}

    def test_reboot_flags(self) -> None:
        assert Classification.SUCCESS_REBOOT_PENDING.requires_reboot
        assert Classification.SUCCESS_REBOOT_INITIATED.requires_reboot
        assert not Classification.SUCCESS.requires_reboot
        assert not Classification.RETRYABLE.is_success

    def test_success_codes(self) -> None:
        assert DEFAULT_TABLE.success_codes() == frozenset({0, 1614, 1641, 1707, 3010})


class TestOverrides:
    """Layering caller-supplied codes over the defaults."""

    def test_with_overrides_adds_and_replaces(self) -> None:
        table = DEFAULT_TABLE.with_overrides(
            {1638: Classification.SUCCESS, 3010: Classification.SUCCESS}
        )
        assert exit_codes.classify(1638, table) is Classification.SUCCESS
        assert exit_codes.classify(3010, table) is Classification.SUCCESS

    def test_with_overrides_leaves_original_untouched(self) -> None:
        DEFAULT_TABLE.with_overrides(BUSY_RETRY_OVERRIDES)
        assert 1618 not in DEFAULT_TABLE
        assert exit_codes.classify(1618) is Classification.FAILURE

    def test_busy_overrides_mark_retryable(self) -> None:
        table = DEFAULT_TABLE.with_overrides(BUSY_RETRY_OVERRIDES)
        assert exit_codes.classify(1618, table) is Classification.RETRYABLE

    def test_rejects_non_classification_values(self) -> None:
        with pytest.raises(TypeError):
            ClassificationTable({5: "success"})  # type: ignore[dict-item]

    def test_parse_classification_accepts_names_and_values(self) -> None:
        assert exit_codes.parse_classification("success") is Classification.SUCCESS
        assert exit_codes.parse_classification("SUCCESS_REBOOT_PENDING") is Classification.SUCCESS_REBOOT_PENDING
        assert exit_codes.parse_classification("Retryable") is Classification.RETRYABLE
        with pytest.raises(ValueError):
            exit_codes.parse_classification("maybe")


class TestDescriptions:
    """Message text attached to outcomes."""

    def test_describe_code_uses_builtin_table_without_format_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(exit_codes, "ctypes", SimpleNamespace())
        assert exit_codes.describe_code(1603) == "A fatal error occurred during installation."
        assert exit_codes.describe_code(424242) is None

    def test_describe_code_prefers_platform_text(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(exit_codes, "ctypes", SimpleNamespace(FormatError=lambda code: "Platform text. "))
        assert exit_codes.describe_code(1603) == "Platform text."

    def test_evaluate_builds_outcome(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(exit_codes, "ctypes", SimpleNamespace())
        outcome = exit_codes.evaluate(3010)
        assert outcome.raw_code == 3010
        assert outcome.classification is Classification.SUCCESS_REBOOT_PENDING
        assert outcome.is_success
        assert "3010" in outcome.message
        assert "restart is required" in outcome.message

    def test_evaluate_without_description(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(exit_codes, "ctypes", SimpleNamespace())
        outcome = exit_codes.evaluate(777)
        assert outcome.message == "Exit code 777 (FAILURE)"


class TestFaultCodes:
    """Phase-banded internal fault codes."""

    @pytest.mark.parametrize(
        "code,phase",
        [
            (FaultCode.CONFIG_INVALID, Phase.PRE_OPERATION),
            (FaultCode.INVENTORY_UNREADABLE, Phase.PRE_OPERATION),
            (FaultCode.BLOCKING_PROCESS, Phase.PRE_OPERATION),
            (FaultCode.LAUNCH_FAILURE, Phase.OPERATION),
            (FaultCode.TIMEOUT, Phase.OPERATION),
            (FaultCode.LOG_WRITE_FAILURE, Phase.POST_OPERATION),
        ],
    )
    def test_phase_of_reserved_codes(self, code: FaultCode, phase: Phase) -> None:
        assert exit_codes.phase_of(code) is phase

    def test_installer_codes_have_no_phase(self) -> None:
        assert exit_codes.phase_of(0) is None
        assert exit_codes.phase_of(1603) is None
        assert exit_codes.phase_of(-5) is None

    def test_fault_codes_are_out_of_band(self) -> None:
        assert all(int(code) < 0 for code in FaultCode)
        assert not any(int(code) in DEFAULT_TABLE for code in FaultCode)
