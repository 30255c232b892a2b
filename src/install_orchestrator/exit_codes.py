"""!
@brief Installer exit-code classification.
@details Maps raw process exit codes to semantic outcomes through a
table-driven :class:`ClassificationTable`. Policies add product-specific codes
by overlaying a table rather than touching orchestration logic. The module
also defines the phase-banded fault codes reserved for internal failures that
never came from an installer.
"""
from __future__ import annotations

import ctypes
import enum
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from . import constants


class Classification(enum.Enum):
    """!
    @brief Semantic outcome of an installer run.
    """

    SUCCESS = "success"
    SUCCESS_REBOOT_PENDING = "success_reboot_pending"
    SUCCESS_REBOOT_INITIATED = "success_reboot_initiated"
    RETRYABLE = "retryable"
    FAILURE = "failure"

    @property
    def is_success(self) -> bool:
        return self in _SUCCESS_FAMILY

    @property
    def requires_reboot(self) -> bool:
        return self in (
            Classification.SUCCESS_REBOOT_PENDING,
            Classification.SUCCESS_REBOOT_INITIATED,
        )


_SUCCESS_FAMILY = frozenset(
    {
        Classification.SUCCESS,
        Classification.SUCCESS_REBOOT_PENDING,
        Classification.SUCCESS_REBOOT_INITIATED,
    }
)


class ClassificationTable(Mapping[int, Classification]):
    """!
    @brief Immutable mapping from exit code to :class:`Classification`.
    @details Each code maps to exactly one classification; codes missing from
    the table classify as :attr:`Classification.FAILURE`. Use
    :meth:`with_overrides` to derive a policy-specific table.
    """

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[int, Classification] | None = None) -> None:
        normalised: dict[int, Classification] = {}
        for code, classification in (entries or {}).items():
            if not isinstance(classification, Classification):
                raise TypeError(f"Exit code {code} mapped to non-classification {classification!r}")
            normalised[int(code)] = classification
        self._entries = normalised

    def __getitem__(self, code: int) -> Classification:
        return self._entries[code]

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        body = ", ".join(f"{code}: {self._entries[code].name}" for code in self)
        return f"ClassificationTable({{{body}}})"

    def with_overrides(self, overrides: Mapping[int, Classification]) -> "ClassificationTable":
        """!
        @brief Return a new table with ``overrides`` replacing or adding entries.
        """

        merged = dict(self._entries)
        merged.update({int(code): value for code, value in overrides.items()})
        return ClassificationTable(merged)

    def success_codes(self) -> frozenset[int]:
        return frozenset(code for code, value in self._entries.items() if value.is_success)


DEFAULT_TABLE = ClassificationTable(
    {
        constants.ERROR_SUCCESS: Classification.SUCCESS,
        constants.ERROR_PRODUCT_UNINSTALLED: Classification.SUCCESS,
        constants.ERROR_INSTALL_ALREADY_INSTALLED: Classification.SUCCESS,
        constants.ERROR_SUCCESS_REBOOT_REQUIRED: Classification.SUCCESS_REBOOT_PENDING,
        constants.ERROR_SUCCESS_REBOOT_INITIATED: Classification.SUCCESS_REBOOT_INITIATED,
    }
)
"""!
@brief Codes Windows Installer reports for successful or no-op runs.
"""

PATCH_OVERRIDES: Mapping[int, Classification] = {
    constants.ERROR_UNKNOWN_PRODUCT: Classification.SUCCESS,
}
"""!
@brief Patch flows treat a missing target product the same as success.
"""

BUSY_RETRY_OVERRIDES: Mapping[int, Classification] = {
    constants.ERROR_INSTALL_ALREADY_RUNNING: Classification.RETRYABLE,
}


@dataclass(frozen=True)
class ExitOutcome:
    """!
    @brief Classified result of a single installer run.
    """

    raw_code: int
    classification: Classification
    message: str

    @property
    def is_success(self) -> bool:
        return self.classification.is_success


def classify(code: int, table: Mapping[int, Classification] = DEFAULT_TABLE) -> Classification:
    """!
    @brief Classify ``code`` against ``table``; unknown codes are failures.
    """

    return table.get(int(code), Classification.FAILURE)


def describe_code(code: int) -> str | None:
    """!
    @brief Return the platform's textual description of ``code`` when available.
    @details Windows hosts ask ``FormatMessage`` through :func:`ctypes.FormatError`;
    elsewhere, or when the system has no text, the built-in Windows Installer
    table is consulted.
    """

    format_error = getattr(ctypes, "FormatError", None)
    if format_error is not None and code >= 0:
        try:
            text = str(format_error(code)).strip()
        except (OSError, ValueError):  # pragma: no cover - Windows-only failure path
            text = ""
        if text and text != "<no description>":
            return text
    return constants.MSI_ERROR_DESCRIPTIONS.get(code)


def evaluate(code: int, table: Mapping[int, Classification] = DEFAULT_TABLE) -> ExitOutcome:
    """!
    @brief Classify ``code`` and attach a human-readable message.
    """

    classification = classify(code, table)
    description = describe_code(code)
    if description:
        message = f"Exit code {code} ({classification.name}): {description}"
    else:
        message = f"Exit code {code} ({classification.name})"
    return ExitOutcome(raw_code=int(code), classification=classification, message=message)


def parse_classification(name: str) -> Classification:
    """!
    @brief Resolve a classification from its enum name or value, case-insensitively.
    @throws ValueError When ``name`` matches no classification.
    """

    token = name.strip().lower().replace("-", "_")
    for member in Classification:
        if token in (member.value, member.name.lower()):
            return member
    raise ValueError(f"Unknown classification: {name}")


class Phase(enum.Enum):
    """!
    @brief Orchestration phase an internal fault belongs to.
    """

    PRE_OPERATION = "pre_operation"
    OPERATION = "operation"
    POST_OPERATION = "post_operation"


class FaultCode(enum.IntEnum):
    """!
    @brief Out-of-band exit codes for faults that never came from an installer.
    @details Negative hundreds encode the phase: ``-1xx`` before the installer
    runs, ``-2xx`` while launching it, ``-3xx`` after it returned.
    """

    CONFIG_INVALID = -101
    INVENTORY_UNREADABLE = -102
    BLOCKING_PROCESS = -103
    LAUNCH_FAILURE = -201
    TIMEOUT = -202
    LOG_WRITE_FAILURE = -301


_PHASE_BANDS = {
    1: Phase.PRE_OPERATION,
    2: Phase.OPERATION,
    3: Phase.POST_OPERATION,
}


def phase_of(code: int) -> Phase | None:
    """!
    @brief Return the phase of a reserved fault code, or ``None`` for installer codes.
    """

    if code >= 0:
        return None
    return _PHASE_BANDS.get(-int(code) // 100)


__all__ = [
    "BUSY_RETRY_OVERRIDES",
    "Classification",
    "ClassificationTable",
    "DEFAULT_TABLE",
    "ExitOutcome",
    "FaultCode",
    "PATCH_OVERRIDES",
    "Phase",
    "classify",
    "describe_code",
    "evaluate",
    "parse_classification",
    "phase_of",
]
