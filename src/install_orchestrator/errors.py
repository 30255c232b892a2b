"""!
@brief Exception hierarchy for installer orchestration.
@details Every failure the orchestrator surfaces to its caller derives from
:class:`OrchestratorError`. The command-line entry point is the single place
where these exceptions are translated into process exit codes.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .orchestrator import OperationResult


class OrchestratorError(Exception):
    """!
    @brief Base class for orchestration failures.
    """


class ConfigError(OrchestratorError):
    """!
    @brief Raised when a configuration file or value cannot be used.
    """


class LaunchError(OrchestratorError):
    """!
    @brief The target executable could not be started.
    @details Distinct from any exit code: the process never ran, so there is
    nothing to classify.
    """

    def __init__(self, command: Sequence[str], reason: str) -> None:
        self.command = list(command)
        self.reason = reason
        executable = self.command[0] if self.command else "<empty command>"
        super().__init__(f"Failed to launch {executable}: {reason}")


class ProcessTimeoutError(OrchestratorError):
    """!
    @brief The child process exceeded the configured timeout and was killed.
    """

    def __init__(self, command: Sequence[str], timeout: float) -> None:
        self.command = list(command)
        self.timeout = timeout
        executable = self.command[0] if self.command else "<empty command>"
        super().__init__(f"{executable} did not finish within {timeout:.1f}s")


class OperationFailedError(OrchestratorError):
    """!
    @brief A single operation failed and the caller did not allow continuing.
    @details Carries the :class:`~install_orchestrator.orchestrator.OperationResult`
    so the caller can inspect the raw code and classification.
    """

    def __init__(self, result: "OperationResult") -> None:
        self.result = result
        outcome = result.outcome
        super().__init__(
            f"{result.operation.kind.value} of {result.operation.target} failed "
            f"with exit code {outcome.raw_code} ({outcome.classification.name})"
        )


class LogWriteError(OrchestratorError):
    """!
    @brief A log destination could not be appended to.
    """

    def __init__(self, destination: str, reason: str) -> None:
        self.destination = destination
        self.reason = reason
        super().__init__(f"Cannot append to log {destination}: {reason}")


class InventoryAccessError(OrchestratorError):
    """!
    @brief No software inventory location could be read.
    """

    def __init__(self, roots: Sequence[str]) -> None:
        self.roots = list(roots)
        super().__init__("Unable to read any uninstall catalog: " + ", ".join(self.roots))


__all__ = [
    "ConfigError",
    "InventoryAccessError",
    "LaunchError",
    "LogWriteError",
    "OperationFailedError",
    "OrchestratorError",
    "ProcessTimeoutError",
]
