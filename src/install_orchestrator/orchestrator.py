"""!
@brief Install, patch, and uninstall orchestration.
@details :class:`InstallOrchestrator` composes the process runner, the
exit-code classifier, and the result logger into named operations. Every
outcome is logged before a control-flow decision is taken on it. Single
operations raise :class:`~install_orchestrator.errors.OperationFailedError`
on failure unless the caller allows continuing; pattern-driven bulk
uninstalls always continue and return one result per matched product.
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from pathlib import Path, PureWindowsPath
from typing import Iterable, List, Mapping, Protocol, Sequence, Tuple

from . import constants, logging_ext
from .config import OrchestratorConfig
from .errors import LaunchError, OperationFailedError, ProcessTimeoutError
from .exec_utils import ProcessRunner
from .exit_codes import (
    PATCH_OVERRIDES,
    Classification,
    ClassificationTable,
    ExitOutcome,
    FaultCode,
    evaluate,
)
from .inventory import UninstallCandidate, UninstallScanner
from .result_log import Channel, ColorHint, ResultLogger


class OperationKind(enum.Enum):
    """!
    @brief Installer actions the orchestrator knows how to compose.
    """

    INSTALL = "install"
    PATCH = "patch"
    REMOVE_PATCH = "remove_patch"
    UNINSTALL = "uninstall"


class OperationState(enum.Enum):
    """!
    @brief Lifecycle of a single operation.
    """

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    SUCCEEDED_REBOOT_PENDING = "succeeded_reboot_pending"
    FAILED = "failed"


@dataclass(frozen=True)
class Operation:
    """!
    @brief One requested installer invocation.
    @details ``target`` is a package path for installs and patches, or a
    product code for uninstalls. ``extra_args`` are appended verbatim after the
    canonical switches.
    """

    kind: OperationKind
    target: str
    extra_args: Tuple[str, ...] = ()
    allow_continue_on_failure: bool = False


@dataclass(frozen=True)
class OperationResult:
    """!
    @brief Terminal state of an :class:`Operation` with its classified outcome.
    """

    operation: Operation
    outcome: ExitOutcome
    state: OperationState
    candidate: UninstallCandidate | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is not OperationState.FAILED

    @property
    def requires_reboot(self) -> bool:
        return self.state is OperationState.SUCCEEDED_REBOOT_PENDING

    @property
    def exit_code(self) -> int:
        """!
        @brief Process exit code to surface: ``0`` on success, else the raw code.
        """

        return 0 if self.succeeded else self.outcome.raw_code


class Runner(Protocol):
    def run(self, executable: str, arguments: Sequence[str]) -> int:
        ...


_STATE_BY_CLASSIFICATION: Mapping[Classification, OperationState] = {
    Classification.SUCCESS: OperationState.SUCCEEDED,
    Classification.SUCCESS_REBOOT_PENDING: OperationState.SUCCEEDED_REBOOT_PENDING,
    Classification.SUCCESS_REBOOT_INITIATED: OperationState.SUCCEEDED_REBOOT_PENDING,
    Classification.RETRYABLE: OperationState.FAILED,
    Classification.FAILURE: OperationState.FAILED,
}

_LOG_NAME_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def aggregate_exit_code(results: Iterable[OperationResult]) -> int:
    """!
    @brief ``0`` when every result succeeded, else the first failure's exit code.
    """

    for result in results:
        if not result.succeeded:
            return result.exit_code
    return 0


class InstallOrchestrator:
    """!
    @brief Run installer operations and apply the continue-or-abort policy.
    """

    def __init__(
        self,
        config: OrchestratorConfig | None = None,
        *,
        runner: Runner | None = None,
        result_logger: ResultLogger | None = None,
        scanner: UninstallScanner | None = None,
        table: ClassificationTable | None = None,
    ) -> None:
        self.config = config or OrchestratorConfig()
        self.table = table if table is not None else self.config.classification_table()
        self.patch_table = self.table.with_overrides(
            {
                code: value
                for code, value in PATCH_OVERRIDES.items()
                if code not in self.config.classification_overrides
            }
        )
        self.runner: Runner = runner or ProcessRunner(
            timeout=self.config.timeout, dry_run=self.config.dry_run
        )
        self.result_logger = result_logger or ResultLogger(
            self.config.log_destination, use_color=self.config.use_color
        )
        self.scanner = scanner or UninstallScanner(
            result_logger=self.result_logger,
            report_malformed=self.config.report_malformed,
        )

    def install(
        self,
        path: str | Path,
        extra_args: Sequence[str] = (),
        *,
        allow_continue_on_failure: bool = False,
    ) -> OperationResult:
        """!
        @brief Install the package at ``path``.
        @throws OperationFailedError On failure unless ``allow_continue_on_failure``.
        @throws LaunchError When the installer cannot be started.
        """

        return self.execute(
            Operation(
                kind=OperationKind.INSTALL,
                target=str(path),
                extra_args=tuple(extra_args),
                allow_continue_on_failure=allow_continue_on_failure,
            )
        )

    def patch(
        self,
        path: str | Path,
        extra_args: Sequence[str] = (),
        *,
        allow_continue_on_failure: bool = False,
    ) -> OperationResult:
        """!
        @brief Apply the patch package at ``path``; a missing product counts as success.
        """

        return self.execute(
            Operation(
                kind=OperationKind.PATCH,
                target=str(path),
                extra_args=tuple(extra_args),
                allow_continue_on_failure=allow_continue_on_failure,
            )
        )

    def remove_patch(
        self,
        product_code: str,
        patch_code: str,
        extra_args: Sequence[str] = (),
        *,
        allow_continue_on_failure: bool = False,
    ) -> OperationResult:
        """!
        @brief Remove ``patch_code`` from ``product_code``.
        """

        return self.execute(
            Operation(
                kind=OperationKind.REMOVE_PATCH,
                target=product_code,
                extra_args=(f"MSIPATCHREMOVE={patch_code}", *extra_args),
                allow_continue_on_failure=allow_continue_on_failure,
            )
        )

    def uninstall(
        self,
        product_code: str,
        extra_args: Sequence[str] = (),
        *,
        allow_continue_on_failure: bool = False,
    ) -> OperationResult:
        return self.execute(
            Operation(
                kind=OperationKind.UNINSTALL,
                target=product_code,
                extra_args=tuple(extra_args),
                allow_continue_on_failure=allow_continue_on_failure,
            )
        )

    def uninstall_by_pattern(
        self, pattern: str, extra_args: Sequence[str] = ()
    ) -> List[OperationResult]:
        """!
        @brief Uninstall every installed product whose display name matches ``pattern``.
        @details Candidates are processed independently in scan order. A failed
        or unlaunchable uninstall is recorded and the batch moves on.
        @returns One :class:`OperationResult` per candidate.
        @throws InventoryAccessError When no uninstall catalog could be read.
        """

        report = self.scanner.scan(pattern)
        if not report.candidates:
            self.result_logger.log(f"No installed products match '{pattern}'", Channel.HOST)
            return []

        results: List[OperationResult] = []
        for candidate in report.candidates:
            operation = Operation(
                kind=OperationKind.UNINSTALL,
                target=candidate.product_code,
                extra_args=tuple(extra_args),
                allow_continue_on_failure=True,
            )
            try:
                result = self.execute(operation, candidate=candidate)
            except LaunchError as exc:
                result = self._fault_result(operation, candidate, FaultCode.LAUNCH_FAILURE, str(exc))
            except ProcessTimeoutError as exc:
                result = self._fault_result(operation, candidate, FaultCode.TIMEOUT, str(exc))
            results.append(result)

        failed = sum(1 for result in results if not result.succeeded)
        summary = (
            f"Processed {len(results)} product(s) matching '{pattern}': "
            f"{len(results) - failed} succeeded, {failed} failed"
        )
        self.result_logger.log(
            summary,
            Channel.WARNING if failed else Channel.HOST,
            color=None if failed else ColorHint.GREEN,
        )
        return results

    def build_arguments(self, operation: Operation) -> List[str]:
        """!
        @brief Compose the installer argument list for ``operation``.
        """

        switch = {
            OperationKind.INSTALL: constants.INSTALL_SWITCH,
            OperationKind.PATCH: constants.PATCH_SWITCH,
            OperationKind.REMOVE_PATCH: constants.PACKAGE_SWITCH,
            OperationKind.UNINSTALL: constants.UNINSTALL_SWITCH,
        }[operation.kind]
        arguments = [switch, operation.target, *constants.QUIET_ARGS]
        if self.config.installer_log_dir is not None:
            arguments.extend([constants.VERBOSE_LOG_SWITCH, str(self._installer_log_path(operation))])
        arguments.extend(operation.extra_args)
        return arguments

    def execute(
        self, operation: Operation, *, candidate: UninstallCandidate | None = None
    ) -> OperationResult:
        """!
        @brief Run ``operation`` through the runner, classifier, and logger.
        """

        machine_logger = logging_ext.get_machine_logger()
        label = candidate.display_name if candidate else operation.target
        state = OperationState.PENDING
        arguments = self.build_arguments(operation)

        machine_logger.info(
            "operation_plan",
            extra={
                "event": "operation_plan",
                "kind": operation.kind.value,
                "target": operation.target,
                "arguments": arguments,
                "state": state.value,
            },
        )

        state = OperationState.RUNNING
        self.result_logger.log(
            f"Starting {operation.kind.value} of {label}: "
            f"{self.config.installer} {' '.join(arguments)}",
            Channel.VERBOSE,
        )
        try:
            raw_code = self.runner.run(self.config.installer, arguments)
        except (LaunchError, ProcessTimeoutError) as exc:
            self.result_logger.log(f"{operation.kind.value} of {label} aborted: {exc}", Channel.ERROR)
            machine_logger.error(
                "operation_fault",
                extra={
                    "event": "operation_fault",
                    "kind": operation.kind.value,
                    "target": operation.target,
                    "error": str(exc),
                },
            )
            raise

        table = (
            self.patch_table
            if operation.kind in (OperationKind.PATCH, OperationKind.REMOVE_PATCH)
            else self.table
        )
        outcome = evaluate(raw_code, table)
        state = _STATE_BY_CLASSIFICATION[outcome.classification]
        result = OperationResult(
            operation=operation, outcome=outcome, state=state, candidate=candidate
        )
        self._log_outcome(result, label)

        machine_logger.info(
            "operation_result",
            extra={
                "event": "operation_result",
                "kind": operation.kind.value,
                "target": operation.target,
                "return_code": outcome.raw_code,
                "classification": outcome.classification.value,
                "state": state.value,
            },
        )

        if not result.succeeded and not operation.allow_continue_on_failure:
            raise OperationFailedError(result)
        return result

    def _log_outcome(self, result: OperationResult, label: str) -> None:
        outcome = result.outcome
        kind = result.operation.kind.value
        if result.state is OperationState.SUCCEEDED:
            self.result_logger.log(
                f"{kind} of {label} succeeded (exit code {outcome.raw_code})",
                Channel.HOST,
                color=ColorHint.GREEN,
            )
        elif result.state is OperationState.SUCCEEDED_REBOOT_PENDING:
            self.result_logger.log(
                f"{kind} of {label} succeeded; restart required ({outcome.message})",
                Channel.HOST,
                color=ColorHint.YELLOW,
            )
        else:
            self.result_logger.log(f"{kind} of {label} failed: {outcome.message}", Channel.WARNING)

    def _fault_result(
        self,
        operation: Operation,
        candidate: UninstallCandidate,
        code: FaultCode,
        message: str,
    ) -> OperationResult:
        self.result_logger.log(
            f"{operation.kind.value} of {candidate.display_name} recorded as fault "
            f"{int(code)} ({code.name}): {message}",
            Channel.ERROR,
        )
        outcome = ExitOutcome(
            raw_code=int(code), classification=Classification.FAILURE, message=message
        )
        return OperationResult(
            operation=operation,
            outcome=outcome,
            state=OperationState.FAILED,
            candidate=candidate,
        )

    def _installer_log_path(self, operation: Operation) -> Path:
        log_dir = self.config.installer_log_dir or Path(".")
        if operation.kind in (OperationKind.INSTALL, OperationKind.PATCH):
            stem = PureWindowsPath(operation.target).stem
        else:
            stem = operation.target.strip("{}")
        safe = _LOG_NAME_UNSAFE.sub("_", stem) or "target"
        return log_dir / f"{operation.kind.value}-{safe}.log"


__all__ = [
    "InstallOrchestrator",
    "Operation",
    "OperationKind",
    "OperationResult",
    "OperationState",
    "aggregate_exit_code",
]
