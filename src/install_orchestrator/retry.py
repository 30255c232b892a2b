"""!
@brief Caller-side retries for retryable installer outcomes.
@details The orchestrator never re-runs an installer on its own. Callers that
want "installer busy" style outcomes retried wrap an operation with
:func:`run_with_retries`, which waits with capped exponential backoff between
attempts and gives up as soon as an outcome is anything other than
:attr:`~install_orchestrator.exit_codes.Classification.RETRYABLE`.
"""
from __future__ import annotations

import time
from typing import Callable

from . import logging_ext
from .errors import OperationFailedError
from .exit_codes import Classification
from .orchestrator import OperationResult

BACKOFF_CAP = 60.0
"""!
@brief Maximum seconds to wait between attempts.
"""


def compute_backoff(attempt: int, base_delay: float, cap: float = BACKOFF_CAP) -> float:
    """!
    @brief Delay before the attempt following ``attempt`` (1-indexed).
    """

    exponent = max(0, int(attempt) - 1)
    return float(min(cap, base_delay * (2**exponent)))


def run_with_retries(
    action: Callable[[], OperationResult],
    *,
    retries: int,
    delay: float,
    cap: float = BACKOFF_CAP,
    sleep: Callable[[float], None] = time.sleep,
) -> OperationResult:
    """!
    @brief Invoke ``action`` until it stops reporting a retryable outcome.
    @param action Zero-argument callable running one operation.
    @param retries Additional attempts after the first (total = retries + 1).
    @param delay Base delay in seconds for the backoff.
    @param cap Upper bound for a single wait.
    @param sleep Wait function, replaceable in tests.
    @returns The last :class:`OperationResult` observed.
    @throws OperationFailedError Re-raised for non-retryable failures or when
    attempts run out.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()
    attempts = max(1, int(retries) + 1)

    for attempt in range(1, attempts + 1):
        try:
            result = action()
        except OperationFailedError as exc:
            retryable = exc.result.outcome.classification is Classification.RETRYABLE
            if not retryable or attempt >= attempts:
                raise
            result = exc.result
        else:
            if result.outcome.classification is not Classification.RETRYABLE or attempt >= attempts:
                return result

        wait = compute_backoff(attempt, delay, cap)
        human_logger.warning(
            "%s of %s returned retryable exit code %s; retrying in %.1fs [attempt %d/%d]",
            result.operation.kind.value,
            result.operation.target,
            result.outcome.raw_code,
            wait,
            attempt + 1,
            attempts,
        )
        machine_logger.info(
            "operation_retry",
            extra={
                "event": "operation_retry",
                "kind": result.operation.kind.value,
                "target": result.operation.target,
                "return_code": result.outcome.raw_code,
                "attempt": attempt,
                "attempts": attempts,
                "delay": wait,
            },
        )
        if wait > 0:
            sleep(wait)

    return result  # pragma: no cover - loop always returns or raises


__all__ = ["BACKOFF_CAP", "compute_backoff", "run_with_retries"]
