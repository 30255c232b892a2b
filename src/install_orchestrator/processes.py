"""!
@brief Blocking-process termination before an installer runs.
@details Installers commonly fail while the application they service is still
running. :func:`terminate_processes` asks ``taskkill.exe`` to stop each named
image and reports which ones could not be stopped so the caller can abort
with a pre-operation fault code.
"""
from __future__ import annotations

from typing import Iterable, List

from . import exec_utils, logging_ext
from .errors import LaunchError, ProcessTimeoutError

TASKKILL = "taskkill.exe"

TASKKILL_NOT_FOUND = 128
"""!
@brief ``taskkill`` exit code when no process matched the image name.
"""


def terminate_processes(
    names: Iterable[str],
    *,
    timeout: int = 30,
    dry_run: bool = False,
) -> List[str]:
    """!
    @brief Stop every process image in ``names``.
    @details An image that is not running counts as stopped.
    @returns Image names that are still running or could not be handled.
    """

    human_logger = logging_ext.get_human_logger()
    images = [name for name in (str(name).strip() for name in names) if name]
    if not images:
        return []

    human_logger.info("Requesting termination of %d blocking process(es).", len(images))
    failed: List[str] = []
    for image in images:
        try:
            result = exec_utils.run_command(
                [TASKKILL, "/IM", image, "/F", "/T"],
                event="terminate_process",
                timeout=timeout,
                dry_run=dry_run,
                extra={"process_name": image},
            )
        except (LaunchError, ProcessTimeoutError) as exc:
            human_logger.warning("Could not stop %s: %s", image, exc)
            failed.append(image)
            continue

        if result.returncode == 0:
            if not result.skipped:
                human_logger.info("Terminated %s", image)
        elif result.returncode == TASKKILL_NOT_FOUND:
            human_logger.debug("%s is not running", image)
        else:
            human_logger.warning(
                "taskkill exited with %s for %s: %s",
                result.returncode,
                image,
                result.stderr.strip(),
            )
            failed.append(image)
    return failed


__all__ = ["TASKKILL", "TASKKILL_NOT_FOUND", "terminate_processes"]
