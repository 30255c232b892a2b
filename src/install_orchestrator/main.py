"""!
@brief Command-line entry point for Install Orchestrator.
@details Parses the operation subcommands, resolves configuration, sets up the
human/machine logging pipeline, and translates operation results and
orchestration faults into process exit codes: ``0`` for success, the raw
installer code for classified failures, and the phase-banded
:class:`~install_orchestrator.exit_codes.FaultCode` values for internal faults.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Iterable, Optional

from . import logging_ext, processes, version
from .config import OrchestratorConfig, resolve_config
from .errors import (
    ConfigError,
    InventoryAccessError,
    LaunchError,
    OperationFailedError,
    ProcessTimeoutError,
)
from .exit_codes import FaultCode, evaluate
from .orchestrator import InstallOrchestrator, OperationResult, aggregate_exit_code
from .result_log import Channel, ResultLogger
from .retry import run_with_retries


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    """!
    @brief Options shared by every subcommand.
    """

    parser.add_argument("--config", metavar="FILE", help="JSON configuration file.")
    parser.add_argument("--log-file", metavar="FILE", help="Append result lines to this file.")
    parser.add_argument("--logdir", metavar="DIR", help="Directory for human/JSONL log output.")
    parser.add_argument("--installer", metavar="EXE", help="Installer executable (default msiexec.exe).")
    parser.add_argument(
        "--success-code",
        metavar="CODE[=CLASS]",
        action="append",
        dest="success_codes",
        help="Extra exit code classification (repeatable); CLASS defaults to success.",
    )
    parser.add_argument(
        "--busy-retryable",
        action="store_true",
        default=None,
        help="Classify 1618 (another installation in progress) as retryable.",
    )
    parser.add_argument("--retries", metavar="N", type=int, help="Retries for retryable outcomes.")
    parser.add_argument("--retry-delay", metavar="SEC", type=float, help="Base retry backoff in seconds.")
    parser.add_argument(
        "--close-process",
        metavar="NAME",
        action="append",
        dest="close_processes",
        help="Terminate this process image before running (repeatable).",
    )
    parser.add_argument("--timeout", metavar="SEC", type=float, help="Kill the installer after SEC seconds.")
    parser.add_argument("--installer-log-dir", metavar="DIR", help="Write verbose installer logs here.")
    parser.add_argument(
        "--report-malformed",
        action="store_true",
        default=None,
        help="Warn about matching entries without a usable product code.",
    )
    parser.add_argument("--dry-run", action="store_true", default=None, help="Log commands without running them.")
    parser.add_argument("--quiet", action="store_true", help="Minimal console output (errors only).")
    parser.add_argument("--verbose", action="store_true", help="Show verbose diagnostics on the console.")
    parser.add_argument("--json", action="store_true", help="Mirror structured events to stdout.")
    parser.add_argument("--no-color", action="store_true", default=None, help="Disable ANSI color codes.")


def build_arg_parser() -> argparse.ArgumentParser:
    """!
    @brief Create the top-level parser and its operation subcommands.
    """

    parser = argparse.ArgumentParser(prog="install-orchestrator", add_help=True)
    metadata = version.build_info()
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"{metadata['version']} ({metadata['build']})",
    )
    common = argparse.ArgumentParser(add_help=False)
    _add_common_options(common)

    subcommands = parser.add_subparsers(dest="command", metavar="COMMAND")
    subcommands.required = True

    install = subcommands.add_parser("install", parents=[common], help="Install an MSI package.")
    install.add_argument("path", help="Path to the package.")

    patch = subcommands.add_parser("patch", parents=[common], help="Apply an MSP patch.")
    patch.add_argument("path", help="Path to the patch package.")

    remove_patch = subcommands.add_parser(
        "remove-patch", parents=[common], help="Remove a patch from an installed product."
    )
    remove_patch.add_argument("product_code", help="Product code of the patched product.")
    remove_patch.add_argument("patch_code", help="Patch code to remove.")

    uninstall = subcommands.add_parser("uninstall", parents=[common], help="Uninstall a product code.")
    uninstall.add_argument("product_code", help="Braced product GUID.")

    by_pattern = subcommands.add_parser(
        "uninstall-pattern",
        parents=[common],
        help="Uninstall every product whose display name matches PATTERN.",
    )
    by_pattern.add_argument("pattern", help="Display-name pattern (wildcards * and ? allowed).")

    for operation_parser in (install, patch, remove_patch, uninstall, by_pattern):
        operation_parser.add_argument(
            "--arg",
            metavar="ARG",
            action="append",
            dest="extra_args",
            default=[],
            help="Extra installer argument appended verbatim (repeatable).",
        )
    for single_parser in (install, patch, remove_patch, uninstall):
        single_parser.add_argument(
            "--continue-on-failure",
            action="store_true",
            help="Report failures without treating them as terminating.",
        )

    classify = subcommands.add_parser(
        "classify", parents=[common], help="Print the classification of an exit code."
    )
    classify.add_argument("code", type=int, help="Raw installer exit code.")
    return parser


def _bootstrap_logging(args: argparse.Namespace, config: OrchestratorConfig) -> logging.Logger:
    """!
    @brief Initialise human and machine loggers for this run.
    """

    level = logging.DEBUG if getattr(args, "verbose", False) else logging.INFO
    human_logger, _ = logging_ext.setup_logging(
        config.logdir,
        json_to_stdout=getattr(args, "json", False),
        console=sys.stderr,
        level=level,
    )
    if getattr(args, "quiet", False):
        human_logger.setLevel(logging.ERROR)
    return human_logger


def _run_single(
    args: argparse.Namespace,
    orchestrator: InstallOrchestrator,
    config: OrchestratorConfig,
) -> OperationResult:
    extra_args = list(getattr(args, "extra_args", []) or [])
    allow = bool(getattr(args, "continue_on_failure", False))

    def _action() -> OperationResult:
        if args.command == "install":
            return orchestrator.install(args.path, extra_args, allow_continue_on_failure=allow)
        if args.command == "patch":
            return orchestrator.patch(args.path, extra_args, allow_continue_on_failure=allow)
        if args.command == "remove-patch":
            return orchestrator.remove_patch(
                args.product_code, args.patch_code, extra_args, allow_continue_on_failure=allow
            )
        return orchestrator.uninstall(args.product_code, extra_args, allow_continue_on_failure=allow)

    return run_with_retries(_action, retries=config.retries, delay=config.retry_delay)


def run(
    args: argparse.Namespace,
    config: OrchestratorConfig,
    *,
    orchestrator: InstallOrchestrator | None = None,
    result_logger: ResultLogger | None = None,
) -> int:
    """!
    @brief Execute the parsed subcommand and return the process exit code.
    """

    result_logger = result_logger or ResultLogger(
        config.log_destination,
        use_color=config.use_color,
        quiet=bool(getattr(args, "quiet", False)),
    )

    if args.command == "classify":
        outcome = evaluate(args.code, config.classification_table())
        result_logger.log(outcome.classification.name, Channel.STDOUT)
        result_logger.log(outcome.message, Channel.VERBOSE)
        return 0

    if config.close_processes:
        blocking = processes.terminate_processes(config.close_processes, dry_run=config.dry_run)
        if blocking:
            result_logger.log(
                "Could not terminate blocking process(es): " + ", ".join(blocking),
                Channel.ERROR,
            )
            return int(FaultCode.BLOCKING_PROCESS)

    orchestrator = orchestrator or InstallOrchestrator(config, result_logger=result_logger)
    try:
        if args.command == "uninstall-pattern":
            results = orchestrator.uninstall_by_pattern(
                args.pattern, list(getattr(args, "extra_args", []) or [])
            )
            exit_code = aggregate_exit_code(results)
        else:
            result = _run_single(args, orchestrator, config)
            exit_code = result.exit_code
            if result.requires_reboot:
                result_logger.log("A restart is required to complete the operation.", Channel.WARNING)
    except OperationFailedError as exc:
        exit_code = exc.result.exit_code
    except LaunchError:
        exit_code = int(FaultCode.LAUNCH_FAILURE)
    except ProcessTimeoutError:
        exit_code = int(FaultCode.TIMEOUT)
    except InventoryAccessError as exc:
        result_logger.log(str(exc), Channel.ERROR)
        exit_code = int(FaultCode.INVENTORY_UNREADABLE)
    except ValueError as exc:
        result_logger.log(str(exc), Channel.ERROR)
        exit_code = int(FaultCode.CONFIG_INVALID)

    if exit_code == 0 and result_logger.write_failures:
        return int(FaultCode.LOG_WRITE_FAILURE)
    return exit_code


def main(argv: Optional[Iterable[str]] = None) -> int:
    """!
    @brief Entry point for the ``install-orchestrator`` console script.
    @returns Process exit code integer.
    """

    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    try:
        config = resolve_config(args)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return int(FaultCode.CONFIG_INVALID)

    human_logger = _bootstrap_logging(args, config)
    human_logger.debug("Running %s", args.command)
    return run(args, config)


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
