"""!
@brief Install Orchestrator package root.
@details Modules under this namespace run installer processes, classify their
exit codes, scan the uninstall catalogs for removable products, and record
results to console and log files.
"""

__all__ = [
    "main",
    "orchestrator",
    "exit_codes",
    "exec_utils",
    "result_log",
    "inventory",
    "registry_tools",
    "guid_utils",
    "processes",
    "retry",
    "config",
    "errors",
    "logging_ext",
    "constants",
    "version",
]
