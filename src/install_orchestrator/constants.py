"""!
@brief Static data shared by the orchestration modules.
@details Centralises registry roots, ``msiexec`` switches, well-known Windows
Installer return codes, and their textual descriptions so the classifier,
scanner, and orchestrator work from a single source of truth.
"""
from __future__ import annotations

from typing import Mapping, Tuple

try:  # pragma: no cover - Windows registry handles are optional on test hosts.
    import winreg
except ImportError:  # pragma: no cover - non-Windows hosts use the raw values.
    winreg = None  # type: ignore[assignment]


if winreg is not None:  # pragma: no branch - deterministic assignments.
    HKLM = winreg.HKEY_LOCAL_MACHINE
    HKCU = winreg.HKEY_CURRENT_USER
else:  # pragma: no cover - exercised implicitly in non-Windows CI.
    HKLM = 0x80000002
    HKCU = 0x80000001


UNINSTALL_ROOTS: Tuple[Tuple[int, str], ...] = (
    (HKLM, r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall"),
    (HKLM, r"SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall"),
)
"""!
@brief 64-bit and 32-bit software inventory catalogs, scanned in this order.
"""

DEFAULT_INSTALLER = "msiexec.exe"

QUIET_ARGS: Tuple[str, ...] = ("/qn", "/norestart")
"""!
@brief UI and reboot suppression switches appended to every installer call.
"""

INSTALL_SWITCH = "/i"
PATCH_SWITCH = "/update"
UNINSTALL_SWITCH = "/x"
PACKAGE_SWITCH = "/package"
VERBOSE_LOG_SWITCH = "/l*v"

ERROR_SUCCESS = 0
ERROR_UNKNOWN_PRODUCT = 1605
ERROR_INSTALL_FAILURE = 1603
ERROR_PRODUCT_UNINSTALLED = 1614
ERROR_INSTALL_ALREADY_RUNNING = 1618
ERROR_SUCCESS_REBOOT_INITIATED = 1641
ERROR_INSTALL_ALREADY_INSTALLED = 1707
ERROR_SUCCESS_REBOOT_REQUIRED = 3010

MSI_ERROR_DESCRIPTIONS: Mapping[int, str] = {
    0: "The action completed successfully.",
    13: "The data is invalid.",
    87: "One of the parameters was invalid.",
    1601: "The Windows Installer service could not be accessed.",
    1602: "The user cancelled installation.",
    1603: "A fatal error occurred during installation.",
    1604: "Installation suspended, incomplete.",
    1605: "This action is only valid for products that are currently installed.",
    1606: "The feature identifier is not registered.",
    1607: "The component identifier is not registered.",
    1608: "This is an unknown property.",
    1609: "The handle is in an invalid state.",
    1610: "The configuration data for this product is corrupt.",
    1612: "The installation source for this product is not available.",
    1614: "The product is uninstalled.",
    1618: "Another installation is already in progress.",
    1619: "This installation package could not be opened.",
    1620: "This installation package could not be opened. The package is invalid.",
    1622: "There was an error opening the installation log file.",
    1623: "This language of this installation package is not supported by your system.",
    1624: "There was an error applying transforms.",
    1625: "This installation is forbidden by system policy.",
    1633: "This installation package is not supported on this platform.",
    1635: "This patch package could not be opened.",
    1636: "This patch package could not be opened. The package is invalid.",
    1638: "Another version of this product is already installed.",
    1639: "Invalid command line argument.",
    1640: "Installation from a Terminal Server client session is not permitted.",
    1641: "The installer has initiated a restart.",
    1642: "The upgrade patch cannot be installed because the program to be upgraded may be missing.",
    1643: "The patch package is not permitted by system policy.",
    1644: "One or more customizations are not permitted by system policy.",
    1646: "The patch package is not a removable patch package.",
    1707: "Installation operation completed successfully.",
    1935: "An error occurred during the installation of assembly components.",
    3010: "A restart is required to complete the install.",
}
"""!
@brief Windows Installer return-code descriptions used when the host cannot
format the message itself.
"""

__all__ = [
    "DEFAULT_INSTALLER",
    "ERROR_INSTALL_ALREADY_INSTALLED",
    "ERROR_INSTALL_ALREADY_RUNNING",
    "ERROR_INSTALL_FAILURE",
    "ERROR_PRODUCT_UNINSTALLED",
    "ERROR_SUCCESS",
    "ERROR_SUCCESS_REBOOT_INITIATED",
    "ERROR_SUCCESS_REBOOT_REQUIRED",
    "ERROR_UNKNOWN_PRODUCT",
    "HKCU",
    "HKLM",
    "INSTALL_SWITCH",
    "MSI_ERROR_DESCRIPTIONS",
    "PACKAGE_SWITCH",
    "PATCH_SWITCH",
    "QUIET_ARGS",
    "UNINSTALL_ROOTS",
    "UNINSTALL_SWITCH",
    "VERBOSE_LOG_SWITCH",
]
