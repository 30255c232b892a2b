"""!
@brief Read-only registry helpers.
@details Thin wrappers around ``winreg`` used by the uninstall scanner. On
hosts without ``winreg`` every call raises :class:`FileNotFoundError`, which
the scanner treats like any other unreadable catalog.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator

try:  # pragma: no cover - exercised through fakes on non-Windows platforms.
    import winreg
except ImportError:  # pragma: no cover - handled gracefully during tests.
    winreg = None  # type: ignore[assignment]


def _ensure_winreg() -> None:
    if winreg is None:  # pragma: no cover - simplifies non-Windows test runs.
        raise FileNotFoundError("Windows registry APIs are unavailable on this platform")


@contextmanager
def open_key(root: int, path: str) -> Iterator[Any]:
    """!
    @brief Open ``root``/``path`` for reading and close the handle afterwards.
    """

    _ensure_winreg()
    handle = winreg.OpenKey(root, path, 0, winreg.KEY_READ)  # type: ignore[union-attr]
    try:
        yield handle
    finally:
        winreg.CloseKey(handle)  # type: ignore[union-attr]


def list_subkeys(root: int, path: str) -> list[str]:
    """!
    @brief Return the subkey names beneath ``root``/``path``.
    @throws OSError When the key cannot be opened or enumerated.
    """

    with open_key(root, path) as handle:
        subkey_count, _, _ = winreg.QueryInfoKey(handle)  # type: ignore[union-attr]
        return [winreg.EnumKey(handle, index) for index in range(subkey_count)]  # type: ignore[union-attr]


def read_values(root: int, path: str) -> Dict[str, Any]:
    """!
    @brief Read every value beneath ``root``/``path``; missing keys yield ``{}``.
    """

    data: Dict[str, Any] = {}
    try:
        with open_key(root, path) as handle:
            _, value_count, _ = winreg.QueryInfoKey(handle)  # type: ignore[union-attr]
            for index in range(value_count):
                name, value, _ = winreg.EnumValue(handle, index)  # type: ignore[union-attr]
                data[name] = value
    except OSError:
        return {}
    return data


def hive_name(root: int) -> str:
    """!
    @brief Provide a friendly identifier for a registry hive.
    """

    mapping = {
        getattr(winreg, "HKEY_LOCAL_MACHINE", 0x80000002): "HKLM",
        getattr(winreg, "HKEY_CURRENT_USER", 0x80000001): "HKCU",
    }
    return mapping.get(root, hex(root))


__all__ = [
    "hive_name",
    "list_subkeys",
    "open_key",
    "read_values",
]
