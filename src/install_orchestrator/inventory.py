"""!
@brief Uninstall-catalog scanning.
@details Walks the 64-bit and 32-bit ``Uninstall`` registry catalogs, matches
``DisplayName`` values against a caller pattern, and yields the product codes
that can be handed to ``msiexec /x``. A catalog that cannot be read is logged
and skipped; entries without a well-formed product code are skipped quietly.
"""
from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Mapping, Protocol, Sequence, Tuple

from . import constants, guid_utils, logging_ext, registry_tools
from .errors import InventoryAccessError
from .result_log import Channel, ResultLogger

_WILDCARDS = frozenset("*?[")


class RegistryReader(Protocol):
    """!
    @brief Registry access used by :class:`UninstallScanner`.
    """

    def list_subkeys(self, root: int, path: str) -> Sequence[str]:
        ...

    def read_values(self, root: int, path: str) -> Mapping[str, Any]:
        ...


@dataclass(frozen=True)
class UninstallCandidate:
    """!
    @brief Installed product eligible for removal.
    """

    product_code: str
    display_name: str
    source: str


@dataclass
class ScanReport:
    """!
    @brief Everything a scan found, skipped, or could not read.
    """

    pattern: str
    candidates: List[UninstallCandidate] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)
    inaccessible: List[str] = field(default_factory=list)


def matches_pattern(display_name: str, pattern: str) -> bool:
    """!
    @brief Case-insensitive display-name match.
    @details Patterns containing ``*``, ``?`` or ``[`` use shell-style wildcard
    semantics over the whole name; plain text matches as a substring.
    """

    name = display_name.casefold()
    needle = pattern.casefold()
    if _WILDCARDS.intersection(needle):
        return fnmatch.fnmatchcase(name, needle)
    return needle in name


class UninstallScanner:
    """!
    @brief Find installed products whose display name matches a pattern.
    """

    def __init__(
        self,
        *,
        roots: Sequence[Tuple[int, str]] = constants.UNINSTALL_ROOTS,
        reader: RegistryReader | None = None,
        result_logger: ResultLogger | None = None,
        report_malformed: bool = False,
    ) -> None:
        self.roots = tuple(roots)
        self.reader: RegistryReader = reader or registry_tools  # type: ignore[assignment]
        self.result_logger = result_logger or ResultLogger()
        self.report_malformed = report_malformed

    def scan(self, pattern: str) -> ScanReport:
        """!
        @brief Collect every catalog entry matching ``pattern``.
        @details Roots are visited in order and a product code seen in an
        earlier root is not reported again.
        @throws ValueError When ``pattern`` is blank.
        @throws InventoryAccessError When no catalog could be read at all.
        """

        if not pattern or not pattern.strip():
            raise ValueError("An uninstall pattern must not be blank")

        machine_logger = logging_ext.get_machine_logger()
        report = ScanReport(pattern=pattern)
        seen: set[str] = set()

        for hive, base in self.roots:
            handle = f"{registry_tools.hive_name(hive)}\\{base}"
            try:
                subkeys = list(self.reader.list_subkeys(hive, base))
            except OSError as exc:
                report.inaccessible.append(handle)
                self.result_logger.log(
                    f"Unable to read uninstall catalog {handle}: {exc}", Channel.WARNING
                )
                continue

            for subkey in subkeys:
                values = self.reader.read_values(hive, f"{base}\\{subkey}")
                display_name = str(values.get("DisplayName") or "").strip()
                if not display_name or not matches_pattern(display_name, pattern):
                    continue

                identifier = self._identifier_for(subkey, values)
                if not guid_utils.is_product_code(identifier):
                    report.skipped.append((display_name, identifier))
                    channel = Channel.WARNING if self.report_malformed else Channel.VERBOSE
                    self.result_logger.log(
                        f"Skipping '{display_name}': no usable product code ({identifier or 'empty'})",
                        channel,
                    )
                    continue

                product_code = guid_utils.normalize_product_code(identifier)
                if product_code in seen:
                    continue
                seen.add(product_code)
                report.candidates.append(
                    UninstallCandidate(
                        product_code=product_code,
                        display_name=display_name,
                        source=f"{handle}\\{subkey}",
                    )
                )

        machine_logger.info(
            "inventory_scan",
            extra={
                "event": "inventory_scan",
                "pattern": pattern,
                "candidates": [candidate.product_code for candidate in report.candidates],
                "skipped": len(report.skipped),
                "inaccessible": list(report.inaccessible),
            },
        )

        if self.roots and len(report.inaccessible) == len(self.roots):
            raise InventoryAccessError(report.inaccessible)
        return report

    def candidates(self, pattern: str) -> Iterator[UninstallCandidate]:
        """!
        @brief Yield the well-formed candidates matching ``pattern``.
        """

        yield from self.scan(pattern).candidates

    @staticmethod
    def _identifier_for(subkey: str, values: Mapping[str, Any]) -> str:
        if guid_utils.is_product_code(subkey):
            return subkey
        return guid_utils.product_code_from_uninstall_string(str(values.get("UninstallString") or ""))


__all__ = [
    "RegistryReader",
    "ScanReport",
    "UninstallCandidate",
    "UninstallScanner",
    "matches_pattern",
]
