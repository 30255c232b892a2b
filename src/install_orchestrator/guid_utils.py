"""!
@brief Product-code validation helpers.
@details Windows Installer product codes are GUIDs written in braces:
``{XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX}``. Only identifiers in exactly that
shape are handed to ``msiexec``; anything else found in an uninstall catalog
is ignored by the scanner.
"""

from __future__ import annotations

import re
from typing import Final

_PRODUCT_CODE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"\{[0-9A-Fa-f]{8}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{4}-[0-9A-Fa-f]{12}\}"
)

# msiexec maintenance commands as written to UninstallString values.
_MSIEXEC_TOKEN: Final[re.Pattern[str]] = re.compile(r"msiexec(?:\.exe)?", re.IGNORECASE)
_MODE_SWITCH: Final[re.Pattern[str]] = re.compile(r"/[ix]", re.IGNORECASE)


class GuidError(ValueError):
    """!
    @brief Raised when a string is not a well-formed product code.
    """


def is_product_code(token: str) -> bool:
    """!
    @brief Check whether ``token`` is a braced GUID.
    @param token Candidate identifier.
    @return ``True`` only for the strict ``{8-4-4-4-12}`` hexadecimal form.
    """
    return bool(token) and _PRODUCT_CODE_PATTERN.fullmatch(token) is not None


def normalize_product_code(token: str) -> str:
    """!
    @brief Upper-case a product code after validating it.
    @throws GuidError If ``token`` is not a braced GUID.
    """
    cleaned = token.strip()
    if not is_product_code(cleaned):
        raise GuidError(f"Invalid product code: {token}")
    return cleaned.upper()


def product_code_from_uninstall_string(uninstall_string: str) -> str:
    """!
    @brief Reduce an ``UninstallString`` value to its product-code token.
    @details ``MsiExec.exe /X{GUID}`` becomes ``{GUID}``. The returned text is
    not validated; callers check it with :func:`is_product_code`.
    """
    text = _MSIEXEC_TOKEN.sub("", uninstall_string or "")
    text = _MODE_SWITCH.sub("", text)
    return text.strip().strip('"').strip()


__all__ = [
    "GuidError",
    "is_product_code",
    "normalize_product_code",
    "product_code_from_uninstall_string",
]
