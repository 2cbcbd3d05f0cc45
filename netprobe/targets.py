"""Normalisation of scan targets into ``host``, ``host:port`` or ``[ipv6]`` form."""

from __future__ import annotations

import re
import unicodedata

MAX_TARGET_LENGTH = 2048

_IPV6_CHARS = re.compile(r"[0-9a-fA-F:]+")
_HOST_CHARS = re.compile(r"[a-zA-Z0-9.\-_:]+")


def _is_control(ch: str) -> bool:
    return unicodedata.category(ch) == "Cc"


def normalize_target(raw: str) -> str:
    """Validate a target and return it as ``host[:port]`` or ``[ipv6][:port]``.

    Raises ``ValueError`` when the target is empty, too long or malformed.
    """
    trimmed = raw.strip()
    if not trimmed:
        raise ValueError("Target cannot be empty")

    size = len(trimmed.encode("utf-8"))
    if size > MAX_TARGET_LENGTH:
        raise ValueError(
            f"Target too long (max {MAX_TARGET_LENGTH} characters, got {size})"
        )

    kept = "".join(ch for ch in trimmed if not _is_control(ch) or ch in " \t")
    sanitized = " ".join(kept.split())
    if not sanitized:
        raise ValueError("Target contains only invalid characters")

    if ".." in sanitized or "//" in sanitized:
        raise ValueError("Invalid target format: contains path traversal characters")

    if "]:" in sanitized or sanitized.startswith("["):
        if sanitized.startswith("[") and "]" not in sanitized:
            raise ValueError("Invalid IPv6 format: missing closing bracket")
        if not sanitized.strip("[]"):
            raise ValueError("Invalid target: empty address")
        return sanitized

    is_ipv6 = sanitized.count(":") >= 2 and "." not in sanitized
    if is_ipv6:
        addr_part = sanitized.split(":", 1)[0]
        if addr_part and not _IPV6_CHARS.fullmatch(addr_part):
            raise ValueError(f"Invalid IPv6 address format: '{sanitized}'")
        return f"[{sanitized}]"

    if " " in sanitized:
        raise ValueError("Invalid target format: contains spaces")
    if not _HOST_CHARS.fullmatch(sanitized):
        raise ValueError("Invalid target format: contains invalid characters")
    return sanitized