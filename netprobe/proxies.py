"""Loading, validating and connectivity-testing of proxy lists."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Sequence
from urllib.parse import urlsplit

import httpx
import re

SUPPORTED_PROXY_SCHEMES = ("http", "https", "socks4", "socks4a", "socks5", "socks5h")
MAX_LINE_LENGTH = 2048
MAX_HOST_LENGTH = 253
MAX_FILE_SIZE = 10 * 1024 * 1024
MAX_PROXIES = 100_000
MAX_PARALLEL_PROXIES = 1000
MAX_PROXY_TIMEOUT_SECS = 300

# Schemes whose default port is elided when parsing, so it counts as missing.
_DEFAULT_PORTS = {"http": 80, "https": 443}
_HOST_RE = re.compile(r"[a-zA-Z0-9.\-_:\[\]]+")


class ProxyError(Exception):
    """Raised when a proxy entry, proxy file or proxy check fails."""


@dataclass(frozen=True)
class SkippedProxy:
    """A line of a proxy file that was rejected."""

    line_number: int
    content: str
    reason: str


@dataclass
class ProxyLoadSummary:
    proxies: list[str] = field(default_factory=list)
    skipped: list[SkippedProxy] = field(default_factory=list)


@dataclass(frozen=True)
class ProxyTestFailure:
    proxy: str
    reason: str


@dataclass
class ProxyTestSummary:
    working: list[str] = field(default_factory=list)
    failed: list[ProxyTestFailure] = field(default_factory=list)


def _is_control(ch: str) -> bool:
    code = ord(ch)
    return code < 0x20 or 0x7F <= code <= 0x9F


def validate_proxy_url(url: str) -> None:
    """Check scheme, host and port of a proxy URL; raise ``ProxyError`` if bad."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as exc:
        raise ProxyError(f"invalid proxy syntax: {exc}") from exc

    scheme = parts.scheme.lower()
    if scheme not in SUPPORTED_PROXY_SCHEMES:
        raise ProxyError(f"unsupported proxy scheme '{scheme}'")

    host = parts.hostname
    if not host:
        raise ProxyError("missing proxy host")
    if ":" in host:
        host = f"[{host}]"
    if len(host) > MAX_HOST_LENGTH:
        raise ProxyError(f"proxy host too long (max {MAX_HOST_LENGTH} characters)")
    if not _HOST_RE.fullmatch(host):
        raise ProxyError("invalid proxy host format")

    if port is None or _DEFAULT_PORTS.get(scheme) == port:
        raise ProxyError("missing proxy port")
    if port == 0:
        raise ProxyError("proxy port cannot be 0")


def normalize_proxy(line: str) -> str:
    """Return a proxy entry as a URL, adding ``http://`` when no scheme is given."""
    trimmed = line.strip()
    if not trimmed:
        raise ProxyError("empty line")
    if len(trimmed.encode("utf-8")) > MAX_LINE_LENGTH:
        raise ProxyError(f"proxy line too long (max {MAX_LINE_LENGTH} characters)")

    sanitized = "".join(ch for ch in trimmed if not _is_control(ch) or ch in "\r\n")
    if not sanitized:
        raise ProxyError("proxy line contains only invalid characters")

    candidate = sanitized if "://" in sanitized else f"http://{sanitized}"
    validate_proxy_url(candidate)
    return candidate


def _lines(text: str) -> Iterator[str]:
    pieces = text.split("\n")
    if pieces and pieces[-1] == "":
        pieces.pop()
    for piece in pieces:
        yield piece[:-1] if piece.endswith("\r") else piece


def load_proxies_from_file(filename: str | Path) -> ProxyLoadSummary:
    """Read a proxy list, keeping valid entries and recording rejected ones."""
    filename = str(filename)
    if not filename:
        raise ProxyError("filename cannot be empty")
    if ".." in filename:
        raise ProxyError(f"path traversal detected in filename: '{filename}'")

    try:
        resolved = Path(filename).resolve(strict=True)
    except OSError as exc:
        raise ProxyError(f"failed to resolve file path '{filename}': {exc}") from exc
    if not resolved.is_file():
        raise ProxyError(f"'{filename}' is not a regular file")

    size = resolved.stat().st_size
    if size > MAX_FILE_SIZE:
        raise ProxyError(
            f"file too large (max {MAX_FILE_SIZE} bytes, got {size} bytes)"
        )

    try:
        text = resolved.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ProxyError(f"failed to read proxy file '{filename}': {exc}") from exc

    summary = ProxyLoadSummary()
    line_count = 0
    for line_count, raw_line in enumerate(_lines(text), start=1):
        if line_count > MAX_PROXIES:
            summary.skipped.append(
                SkippedProxy(
                    line_count,
                    f"... (truncated after {MAX_PROXIES} lines)",
                    f"file exceeds maximum line limit ({MAX_PROXIES})",
                )
            )
            break

        trimmed = raw_line.strip()
        if not trimmed or trimmed.startswith("#") or trimmed.startswith("//"):
            continue

        try:
            summary.proxies.append(normalize_proxy(trimmed))
        except ProxyError as exc:
            content = f"{trimmed[:100]}..." if len(trimmed) > 100 else trimmed
            summary.skipped.append(SkippedProxy(line_count, content, str(exc)))

    if not summary.proxies:
        raise ProxyError(
            f"no valid proxies found in '{filename}' (processed {line_count} lines)"
        )
    if len(summary.proxies) > MAX_PROXIES:
        raise ProxyError(
            f"too many proxies (max {MAX_PROXIES}, found {len(summary.proxies)}). "
            f"Truncated to {MAX_PROXIES}"
        )
    return summary


def _check_absolute_url(url: str) -> None:
    try:
        parts = urlsplit(url)
        parts.port
    except ValueError as exc:
        raise ValueError(str(exc)) from exc
    if not parts.scheme or not parts.scheme[0].isalpha():
        raise ValueError("relative URL without a base")


async def check_proxy(proxy: str, test_url: str, timeout: float) -> None:
    """Fetch ``test_url`` through ``proxy``; raise ``ProxyError`` unless it succeeds."""
    if not proxy:
        raise ProxyError("proxy cannot be empty")
    if not test_url:
        raise ProxyError("test URL cannot be empty")
    try:
        _check_absolute_url(test_url)
    except ValueError as exc:
        raise ProxyError(f"invalid test URL '{test_url}': {exc}") from exc

    try:
        client = httpx.AsyncClient(
            proxy=proxy, verify=False, timeout=timeout, trust_env=False
        )
    except (ValueError, ImportError, httpx.HTTPError) as exc:
        raise ProxyError(f"invalid proxy '{proxy}': {exc}") from exc

    async with client:
        try:
            response = await client.get(test_url)
        except (httpx.HTTPError, OSError) as exc:
            raise ProxyError(f"request via proxy '{proxy}' failed: {exc}") from exc

    if not response.is_success:
        raise ProxyError(
            f"received HTTP status {response.status_code} {response.reason_phrase} "
            f"while hitting {test_url}"
        )


async def test_proxies(
    proxies: Sequence[str],
    test_url: str,
    timeout_secs: int,
    max_parallel: int,
) -> ProxyTestSummary:
    """Check proxies concurrently; results are listed in completion order."""
    if not proxies:
        return ProxyTestSummary()

    timeout_secs = max(1, min(timeout_secs, MAX_PROXY_TIMEOUT_SECS))
    max_parallel = max(1, min(max_parallel, MAX_PARALLEL_PROXIES))
    to_test = list(proxies[:MAX_PROXIES])

    test_url = test_url.strip()
    if not test_url:
        return ProxyTestSummary(
            failed=[ProxyTestFailure(p, "test URL is empty") for p in to_test]
        )
    try:
        _check_absolute_url(test_url)
    except ValueError as exc:
        return ProxyTestSummary(
            failed=[ProxyTestFailure(p, f"invalid test URL: {exc}") for p in to_test]
        )

    semaphore = asyncio.Semaphore(max_parallel)

    async def probe(proxy: str) -> tuple[str, str | None]:
        async with semaphore:
            try:
                await check_proxy(proxy, test_url, float(timeout_secs))
            except Exception as exc:  # any failure marks the proxy as unusable
                return proxy, str(exc)
        return proxy, None

    summary = ProxyTestSummary()
    for finished in asyncio.as_completed([probe(p) for p in to_test]):
        proxy, reason = await finished
        if reason is None:
            summary.working.append(proxy)
        else:
            summary.failed.append(ProxyTestFailure(proxy, reason))
    return summary


test_proxies.__test__ = False