"""Probe which HTTP methods a set of web endpoints accept."""

from __future__ import annotations

import argparse
import asyncio
import re
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Sequence
from urllib.parse import urlsplit

import httpx

METHODS = (
    "GET",
    "POST",
    "HEAD",
    "OPTIONS",
    "PUT",
    "DELETE",
    "PATCH",
    "TRACE",
    "CONNECT",
)
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
TEST_BODY = "HTTP method scanner test"
USER_AGENT = "netprobe-HTTP-Method-Scanner/1.0"
DEFAULT_TIMEOUT_SECS = 10
MAX_REDIRECTS = 5

_BANNER = (
    "\n"
    "+------------------------------------------------------+\n"
    "|         HTTP METHOD CAPABILITY SCANNER               |\n"
    "|          Checks support for common verbs             |\n"
    "+------------------------------------------------------+\n"
)

_SPLIT_RE = re.compile(r"[,\n;]")
_PORT_SPLIT_RE = re.compile(r"[,; ]")
_UINT_RE = re.compile(r"\+?[0-9]+")
_SCHEME_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*")
_SPECIAL_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}

# Errors that a single request can end with; any of them is reported, not raised.
REQUEST_ERRORS = (httpx.HTTPError, httpx.InvalidURL, OSError, ValueError)


@dataclass
class MethodResult:
    """Outcome of one HTTP method against one target."""

    method: str
    status: int | None = None
    reason: str = ""
    ok: bool = False
    error: str | None = None
    duration_ms: int = 0

    @property
    def status_text(self) -> str:
        if self.status is None:
            return ""
        return f"{self.status} {self.reason}".strip()


@dataclass
class TargetResult:
    """All method results for one target URL."""

    target: str
    results: list[MethodResult] = field(default_factory=list)


def split_targets(text: str) -> list[str]:
    """Split on ``,``, ``;`` and newlines, dropping blanks and trailing slashes."""
    items = (piece.strip().rstrip("/") for piece in _SPLIT_RE.split(text))
    return [item for item in items if item]


def collect_initial_targets(initial_target: str) -> list[str]:
    trimmed = initial_target.strip()
    if not trimmed or trimmed == "http_method_scanner":
        return []
    return split_targets(trimmed)


def load_targets_from_file(path: str | Path) -> list[str]:
    """Read targets from a file; raises ``OSError`` when it cannot be read."""
    try:
        data = Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise OSError(f"Failed to read target file: {path}: {exc}") from exc
    return split_targets(data)


def normalize_targets(targets: Iterable[str], default_scheme: str) -> list[str]:
    """Give scheme-less targets ``default_scheme`` and drop duplicates, keeping order."""
    seen: set[str] = set()
    normalized: list[str] = []
    for raw in targets:
        target = raw.strip()
        if not target:
            continue
        formatted = target if "://" in target else f"{default_scheme}://{target}"
        if formatted not in seen:
            seen.add(formatted)
            normalized.append(formatted)
    return normalized


def _url_with_port(target: str, port: int) -> str | None:
    """Return ``target`` with ``port`` set, or ``None`` if the URL takes no port.

    Raises ``ValueError`` when ``target`` does not parse as a URL at all.
    """
    scheme, sep, rest = target.partition(":")
    if not sep or not _SCHEME_RE.fullmatch(scheme):
        raise ValueError("relative URL without a base")
    scheme = scheme.lower()
    special = scheme in _SPECIAL_PORTS
    if scheme == "file" or not rest.startswith("//"):
        return None

    parts = urlsplit(target)
    parts.port  # raises ValueError for an invalid port
    host = parts.hostname
    if not host:
        if special:
            raise ValueError("empty host")
        return None
    if ":" in host:
        host = f"[{host}]"

    userinfo, at, _ = parts.netloc.rpartition("@")
    netloc = f"{userinfo}@{host}" if at else host
    if _SPECIAL_PORTS.get(scheme) != port:
        netloc = f"{netloc}:{port}"

    path = parts.path or ("/" if special else "")
    query = f"?{parts.query}" if parts.query else ""
    fragment = f"#{parts.fragment}" if parts.fragment else ""
    return f"{scheme}://{netloc}{path}{query}{fragment}"


def expand_targets_with_ports(targets: Sequence[str], ports: Sequence[int]) -> list[str]:
    """Combine every target with every port, without duplicates."""
    expanded: list[str] = []
    seen: set[str] = set()
    for target in targets:
        for port in ports:
            try:
                candidate = _url_with_port(target, port)
            except ValueError:
                candidate = f"{target}:{port}"
            if candidate is not None and candidate not in seen:
                seen.add(candidate)
                expanded.append(candidate)
    return expanded


def parse_ports(text: str) -> list[int]:
    """Parse ports separated by ``,``, ``;`` or spaces; invalid ones are skipped."""
    ports: list[int] = []
    for part in _PORT_SPLIT_RE.split(text):
        token = part.strip()
        if not token:
            continue
        if _UINT_RE.fullmatch(token) and int(token) <= 0xFFFF:
            port = int(token)
            if port not in ports:
                ports.append(port)
        else:
            print(f"[!] Skipping invalid port '{token}'.")
    return ports


async def scan_target(client: httpx.AsyncClient, target: str) -> TargetResult:
    """Send every method in ``METHODS`` to ``target`` and record the outcomes."""
    result = TargetResult(target)
    for method in METHODS:
        body = TEST_BODY if method in BODY_METHODS else None
        start = time.perf_counter()
        try:
            response = await client.request(method, target, content=body)
        except REQUEST_ERRORS as exc:
            elapsed = int((time.perf_counter() - start) * 1000)
            result.results.append(
                MethodResult(
                    method,
                    error=str(exc) or type(exc).__name__,
                    duration_ms=elapsed,
                )
            )
            continue
        elapsed = int((time.perf_counter() - start) * 1000)
        result.results.append(
            MethodResult(
                method,
                status=response.status_code,
                reason=response.reason_phrase,
                ok=response.is_success,
                duration_ms=elapsed,
            )
        )
    return result


def _format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    text = moment.strftime("%Y-%m-%d %H:%M:%S")
    micro = moment.microsecond
    if micro:
        text += f".{micro // 1000:03d}" if micro % 1000 == 0 else f".{micro:06d}"
    return f"{text} UTC"


def render_report(results: Sequence[TargetResult], generated_at: datetime) -> str:
    lines = [
        "HTTP Method Scanner Report",
        f"Generated at: {_format_timestamp(generated_at)}",
        "",
    ]
    for target in results:
        lines.append(f"Target: {target.target}")
        for method in target.results:
            if method.status is not None:
                ok = "true" if method.ok else "false"
                lines.append(
                    f"  - {method.method:<7} status: {method.status:<5} "
                    f"success: {ok:<5} time: {method.duration_ms} ms"
                )
            elif method.error is not None:
                lines.append(
                    f"  - {method.method:<7} error: {method.error} "
                    f"time: {method.duration_ms} ms"
                )
        lines.append("")
    return "\n".join(lines)


def write_report(path: str | Path, results: Sequence[TargetResult]) -> None:
    report = render_report(results, datetime.now(timezone.utc))
    try:
        Path(path).write_text(report, encoding="utf-8")
    except OSError as exc:
        raise OSError(f"Failed to write report to {path}: {exc}") from exc


def _prompt(message: str) -> str:
    try:
        return input(message).strip()
    except EOFError:
        return ""


def _prompt_bool(message: str, default: bool) -> bool:
    answer = _prompt(message).lower()
    if not answer:
        return default
    if answer in ("y", "yes", "true"):
        return True
    if answer in ("n", "no", "false"):
        return False
    print(f"[!] Invalid input, using default ({'yes' if default else 'no'})")
    return default


def _prompt_with_default(message: str, default: str) -> str:
    return _prompt(message) or default


def _prompt_ports() -> list[int]:
    text = _prompt(
        "Enter port(s) to tunnel through (comma-separated, e.g., 80,8080; "
        "leave blank to skip): "
    )
    if not text:
        print("[!] No ports provided; skipping port tunneling.")
        return []
    ports = parse_ports(text)
    if not ports:
        print("[!] No valid ports parsed; skipping port tunneling.")
    return ports


def _describe(method: MethodResult, target: str, verbose: bool) -> str:
    if method.status is not None:
        if verbose:
            return (
                f"  [{method.method}] {target} -> {method.status_text} "
                f"({method.duration_ms} ms)"
            )
        return f"  [{method.method}] {method.status_text}"
    if verbose:
        return (
            f"  [{method.method}] {target} -> error: {method.error} "
            f"({method.duration_ms} ms)"
        )
    return f"  [{method.method}] error: {method.error}"


async def run(initial_target: str) -> None:
    """Interactively gather targets and options, then scan every target."""
    print(_BANNER)
    targets = collect_initial_targets(initial_target)

    additional = _prompt("Enter additional comma-separated targets (optional): ")
    if additional:
        targets.extend(split_targets(additional))

    file_path = _prompt("Path to file with targets (optional): ")
    if file_path:
        targets.extend(load_targets_from_file(file_path))

    scheme_answer = _prompt("Preferred scheme (http/https, default https): ").lower()
    scheme = "http" if scheme_answer == "http" else "https"

    use_ports = _prompt_bool(
        "Test via specific ports (port tunneling)? (yes/no, default no): ", False
    )
    ports = _prompt_ports() if use_ports else []

    timeout_answer = _prompt("Request timeout in seconds (default 10): ")
    timeout_secs = DEFAULT_TIMEOUT_SECS
    if _UINT_RE.fullmatch(timeout_answer) and int(timeout_answer) > 0:
        timeout_secs = int(timeout_answer)

    verbose = _prompt_bool("Enable verbose output? (yes/no, default no): ", False)
    save_output = _prompt_bool("Save results to file? (yes/no, default yes): ", True)

    normalized = normalize_targets(targets, scheme)
    if ports:
        expanded = expand_targets_with_ports(normalized, ports)
        if expanded:
            normalized = expanded
        else:
            print(
                "[!] No valid port combinations derived; "
                "continuing without port tunneling."
            )
    if not normalized:
        raise ValueError("No valid targets provided")
    normalized.sort()

    all_results: list[TargetResult] = []
    async with httpx.AsyncClient(
        headers={"User-Agent": USER_AGENT},
        timeout=float(timeout_secs),
        follow_redirects=True,
        max_redirects=MAX_REDIRECTS,
    ) as client:
        for target in normalized:
            print(f"\n=== Target: {target} ===")
            result = await scan_target(client, target)
            for method in result.results:
                print(_describe(method, target, verbose))
            all_results.append(result)

    if save_output:
        default_name = (
            f"http_method_scan_{datetime.now(timezone.utc):%Y%m%d_%H%M%S}.txt"
        )
        output_path = _prompt_with_default(
            "Enter output file path (press Enter for default): ", default_name
        )
        write_report(output_path, all_results)
        print(f"[*] Results saved to {output_path}")

    print("\n[*] Scan complete.")


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="netprobe-http-methods",
        description="Check which HTTP methods web endpoints accept.",
    )
    parser.add_argument("target", nargs="?", default="", help="comma-separated targets")
    args = parser.parse_args(argv)
    try:
        asyncio.run(run(args.target))
    except (ValueError, OSError) as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 1
    return 0