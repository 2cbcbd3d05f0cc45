"""Fetch and report the HTML page titles of web endpoints."""

from __future__ import annotations

import argparse
import asyncio
import re
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Sequence

import httpx

from netprobe import http_methods as _methods
from netprobe.http_methods import (
    MAX_REDIRECTS,
    REQUEST_ERRORS,
    _format_timestamp,
    _prompt,
    _prompt_bool,
    _prompt_ports,
    _prompt_with_default,
    _UINT_RE,
)

__all__ = [
    "TitleResult",
    "sanitize_title",
    "extract_title",
    "split_targets",
    "collect_initial_targets",
    "load_targets_from_file",
    "normalize_targets",
    "expand_targets_with_ports",
    "parse_ports",
    "fetch_title",
    "render_report",
    "write_report",
    "run",
    "main",
]

USER_AGENT = "netprobe-HTTP-Title-Scanner/1.0"
DEFAULT_TIMEOUT_SECS = 10
MAX_TITLE_CHARS = 200

_BANNER = (
    "\n"
    "+--------------------------------------------------+\n"
    "|                HTTP TITLE SCANNER                |\n"
    "|  Enumerate page titles over HTTP/HTTPS endpoints |\n"
    "+--------------------------------------------------+\n"
)

_TITLE_RE = re.compile(r"<title\b[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)


@dataclass
class TitleResult:
    """Outcome of fetching one URL."""

    url: str
    status: int | None = None
    reason: str = ""
    title: str | None = None
    error: str | None = None
    duration_ms: int = 0

    @property
    def status_text(self) -> str:
        if self.status is None:
            return ""
        return f"{self.status} {self.reason}".strip()

    def display_title(self) -> str:
        if self.title is not None:
            return self.title
        if self.error is not None:
            return f"error: {self.error}"
        return "<no title>"


def sanitize_title(raw: str) -> str:
    """Collapse a title onto one line and cap it at 200 characters."""
    lines = (line.strip() for line in raw.split("\n"))
    return " ".join(line for line in lines if line)[:MAX_TITLE_CHARS]


def extract_title(html: str) -> str | None:
    match = _TITLE_RE.search(html)
    return sanitize_title(match.group(1)) if match else None


def split_targets(text: str) -> list[str]:
    """Split on ``,``, ``;`` and newlines, dropping blanks and trailing slashes."""
    return _methods.split_targets(text)


def load_targets_from_file(path: str | Path) -> list[str]:
    """Read targets from a file; raises ``OSError`` when it cannot be read."""
    return _methods.load_targets_from_file(path)


def expand_targets_with_ports(targets: Sequence[str], ports: Sequence[int]) -> list[str]:
    """Combine every target with every port, without duplicates."""
    return _methods.expand_targets_with_ports(targets, ports)


def parse_ports(text: str) -> list[int]:
    """Parse ports separated by ``,``, ``;`` or spaces; invalid ones are skipped."""
    return _methods.parse_ports(text)


def collect_initial_targets(initial_target: str) -> list[str]:
    trimmed = initial_target.strip()
    if not trimmed or trimmed == "http_title_scanner":
        return []
    return split_targets(trimmed)


def normalize_targets(
    targets: Iterable[str], check_http: bool, check_https: bool
) -> list[str]:
    """Expand bare hosts into https and/or http URLs, without duplicates."""
    seen: set[str] = set()
    normalized: list[str] = []

    def add(url: str) -> None:
        if url not in seen:
            seen.add(url)
            normalized.append(url)

    for raw in targets:
        target = raw.strip()
        if not target:
            continue
        if target.startswith(("http://", "https://")):
            add(target)
            continue
        if check_https:
            add(f"https://{target}")
        if check_http:
            add(f"http://{target}")
    return normalized


async def fetch_title(client: httpx.AsyncClient, url: str) -> TitleResult:
    """GET ``url`` and pull the page title; failures land in ``error``."""
    start = time.perf_counter()
    try:
        response = await client.get(url)
    except REQUEST_ERRORS:
        return TitleResult(url, error="Request failed")
    title = extract_title(response.text)
    return TitleResult(
        url,
        status=response.status_code,
        reason=response.reason_phrase,
        title=title,
        duration_ms=int((time.perf_counter() - start) * 1000),
    )


def render_report(results: Sequence[TitleResult], generated_at: datetime) -> str:
    lines = [
        "HTTP Title Scanner Report",
        f"Generated at: {_format_timestamp(generated_at)}",
        "",
    ]
    for result in results:
        status = "n/a" if result.status is None else str(result.status)
        lines.append(
            f"{result.url} | status: {status:<5} | title: {result.display_title()}"
        )
        if result.duration_ms > 0:
            lines.append(f"    duration: {result.duration_ms} ms")
    return "\n".join(lines)


def write_report(path: str | Path, results: Sequence[TitleResult]) -> None:
    report = render_report(results, datetime.now(timezone.utc))
    try:
        Path(path).write_text(report, encoding="utf-8")
    except OSError as exc:
        raise OSError(f"Failed to write report to {path}: {exc}") from exc


def _describe(result: TitleResult) -> str:
    if result.error is not None:
        return f"[-] {result.url} -> error: {result.error}"
    if result.title is not None:
        return f"[+] {result.url} -> {result.title}"
    if result.status is not None:
        return f"[+] {result.url} -> <no title> (status: {result.status_text})"
    return f"[+] {result.url} -> <no title>"


async def run(initial_target: str) -> None:
    """Interactively gather targets and options, then fetch every title."""
    print(_BANNER)
    targets = collect_initial_targets(initial_target)

    additional = _prompt("Enter additional comma-separated targets (optional): ")
    if additional:
        targets.extend(split_targets(additional))

    file_path = _prompt("Path to file with targets (optional): ")
    if file_path:
        targets.extend(load_targets_from_file(file_path))

    check_http = _prompt_bool("Check HTTP (http://)? (yes/no, default yes): ", True)
    check_https = _prompt_bool("Check HTTPS (https://)? (yes/no, default yes): ", True)
    if not check_http and not check_https:
        print("[!] Neither HTTP nor HTTPS selected; nothing to scan.")
        return

    use_ports = _prompt_bool(
        "Test via specific ports (port tunneling)? (yes/no, default no): ", False
    )
    ports = _prompt_ports() if use_ports else []

    timeout_answer = _prompt("Request timeout in seconds (default 10): ")
    timeout_secs = DEFAULT_TIMEOUT_SECS
    if timeout_answer:
        if _UINT_RE.fullmatch(timeout_answer) and int(timeout_answer) > 0:
            timeout_secs = int(timeout_answer)
        else:
            print("[!] Invalid timeout, using default (10s)")

    save_output = _prompt_bool("Save results to file? (yes/no, default yes): ", True)
    verbose = _prompt_bool("Enable verbose output? (yes/no, default no): ", False)

    normalized = normalize_targets(targets, check_http, check_https)
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

    all_results: list[TitleResult] = []
    async with httpx.AsyncClient(
        headers={"User-Agent": USER_AGENT},
        timeout=float(timeout_secs),
        follow_redirects=True,
        max_redirects=MAX_REDIRECTS,
    ) as client:
        for url in normalized:
            result = await fetch_title(client, url)
            print(_describe(result))
            if verbose and result.error is None:
                if result.status is not None:
                    print(f"    Status: {result.status_text}")
                print(f"    Duration: {result.duration_ms} ms")
            all_results.append(result)

    if save_output:
        default_name = (
            f"http_title_scan_{datetime.now(timezone.utc):%Y%m%d_%H%M%S}.txt"
        )
        output_path = _prompt_with_default(
            "Enter output file path (press Enter for default): ", default_name
        )
        write_report(output_path, all_results)
        print(f"[*] Results saved to {output_path}")

    print("\n[*] Scan complete.")


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="netprobe-http-titles",
        description="Fetch the HTML titles of web endpoints.",
    )
    parser.add_argument("target", nargs="?", default="", help="comma-separated targets")
    args = parser.parse_args(argv)
    try:
        asyncio.run(run(args.target))
    except (ValueError, OSError) as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 1
    return 0