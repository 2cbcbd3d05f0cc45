"""Sweep IP addresses and networks for live hosts using ICMP and TCP probes."""

from __future__ import annotations

import argparse
import asyncio
import ipaddress
import re
import shutil
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence, Union

ICMP = "ICMP"
TCP = "TCP"
DEFAULT_TCP_PORTS = "80,443"
DEFAULT_TIMEOUT_SECS = 3
DEFAULT_CONCURRENCY = 100
PROGRESS_EVERY = 100

IpInterface = Union[ipaddress.IPv4Interface, ipaddress.IPv6Interface]
IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_UINT_RE = re.compile(r"\+?[0-9]+")
_MISSING_PING = "Neither 'ping' nor 'ping6' command found. Install ping utility."


@dataclass(frozen=True)
class PingMethod:
    """A probe method: ``ICMP`` (system ping) or ``TCP`` connects to ``ports``."""

    kind: str
    ports: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        if self.kind not in (ICMP, TCP):
            raise ValueError(f"Unknown probe method '{self.kind}'")

    def describe(self) -> str:
        if self.kind == ICMP:
            return ICMP
        if len(self.ports) == 1:
            return f"TCP/{self.ports[0]}"
        return f"TCP [{','.join(str(port) for port in self.ports)}]"

    def label(self) -> str:
        return self.kind


@dataclass
class PingConfig:
    """Everything a sweep needs: networks, methods and limits."""

    targets: list[IpInterface]
    methods: list[PingMethod]
    concurrency: int = DEFAULT_CONCURRENCY
    timeout_secs: int = DEFAULT_TIMEOUT_SECS
    verbose: bool = False


def parse_target(value: str) -> IpInterface:
    """Parse ``ip`` or ``ip/prefix``; a bare address becomes a /32 or /128."""
    error = ValueError(f"Invalid target '{value}'. Use IP or IP/CIDR.")
    address_text, slash, prefix_text = value.partition("/")
    try:
        address = ipaddress.ip_address(address_text)
    except ValueError:
        raise error from None
    if "%" in address_text:
        raise error
    if slash:
        if not prefix_text.isascii() or not prefix_text.isdigit():
            raise error
        prefix = int(prefix_text)
        if prefix > address.max_prefixlen:
            raise error
    else:
        prefix = address.max_prefixlen
    return ipaddress.ip_interface(f"{address}/{prefix}")


def parse_ports(text: str) -> list[int]:
    """Parse ports separated by commas or whitespace; sorted and de-duplicated."""
    ports: set[int] = set()
    for token in text.replace(",", " ").split():
        if _UINT_RE.fullmatch(token) and int(token) <= 0xFFFF:
            ports.add(int(token))
        else:
            print(f"    Skipping invalid port '{token}'")
    return sorted(ports)


def load_targets_from_file(path: str | Path) -> list[IpInterface]:
    """Read targets from a file, ignoring ``#`` comments; raises ``OSError``."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise OSError(f"Failed to read target file '{path}': {exc}") from exc
    except OSError as exc:
        raise OSError(f"Failed to open target file '{path}': {exc}") from exc

    nets: list[IpInterface] = []
    for number, line in enumerate(text.split("\n"), start=1):
        content = line.split("#", 1)[0].strip()
        if not content:
            continue
        for token in content.replace(",", " ").split():
            try:
                nets.append(parse_target(token))
            except ValueError as exc:
                print(f"    [file:{number}] skipped '{token}': {exc}", file=sys.stderr)
    return nets


def methods_summary(methods: Iterable[PingMethod]) -> str:
    return ", ".join(method.describe() for method in methods)


def _network_hosts(net: IpInterface) -> Iterable[IpAddress]:
    network = net.network
    if network.version == 4 and network.prefixlen < 31:
        return network.hosts()
    return iter(network)


def expand_hosts(networks: Iterable[IpInterface]) -> list[IpAddress]:
    """All host addresses of the networks, unique, IPv4 before IPv6, ascending."""
    hosts: set[IpAddress] = set()
    for net in networks:
        hosts.update(_network_hosts(net))
    return sorted(hosts, key=lambda ip: (ip.version, int(ip)))


def icmp_command(ip: IpAddress | str, timeout_secs: float) -> list[str]:
    """Build the ping command line for ``ip``; raises ``OSError`` if none exists."""
    address = ipaddress.ip_address(str(ip))
    wait = str(max(1, int(timeout_secs)))
    tail = ["-c", "1", "-W", wait, str(address)]
    if address.version == 4:
        if shutil.which("ping"):
            return ["ping", *tail]
        if shutil.which("ping6"):
            return ["ping6", *tail]
    else:
        if shutil.which("ping6"):
            return ["ping6", *tail]
        if shutil.which("ping"):
            return ["ping", "-6", *tail]
    raise OSError(_MISSING_PING)


async def icmp_probe(ip: IpAddress | str, timeout: float) -> list[str]:
    """Ping ``ip`` once; return ``["ICMP"]`` when it answers."""
    argv = icmp_command(ip, timeout)
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as exc:
        raise OSError(f"Ping command failed: {exc}") from exc
    try:
        code = await asyncio.wait_for(process.wait(), timeout)
    except asyncio.TimeoutError:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()
        return []
    return [ICMP] if code == 0 else []


async def tcp_probe(ip: IpAddress | str, ports: Sequence[int], timeout: float) -> list[str]:
    """Try a TCP connect on each port in parallel; return labels of open ones."""
    host = str(ip)

    async def attempt(port: int) -> str | None:
        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
        except (OSError, asyncio.TimeoutError):
            return None
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return f"TCP/{port}"

    results = await asyncio.gather(*(attempt(port) for port in ports))
    return [label for label in results if label is not None]


async def _probe(method: PingMethod, ip: IpAddress, timeout: float) -> list[str]:
    if method.kind == ICMP:
        return await icmp_probe(ip, timeout)
    return await tcp_probe(ip, method.ports, timeout)


async def sweep(config: PingConfig) -> dict[IpAddress, list[str]]:
    """Probe every host; return the hosts that answered with their probe labels."""
    hosts = expand_hosts(config.targets)
    if not hosts:
        print("No host addresses derived from supplied targets.")
        return {}

    total = len(hosts)
    print(
        f"\n[*] Beginning sweep of {total} hosts using "
        f"{len(config.methods)} method(s)..."
    )

    semaphore = asyncio.Semaphore(max(1, config.concurrency))
    timeout = float(max(1, config.timeout_secs))
    verbose = config.verbose
    up: dict[IpAddress, list[str]] = {}
    processed = 0
    start = time.monotonic()

    async def probe_host(ip: IpAddress) -> None:
        nonlocal processed
        successes: list[str] = []
        async with semaphore:
            for method in config.methods:
                try:
                    successes.extend(await _probe(method, ip, timeout))
                except OSError as exc:
                    if verbose:
                        print(f"[!] {ip} ({method.label()}) error: {exc}", file=sys.stderr)

        processed += 1
        if processed % PROGRESS_EVERY == 0 or processed == total:
            elapsed = int(time.monotonic() - start)
            rate = processed // elapsed if elapsed > 0 else 0
            print(
                f"\r[*] Progress: {processed}/{total} hosts "
                f"({processed / total * 100:.1f}%) | Up: {len(up)} | Rate: {rate}/s",
                end="",
                flush=True,
            )

        if successes:
            up[ip] = successes
            print(f"\r[+] Host {ip} is up ({', '.join(successes)})")
        elif verbose:
            print(f"\r[-] Host {ip} is down")

    await asyncio.gather(*(probe_host(ip) for ip in hosts))

    print("\r" + " " * 80 + "\r", end="", flush=True)
    print(f"\n[*] Sweep complete: {len(up)}/{total} hosts responded.")
    return up


def _read(message: str) -> str:
    try:
        return input(message)
    except EOFError:
        return ""


def _prompt_line(message: str, allow_empty: bool) -> str:
    answer = _read(message).strip()
    if not allow_empty and not answer:
        raise ValueError("Input cannot be empty.")
    return answer


def _prompt_with_default(message: str, default: str) -> str:
    return _read(f"{message} [{default}]: ").strip() or default


def _prompt_yes_no(message: str, default_yes: bool) -> bool:
    hint = "Y/n" if default_yes else "y/N"
    while True:
        answer = _read(f"{message} [{hint}]: ").strip().lower()
        if not answer:
            return default_yes
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False
        print("Please answer with 'y' or 'n'.")


def _prompt_int(message: str, default: int, minimum: int, maximum: int) -> int:
    while True:
        answer = _prompt_with_default(message, str(default))
        if not _UINT_RE.fullmatch(answer):
            print("Enter a valid positive integer.")
            continue
        value = int(answer)
        if value < minimum:
            print(f"Value must be >= {minimum}")
        elif value > maximum:
            print(f"Value must be <= {maximum}")
        else:
            return value


def _gather_configuration(initial: str) -> PingConfig:
    print("=== Ping Sweep Configuration ===")
    nets: list[IpInterface] = []

    trimmed = initial.strip()
    if trimmed:
        try:
            net = parse_target(trimmed)
        except ValueError as exc:
            print(f"    Initial target '{trimmed}' skipped: {exc}", file=sys.stderr)
        else:
            print(f"[*] Loaded initial target {net}")
            nets.append(net)

    if _prompt_yes_no("Add additional targets manually?", False):
        while True:
            entry = _prompt_line("Enter target (IP or CIDR, leave blank to stop): ", True)
            if not entry:
                break
            try:
                net = parse_target(entry)
            except ValueError as exc:
                print(f"    ! {exc}", file=sys.stderr)
            else:
                print(f"    + {net}")
                nets.append(net)

    if _prompt_yes_no("Load targets from file?", False):
        path = _prompt_line("Path to file: ", False)
        file_targets = load_targets_from_file(path)
        if file_targets:
            print(f"    Loaded {len(file_targets)} targets from '{path}'")
            nets.extend(file_targets)
        else:
            print("    No targets parsed from file.")

    if not nets:
        raise ValueError("No valid targets supplied. Provide at least one IP or subnet.")
    targets = list(dict.fromkeys(nets))

    timeout_secs = _prompt_int("Probe timeout (seconds)", DEFAULT_TIMEOUT_SECS, 1, 60)
    concurrency = _prompt_int("Max concurrent hosts", DEFAULT_CONCURRENCY, 1, 10_000)
    verbose = _prompt_yes_no("Verbose output (show down hosts/errors)?", False)

    while True:
        methods: list[PingMethod] = []
        if _prompt_yes_no("Use ICMP ping (system ping/ping6)?", True):
            methods.append(PingMethod(ICMP))
        if _prompt_yes_no("Use TCP connect probes?", False):
            ports = parse_ports(
                _prompt_with_default("TCP ports (comma separated)", DEFAULT_TCP_PORTS)
            )
            if ports:
                methods.append(PingMethod(TCP, tuple(ports)))
            else:
                print("    No valid ports provided.")
        if methods:
            break
        print("Select at least one method.")

    print(
        f"\n[*] Targets: {len(targets)} | Methods: {methods_summary(methods)} | "
        f"Concurrency: {concurrency} | Timeout: {timeout_secs}s"
    )
    return PingConfig(targets, methods, concurrency, timeout_secs, verbose)


async def run(initial_target: str) -> dict[IpAddress, list[str]]:
    """Interactively configure a sweep, then run it."""
    config = _gather_configuration(initial_target)
    return await sweep(config)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="netprobe-ping-sweep",
        description="Find live hosts with ICMP and TCP probes.",
    )
    parser.add_argument("target", nargs="?", default="", help="IP or IP/CIDR")
    args = parser.parse_args(argv)
    try:
        asyncio.run(run(args.target))
    except (ValueError, OSError) as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 1
    return 0