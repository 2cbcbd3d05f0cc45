"""TCP/UDP port scanner with banner grabbing and service detection."""

from __future__ import annotations

import argparse
import asyncio
import ipaddress
import re
import socket
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Sequence, Union

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

OPEN = "OPEN"
CLOSED = "CLOSED"
TIMEOUT = "TIMEOUT"
FILTERED = "FILTERED"
ERROR = "ERROR"

DEFAULT_CONCURRENCY = 100
DEFAULT_TIMEOUT_SECS = 3
DEFAULT_OUTPUT_FILE = "scan_results.txt"
PROGRESS_EVERY = 100
BANNER_BUFFER = 2048
UDP_BUFFER = 512
UDP_PAYLOAD = b"\x00\x00\x10\x10"
HTTP_PROBE = b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n"

COMMON_PORTS = (
    21, 22, 23, 25, 53, 80, 110, 111, 135, 139,
    143, 443, 445, 993, 995, 1723, 3306, 3389, 5900, 8080,
)

_SERVICES = {
    21: "FTP",
    22: "SSH",
    23: "Telnet",
    25: "SMTP",
    53: "DNS",
    80: "HTTP",
    110: "POP3",
    111: "RPC",
    135: "MSRPC",
    139: "NetBIOS",
    143: "IMAP",
    443: "HTTPS",
    445: "SMB",
    993: "IMAPS",
    995: "POP3S",
    1723: "PPTP",
    3306: "MySQL",
    3389: "RDP",
    5900: "VNC",
    8080: "HTTP-Proxy",
}

# Banner keywords, checked in order; the first match wins.
_BANNER_KEYWORDS = (
    ("ssh", "SSH"),
    ("ftp", "FTP"),
    ("smtp", "SMTP"),
    ("pop3", "POP3"),
    ("imap", "IMAP"),
    ("http", "HTTP"),
    ("mysql", "MySQL"),
)

_RANGE_KINDS = ("all", "custom", "common", "top1000")
_UINT_RE = re.compile(r"\+?[0-9]+")


@dataclass(frozen=True)
class PortRange:
    """Which ports to scan: all, the common set, the first 1000, or a custom span."""

    kind: str = "all"
    start: int = 1
    end: int = 65535

    def __post_init__(self) -> None:
        if self.kind not in _RANGE_KINDS:
            raise ValueError(f"Unknown port range '{self.kind}'")
        if self.kind == "custom":
            if not 1 <= self.start <= 65535:
                raise ValueError("Start port must be between 1 and 65535")
            if not 1 <= self.end <= 65535:
                raise ValueError("End port must be between 1 and 65535")
            if self.start > self.end:
                raise ValueError("Start port must be <= end port")

    @classmethod
    def all_ports(cls) -> PortRange:
        return cls("all")

    @classmethod
    def common(cls) -> PortRange:
        return cls("common")

    @classmethod
    def top1000(cls) -> PortRange:
        return cls("top1000")

    @classmethod
    def custom(cls, start: int, end: int) -> PortRange:
        return cls("custom", start, end)

    def ports(self) -> list[int]:
        if self.kind == "all":
            return list(range(1, 65536))
        if self.kind == "custom":
            return list(range(self.start, self.end + 1))
        if self.kind == "common":
            return list(COMMON_PORTS)
        return list(range(1, 1001))


@dataclass
class ScanSettings:
    """Options for one scan run."""

    concurrency: int = DEFAULT_CONCURRENCY
    timeout_secs: int = DEFAULT_TIMEOUT_SECS
    show_only_open: bool = True
    verbose: bool = False
    scan_udp_enabled: bool = False
    output_file: str = DEFAULT_OUTPUT_FILE
    port_range: PortRange = PortRange()


@dataclass
class ScanStats:
    """Counts of port states seen during a scan."""

    tcp_open: int = 0
    tcp_closed: int = 0
    tcp_filtered: int = 0
    udp_open: int = 0
    udp_closed: int = 0
    udp_filtered: int = 0


@dataclass
class ProgressTracker:
    """Tracks completed probes and renders a progress line."""

    total: int
    current: int = 0
    last_print: int = 0

    def increment(self) -> None:
        self.current += 1

    def should_print(self) -> bool:
        return self.current - self.last_print >= PROGRESS_EVERY or self.current == self.total

    def render(self, elapsed_secs: float) -> str:
        """Return the progress line and mark it printed; empty before any probe."""
        if self.current == 0:
            return ""
        percentage = self.current / self.total * 100.0 if self.total else 100.0
        whole_secs = int(elapsed_secs)
        rate = self.current / whole_secs if whole_secs > 0 else 0.0
        remaining = (self.total - self.current) / rate if rate > 0 else 0.0
        self.last_print = self.current
        return (
            f"[*] Progress: {self.current}/{self.total} ({percentage:.1f}%) | "
            f"Rate: {rate:.0f} ports/sec | ETA: {remaining:.0f}s"
        )


def service_name(port: int) -> str:
    """Well-known service for ``port``, or an empty string."""
    return _SERVICES.get(port, "")


def detect_service_from_banner(banner: str, port: int) -> str:
    lowered = banner.lower()
    for keyword, name in _BANNER_KEYWORDS:
        if keyword in lowered:
            return name
    return service_name(port)


def extract_http_server(response: str) -> str | None:
    """Value of the first ``Server:`` header line, if any."""
    for line in response.split("\n"):
        line = line.removesuffix("\r")
        if line.lower().startswith("server:"):
            return line.split(":")[1].strip()
    return None


def resolve_target(value: str) -> tuple[str, IpAddress]:
    """Resolve a host, preferring IPv4; raises ``OSError`` on failure."""
    cleaned = value.strip().lstrip("[").rstrip("]")
    try:
        infos = socket.getaddrinfo(cleaned, 0)
    except (OSError, UnicodeError) as exc:
        raise OSError(f"Could not resolve target '{value}': {exc}") from exc
    addresses = [
        ipaddress.ip_address(str(info[4][0]).split("%", 1)[0]) for info in infos
    ]
    if not addresses:
        raise OSError(f"Could not resolve target '{value}'")
    chosen = next((ip for ip in addresses if ip.version == 4), addresses[0])
    return str(chosen), chosen


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace").strip()


async def _read(reader: asyncio.StreamReader, timeout: float) -> bytes:
    try:
        return await asyncio.wait_for(reader.read(BANNER_BUFFER), timeout)
    except (asyncio.TimeoutError, OSError):
        return b""


async def _grab_banner(
    reader: asyncio.StreamReader, writer: asyncio.StreamWriter, port: int
) -> tuple[str, str]:
    data = await _read(reader, 2.0)
    if data:
        banner = _decode(data)
        return banner, detect_service_from_banner(banner, port)

    if port in (80, 8080):
        try:
            writer.write(HTTP_PROBE)
            await writer.drain()
        except OSError:
            return "", ""
        data = await _read(reader, 2.0)
        if data:
            response = data.decode("utf-8", errors="replace")
            server = extract_http_server(response)
            service = f"HTTP ({server})" if server is not None else "HTTP"
            return response.strip(), service
    elif port == 443:
        return "", "HTTPS"
    elif port == 22:
        data = await _read(reader, 2.0)
        if data:
            return _decode(data), "SSH"
    else:
        data = await _read(reader, 1.0)
        if data:
            banner = _decode(data)
            return banner, detect_service_from_banner(banner, port)
    return "", ""


async def scan_tcp(
    ip: IpAddress | str, port: int, timeout_secs: float
) -> tuple[str, str, str]:
    """Connect to a TCP port; return ``(state, banner, service)``."""
    host = str(ipaddress.ip_address(str(ip)))
    try:
        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port), timeout_secs
        )
    except asyncio.TimeoutError:
        return TIMEOUT, "", ""
    except OSError:
        return CLOSED, "", ""
    try:
        banner, service = await _grab_banner(reader, writer, port)
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
    return OPEN, banner, service


class _UdpProbe(asyncio.DatagramProtocol):
    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self.result: asyncio.Future[str] = loop.create_future()

    def datagram_received(self, data: bytes, addr: tuple) -> None:
        if not self.result.done():
            self.result.set_result(OPEN)

    def error_received(self, exc: Exception) -> None:
        if not self.result.done():
            self.result.set_result(CLOSED)


async def scan_udp(ip: IpAddress | str, port: int, timeout_secs: float) -> str:
    """Send a small datagram; ``OPEN`` on reply, ``FILTERED`` on silence."""
    address = ipaddress.ip_address(str(ip))
    if address.version == 4:
        family, local = socket.AF_INET, ("0.0.0.0", 0)
    else:
        family, local = socket.AF_INET6, ("::", 0)
    loop = asyncio.get_running_loop()
    try:
        transport, protocol = await loop.create_datagram_endpoint(
            lambda: _UdpProbe(loop), local_addr=local, family=family
        )
    except OSError:
        return ERROR
    try:
        transport.sendto(UDP_PAYLOAD, (str(address), port))
        try:
            return await asyncio.wait_for(protocol.result, timeout_secs)
        except asyncio.TimeoutError:
            return FILTERED
    finally:
        transport.close()


async def run_with_settings(target: str, settings: ScanSettings) -> ScanStats:
    """Scan ``target`` as configured, write the report file and return the counts."""
    start = time.monotonic()
    ip_text, ip = resolve_target(target)
    ports = settings.port_range.ports()
    udp = settings.scan_udp_enabled
    total = len(ports) * (2 if udp else 1)
    semaphore = asyncio.Semaphore(max(1, settings.concurrency))
    stats = ScanStats()
    tracker = ProgressTracker(total)

    print(f"\n[*] Starting scan for target: {target} (resolved: {ip_text})")
    print(f"[*] Scanning {total} ports with concurrency: {settings.concurrency}")

    with open(settings.output_file, "w", encoding="utf-8") as out:
        out.write(f"Port Scan Results for {target} ({ip_text})\n\n")
        out.write(f"Scan started at: {int(time.time())}\n\n")

        def advance() -> None:
            tracker.increment()
            if tracker.should_print():
                print("\r" + tracker.render(time.monotonic() - start), end="", flush=True)
                if tracker.current == tracker.total:
                    print()

        async def tcp_worker(port: int) -> None:
            try:
                state, banner, service = await scan_tcp(ip, port, settings.timeout_secs)
            finally:
                semaphore.release()
            if state == OPEN:
                stats.tcp_open += 1
                name = service or service_name(port)
                line = f"[TCP] {ip_text}:{port} ({name}) => {state}"
                if not settings.show_only_open:
                    out.write(line + "\n")
                if banner:
                    line = f"{line} | Banner: {banner.strip()}"
                out.write(line + "\n")
                print(line)
            elif state == CLOSED:
                stats.tcp_closed += 1
            elif state in (TIMEOUT, FILTERED):
                stats.tcp_filtered += 1
            advance()

        async def udp_worker(port: int) -> None:
            try:
                state = await scan_udp(ip, port, settings.timeout_secs)
            finally:
                semaphore.release()
            if state == OPEN:
                stats.udp_open += 1
                line = f"[UDP] {ip_text}:{port} ({service_name(port)}) => {state}"
                if not settings.show_only_open:
                    out.write(line + "\n")
                out.write(line + "\n")
                print(line)
            elif state == CLOSED:
                stats.udp_closed += 1
            elif state == FILTERED:
                stats.udp_filtered += 1
            advance()

        tasks: list[asyncio.Task[None]] = []
        print("\n[*] Starting TCP scan...")
        for port in ports:
            await semaphore.acquire()
            tasks.append(asyncio.create_task(tcp_worker(port)))
        if udp:
            print("\n[*] Starting UDP scan...")
            for port in ports:
                await semaphore.acquire()
                tasks.append(asyncio.create_task(udp_worker(port)))
        await asyncio.gather(*tasks)

        elapsed = time.monotonic() - start
        _print_summary(stats, elapsed, udp, settings.output_file)
        _write_summary(out, stats, elapsed, udp)
    return stats


def _print_summary(stats: ScanStats, elapsed: float, udp: bool, output_file: str) -> None:
    print("\n=== Scan Summary ===")
    print(f"Scan duration: {elapsed:.2f} seconds")
    print("\nTCP Ports:")
    print(f"  + Open: {stats.tcp_open}")
    print(f"  - Closed: {stats.tcp_closed}")
    print(f"  ~ Filtered/Timeout: {stats.tcp_filtered}")
    if udp:
        print("\nUDP Ports:")
        print(f"  + Open: {stats.udp_open}")
        print(f"  - Closed: {stats.udp_closed}")
        print(f"  ~ Filtered: {stats.udp_filtered}")
    print(f"\n[*] Results saved to {output_file}")


def _write_summary(out: IO[str], stats: ScanStats, elapsed: float, udp: bool) -> None:
    lines = [
        "",
        "=== Scan Summary ===",
        f"Scan duration: {elapsed:.2f} seconds",
        "",
        "TCP Ports:",
        f"  Open: {stats.tcp_open}",
        f"  Closed: {stats.tcp_closed}",
        f"  Filtered/Timeout: {stats.tcp_filtered}",
    ]
    if udp:
        lines += [
            "",
            "UDP Ports:",
            f"  Open: {stats.udp_open}",
            f"  Closed: {stats.udp_closed}",
            f"  Filtered: {stats.udp_filtered}",
        ]
    out.write("\n".join(lines) + "\n")


def _prompt(message: str) -> str:
    try:
        return input(message).strip()
    except EOFError:
        return ""


def _prompt_bool(message: str) -> bool:
    while True:
        answer = _prompt(message).lower()
        if not answer:
            return False
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no"):
            return False
        print("Please enter 'y' or 'n'.")


def _prompt_usize(message: str) -> int:
    while True:
        answer = _prompt(message)
        if not answer:
            raise ValueError("Input required")
        if _UINT_RE.fullmatch(answer):
            return int(answer)
        print("Please enter a valid number.")


def _usize_or(message: str, default: int) -> int:
    try:
        return _prompt_usize(message)
    except ValueError:
        return default


def prompt_settings() -> ScanSettings:
    """Ask for scan options on the terminal."""
    print("\n=== Port Scanner Configuration ===")
    print("\nPort Range Options:")
    print("  1. All ports (1-65535)")
    print("  2. Common ports (21, 22, 23, 25, 53, 80, 443, etc.)")
    print("  3. Top 1000 ports")
    print("  4. Custom range")

    choice = _prompt_usize("Select option (1-4) [1]: ")
    if choice == 2:
        port_range = PortRange.common()
    elif choice == 3:
        port_range = PortRange.top1000()
    elif choice == 4:
        start = _prompt_usize("Start port: ")
        end = _prompt_usize("End port: ")
        if start == 0 or start > 65535:
            raise ValueError("Start port must be between 1 and 65535")
        if end == 0 or end > 65535:
            raise ValueError("End port must be between 1 and 65535")
        if start > end:
            raise ValueError("Start port must be <= end port")
        port_range = PortRange.custom(start, end)
    else:
        port_range = PortRange.all_ports()

    print(f"[*] Selected {len(port_range.ports())} ports to scan")

    return ScanSettings(
        concurrency=_usize_or("Concurrency [100]: ", DEFAULT_CONCURRENCY),
        timeout_secs=_usize_or("Timeout (in seconds) [3]: ", DEFAULT_TIMEOUT_SECS),
        show_only_open=_prompt_bool("Show only open ports? (y/n) [y]: "),
        verbose=_prompt_bool("Verbose output? (y/n) [n]: "),
        scan_udp_enabled=_prompt_bool("Include UDP scan? (y/n) [n]: "),
        output_file=_prompt("Output filename [scan_results.txt]: ") or DEFAULT_OUTPUT_FILE,
        port_range=port_range,
    )


async def run(target: str) -> ScanStats:
    """Interactively configure a scan of ``target`` and run it."""
    settings = prompt_settings()
    return await run_with_settings(target, settings)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="netprobe-port-scan",
        description="Scan TCP/UDP ports of a host and grab service banners.",
    )
    parser.add_argument("target", help="host name or IP address")
    args = parser.parse_args(argv)
    try:
        asyncio.run(run(args.target))
    except (ValueError, OSError) as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())