"""Probe a host for UPnP devices with SSDP M-SEARCH requests."""

from __future__ import annotations

import argparse
import asyncio
import ipaddress
import re
import sys
from dataclasses import dataclass
from typing import Sequence

DEFAULT_PORT = 1900
DEFAULT_TIMEOUT_SECS = 3
DEFAULT_RETRIES = 1
MAX_TIMEOUT_SECS = 60
MAX_RETRIES = 10
RECV_BUFFER = 4096
RETRY_DELAY_SECS = 0.5
USER_AGENT = "netprobe/1.0"

ROOT_DEVICE_ST = "upnp:rootdevice"
ALL_ST = "ssdp:all"

_HEADER_PATTERNS = {
    "server": re.compile(r"Server:\s*(.*?)\r\n", re.IGNORECASE),
    "location": re.compile(r"Location:\s*(.*?)\r\n", re.IGNORECASE),
    "usn": re.compile(r"USN:\s*(.*?)\r\n", re.IGNORECASE),
    "st": re.compile(r"ST:\s*(.*?)\r\n", re.IGNORECASE),
    "nt": re.compile(r"NT:\s*(.*?)\r\n", re.IGNORECASE),
    "cache_control": re.compile(r"Cache-Control:\s*(.*?)\r\n", re.IGNORECASE),
    "ext": re.compile(r"EXT:\s*(.*?)\r\n", re.IGNORECASE),
}


@dataclass(frozen=True)
class SearchTarget:
    """The search target (ST header) of an M-SEARCH request."""

    value: str = ROOT_DEVICE_ST

    @classmethod
    def root_device(cls) -> SearchTarget:
        return cls(ROOT_DEVICE_ST)

    @classmethod
    def all_devices(cls) -> SearchTarget:
        return cls(ALL_ST)

    @classmethod
    def custom(cls, st: str) -> SearchTarget:
        return cls(st)

    def st_header(self) -> str:
        return self.value


@dataclass(frozen=True)
class SsdpResponse:
    """Headers of interest pulled from an SSDP reply."""

    status_line: str
    status_ok: bool
    server: str = ""
    location: str = ""
    usn: str = ""
    st: str = ""
    nt: str = ""
    cache_control: str = ""
    ext: str = ""


def clean_ipv6_brackets(value: str) -> str:
    """Strip any leading ``[`` and trailing ``]`` characters."""
    return value.lstrip("[").rstrip("]")


def normalize_target(target: str, port: int) -> str:
    """Render ``target:port``, bracketing IPv6 addresses."""
    if ":" in target and "]" not in target:
        return f"[{target}]:{port}"
    if "[" in target:
        return f"[{target.strip('[]')}]:{port}"
    return f"{target}:{port}"


def build_msearch(target: str, port: int, mx: float, st: SearchTarget | str) -> str:
    """Build the text of an M-SEARCH request; ``MX`` is at least 1."""
    header = st.st_header() if isinstance(st, SearchTarget) else st
    return (
        "M-SEARCH * HTTP/1.1\r\n"
        f"HOST: {target}:{port}\r\n"
        'MAN: "ssdp:discover"\r\n'
        f"MX: {max(1, int(mx))}\r\n"
        f"ST: {header}\r\n"
        f"USER-AGENT: {USER_AGENT}\r\n\r\n"
    )


def parse_ssdp_response(response: str) -> SsdpResponse:
    """Extract the status line and the common SSDP headers."""
    fields = {}
    for key, pattern in _HEADER_PATTERNS.items():
        match = pattern.search(response)
        fields[key] = match.group(1).strip() if match else ""
    status_line = response.split("\n", 1)[0].removesuffix("\r")
    status_ok = "200" in status_line or "HTTP/1.1" in status_line
    return SsdpResponse(status_line=status_line, status_ok=status_ok, **fields)


class _SsdpClient(asyncio.DatagramProtocol):
    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self.reply: asyncio.Future[bytes] = loop.create_future()

    def datagram_received(self, data: bytes, addr: tuple) -> None:
        if not self.reply.done():
            self.reply.set_result(data)

    def error_received(self, exc: Exception) -> None:
        if not self.reply.done():
            self.reply.set_exception(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None and not self.reply.done():
            self.reply.set_exception(exc)


async def send_ssdp_request(
    target: str,
    port: int,
    st: SearchTarget | str,
    timeout: float,
    verbose: bool = False,
) -> str | None:
    """Send one M-SEARCH to an IPv4 host; return the reply, or ``None`` on timeout.

    Raises ``ValueError`` for an unparsable address and ``OSError`` on socket errors.
    """
    try:
        address = ipaddress.IPv4Address(target)
    except ValueError:
        raise ValueError(f"Failed to parse remote address {target}:{port}") from None
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"Failed to parse remote address {target}:{port}")

    loop = asyncio.get_running_loop()
    try:
        transport, protocol = await loop.create_datagram_endpoint(
            lambda: _SsdpClient(loop),
            local_addr=("0.0.0.0", 0),
            remote_addr=(str(address), port),
        )
    except OSError as exc:
        raise OSError(f"Failed to connect to {target}:{port}: {exc}") from exc

    request = build_msearch(target, port, timeout, st)
    if verbose:
        print(f"  [*] Sending request:\n{request}")

    try:
        try:
            transport.sendto(request.encode("utf-8"))
        except OSError as exc:
            raise OSError(f"Failed to send SSDP request: {exc}") from exc
        try:
            data = await asyncio.wait_for(protocol.reply, timeout)
        except asyncio.TimeoutError:
            return None
        except OSError as exc:
            raise OSError(f"Failed to receive response: {exc}") from exc
    finally:
        transport.close()
    return data[:RECV_BUFFER].decode("utf-8", errors="replace")


def _report(response: SsdpResponse, target: str, port: int) -> None:
    if response.status_ok:
        print(
            f"[+] {target}:{port} | ST: {response.st} | Server: {response.server} | "
            f"Location: {response.location} | USN: {response.usn}"
        )
        if response.cache_control:
            print(f"    | Cache-Control: {response.cache_control}")
    else:
        print(f"[!] {target}:{port} | Unexpected response: {response.status_line}")


def _read(message: str) -> str:
    try:
        return input(message)
    except EOFError:
        return ""


def _prompt_int(message: str, minimum: int, maximum: int) -> int | None:
    answer = _read(message).strip()
    if not answer or not answer.isascii() or not answer.isdigit():
        return None
    value = int(answer)
    return value if minimum <= value <= maximum else None


def _prompt_verbose() -> bool:
    answer = _read("[*] Verbose output? [y/N]: ").strip().lower()
    return answer in ("y", "yes")


def _prompt_search_targets() -> list[SearchTarget]:
    print("[*] Select SSDP Search Targets:")
    print("  1. upnp:rootdevice (default)")
    print("  2. ssdp:all")
    print("  3. Custom ST")
    print("  4. All of the above")
    choice = _read("Enter choice [1-4, default 1]: ").strip()
    if choice == "2":
        return [SearchTarget.all_devices()]
    if choice == "3":
        custom = _read("Enter custom ST: ").strip()
        return [SearchTarget.custom(custom) if custom else SearchTarget.root_device()]
    if choice == "4":
        return [SearchTarget.root_device(), SearchTarget.all_devices()]
    return [SearchTarget.root_device()]


async def run(target: str) -> list[SsdpResponse]:
    """Interactively probe ``target``; return the replies that were received."""
    port = _prompt_int("[*] Enter custom port (default 1900): ", 0, 0xFFFF)
    port = DEFAULT_PORT if port is None else port
    timeout = _prompt_int(
        "[*] Enter timeout in seconds (default 3): ", 1, MAX_TIMEOUT_SECS
    ) or DEFAULT_TIMEOUT_SECS
    retries = _prompt_int(
        "[*] Enter number of retries (default 1): ", 1, MAX_RETRIES
    ) or DEFAULT_RETRIES
    verbose = _prompt_verbose()

    target = clean_ipv6_brackets(target)
    normalize_target(target, port)
    search_targets = _prompt_search_targets()

    print(f"[*] Sending SSDP M-SEARCH to {target}:{port}...")
    found: list[SsdpResponse] = []
    for index, st in enumerate(search_targets, start=1):
        if len(search_targets) > 1:
            print(f"[*] Trying ST: {st.st_header()} ({index}/{len(search_targets)})")
        for attempt in range(1, retries + 1):
            if retries > 1:
                print(f"  [*] Attempt {attempt}/{retries}")
            try:
                reply = await send_ssdp_request(target, port, st, float(timeout), verbose)
            except (OSError, ValueError) as exc:
                if verbose:
                    print(f"  [!] Error: {exc}", file=sys.stderr)
            else:
                if reply is not None:
                    parsed = parse_ssdp_response(reply)
                    _report(parsed, target, port)
                    found.append(parsed)
                    break
                if verbose:
                    print("  [-] No response received")
            if attempt < retries:
                await asyncio.sleep(RETRY_DELAY_SECS)

    if not found:
        print("[-] Target did not respond to any M-SEARCH requests")
    return found


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="netprobe-ssdp",
        description="Send SSDP M-SEARCH requests to a host.",
    )
    parser.add_argument("target", help="IPv4 address of the device")
    args = parser.parse_args(argv)
    try:
        asyncio.run(run(args.target))
    except (ValueError, OSError) as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 1
    return 0