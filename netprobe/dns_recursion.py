"""Check DNS resolvers for open recursion (reflection/amplification exposure)."""

from __future__ import annotations

import argparse
import asyncio
import enum
import ipaddress
import random
import re
import socket
import string
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

import dns.asyncquery
import dns.exception
import dns.flags
import dns.message
import dns.name
import dns.rcode
import dns.rdataclass
import dns.rdatatype

DEFAULT_DNS_PORT = 53
QUERY_TIMEOUT_SECS = 5.0
MAX_INPUT_LENGTH = 255
MAX_DOMAIN_LENGTH = 253
TEST_DOMAIN_SUFFIX = "netprobe.test"

RECORD_TYPES = {
    "A": dns.rdatatype.A,
    "AAAA": dns.rdatatype.AAAA,
    "ANY": dns.rdatatype.ANY,
    "DNSKEY": dns.rdatatype.DNSKEY,
    "TXT": dns.rdatatype.TXT,
    "MX": dns.rdatatype.MX,
}

_TARGET_CHARS = frozenset(string.ascii_letters + string.digits + ".-_:[]")
_DOMAIN_CHARS = frozenset(string.ascii_letters + string.digits + ".-_")
_TOKEN_SPLIT_RE = re.compile(r"[,\t\n\x0c\r ]")
_LABEL_ALPHABET = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class TargetSpec:
    """A resolver target as entered, with its host and optional port."""

    input: str
    host: str
    port: int | None = None


class RecursionVerdict(enum.Enum):
    """How a resolver answered with respect to recursion."""

    OPEN = "open"
    ACL_PROTECTED = "acl_protected"
    CLOSED = "closed"


def sanitize_target_input(value: str) -> str:
    """Trim a target and reject empty, overlong or oddly-charactered input."""
    trimmed = value.strip()
    if not trimmed:
        raise ValueError("Target cannot be empty")
    if len(trimmed.encode("utf-8")) > MAX_INPUT_LENGTH:
        raise ValueError(
            f"Target '{trimmed}' is too long (maximum {MAX_INPUT_LENGTH} characters)"
        )
    if not all(ch in _TARGET_CHARS for ch in trimmed):
        raise ValueError(
            f"Target '{trimmed}' contains invalid characters. "
            "Allowed: A-Z, 0-9, '.', '-', '_', ':', '[', ']'"
        )
    return trimmed


def _is_port_text(text: str) -> bool:
    return text.isascii() and text.isdigit() and int(text) <= 0xFFFF


def _parse_socket_addr(value: str) -> tuple[str, int] | None:
    """Parse ``ipv4:port`` or ``[ipv6]:port``; ``None`` if it is neither."""
    if value.startswith("["):
        end = value.find("]")
        if end < 0 or value[end + 1 : end + 2] != ":":
            return None
        host, port_text = value[1:end], value[end + 2 :]
        try:
            ip: ipaddress.IPv4Address | ipaddress.IPv6Address = ipaddress.IPv6Address(host)
        except ValueError:
            return None
    else:
        host, sep, port_text = value.rpartition(":")
        if not sep:
            return None
        try:
            ip = ipaddress.IPv4Address(host)
        except ValueError:
            return None
    if not _is_port_text(port_text):
        return None
    return str(ip), int(port_text)


def _parse_port(port_text: str, value: str) -> int:
    if not _is_port_text(port_text):
        raise ValueError(f"Invalid port '{port_text}' in target '{value}'")
    port = int(port_text)
    if port == 0:
        raise ValueError("Port must be between 1 and 65535")
    return port


def split_host_port(value: str) -> tuple[str, int | None]:
    """Split a target into host and optional port, validating both."""
    if not value:
        raise ValueError("Target cannot be empty")

    socket_addr = _parse_socket_addr(value)
    if socket_addr is not None:
        return socket_addr

    if value.startswith("["):
        end = value.find("]")
        if end < 0:
            raise ValueError(f"Malformed IPv6 target '{value}': missing ']'")
        host = value[1:end]
        if len(value) == end + 1:
            return host, None
        if value[end + 1] != ":":
            raise ValueError(f"Malformed IPv6 target '{value}': expected ':' after ']'")
        port_text = value[end + 2 :]
        if not port_text:
            raise ValueError(f"Missing port after IPv6 address in '{value}'")
        return host, _parse_port(port_text, value)

    if value.endswith(":"):
        raise ValueError(f"Invalid target '{value}': trailing ':' without port")

    colons = value.count(":")
    if colons == 1:
        host, _, port_text = value.rpartition(":")
        if not host:
            raise ValueError(f"Host cannot be empty in target '{value}'")
        return host, _parse_port(port_text, value)

    if colons >= 2:
        try:
            ip = ipaddress.ip_address(value)
        except ValueError as exc:
            raise ValueError(
                f"Invalid IPv6 address '{value}' (use [addr]:port for scoped ports)"
            ) from exc
        return str(ip), None

    return value, None


def parse_target_spec(token: str) -> TargetSpec:
    sanitized = sanitize_target_input(token)
    host, port = split_host_port(sanitized)
    return TargetSpec(input=sanitized, host=host.lower(), port=port)


def format_endpoint(host: str, port: int) -> str:
    """Render ``host:port``, bracketing IPv6 literals."""
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        ip = None
    if isinstance(ip, ipaddress.IPv6Address):
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def validate_domain_input(value: str) -> str:
    """Return the domain lower-cased and without trailing dots."""
    trimmed = value.strip()
    if not trimmed:
        raise ValueError("Domain cannot be empty")
    if len(trimmed.encode("utf-8")) > MAX_DOMAIN_LENGTH:
        raise ValueError(
            f"Domain '{trimmed}' is too long (maximum {MAX_DOMAIN_LENGTH} characters)"
        )
    without_dot = trimmed.rstrip(".")
    if not without_dot:
        raise ValueError("Domain cannot be empty")
    if not all(ch in _DOMAIN_CHARS for ch in without_dot):
        raise ValueError(
            f"Domain '{trimmed}' contains invalid characters. "
            "Allowed: A-Z, 0-9, '-', '_', '.'"
        )
    return without_dot.lower()


def parse_record_type(value: str) -> dns.rdatatype.RdataType:
    key = value.strip().upper()
    try:
        return RECORD_TYPES[key]
    except KeyError:
        raise ValueError(f"Unsupported record type '{key}'") from None


def random_test_domain() -> str:
    """A random 12-character label under the test suffix."""
    label = "".join(random.choice(_LABEL_ALPHABET) for _ in range(12))
    return f"{label}.{TEST_DOMAIN_SUFFIX}"


@dataclass
class TargetCollector:
    """Accumulates unique targets, keyed by host and port."""

    targets: list[TargetSpec] = field(default_factory=list)
    _seen: set[str] = field(default_factory=set, repr=False)

    def __len__(self) -> int:
        return len(self.targets)

    def add_token(self, token: str, context: str) -> bool:
        """Add one target token; return whether it was new and valid."""
        if token.lower() == "stop":
            return False
        try:
            spec = parse_target_spec(token)
        except ValueError as exc:
            print(f"    [{context}] Skipping invalid target '{token}': {exc}", file=sys.stderr)
            return False
        key = f"{spec.host}:{spec.port or 0}"
        if key in self._seen:
            print(f"    [{context}] Duplicate target '{token}' skipped")
            return False
        self._seen.add(key)
        self.targets.append(spec)
        print(f"    [{context}] Added target {spec.input}")
        return True

    def add_from_string(self, text: str, context: str) -> int:
        """Add targets separated by commas or whitespace; return how many were new."""
        tokens = (piece.strip() for piece in _TOKEN_SPLIT_RE.split(text))
        return sum(1 for token in tokens if token and self.add_token(token, context))

    def add_from_file(self, path: str | Path) -> int:
        """Add targets from a file, ignoring ``#`` comments; raises ``OSError``."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise OSError(f"Failed to read target file '{path}': {exc}") from exc
        except OSError as exc:
            raise OSError(f"Failed to open target file '{path}': {exc}") from exc

        pieces = text.split("\n")
        if pieces and pieces[-1] == "":
            pieces.pop()
        added = 0
        for number, line in enumerate(pieces, start=1):
            content = line.split("#", 1)[0].strip()
            if content:
                added += self.add_from_string(content, f"file:{path}:{number}")
        return added


def _format_socket_addr(ip: str, port: int) -> str:
    return f"[{ip}]:{port}" if ":" in ip else f"{ip}:{port}"


def resolve_target(host: str, port: int) -> tuple[tuple[str, int], str]:
    """Resolve a host to ``((ip, port), display)``; raises ``OSError`` on failure."""
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        ip = None
    if ip is not None:
        return (str(ip), port), format_endpoint(host, port)

    try:
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_DGRAM)
    except (OSError, UnicodeError) as exc:
        raise OSError(f"Unable to resolve '{host}:{port}': {exc}") from exc
    if not infos:
        raise OSError(f"No socket addresses resolved for '{host}:{port}'")
    sockaddr = infos[0][4]
    address = str(sockaddr[0]).split("%", 1)[0]
    resolved_port = int(sockaddr[1])
    return (address, resolved_port), _format_socket_addr(address, resolved_port)


def assess_response(message: dns.message.Message) -> RecursionVerdict:
    """Classify a response by its RA flag and response code."""
    recursion_available = bool(message.flags & dns.flags.RA)
    refused = message.rcode() == dns.rcode.REFUSED
    if recursion_available and not refused:
        return RecursionVerdict.OPEN
    if recursion_available:
        return RecursionVerdict.ACL_PROTECTED
    return RecursionVerdict.CLOSED


async def query_target(
    address: tuple[str, int],
    name: dns.name.Name | str,
    record_type: dns.rdatatype.RdataType,
    timeout: float = QUERY_TIMEOUT_SECS,
) -> dns.message.Message:
    """Send one recursive query over UDP; raises ``ConnectionError`` on failure."""
    ip, port = address
    query = dns.message.make_query(name, record_type, dns.rdataclass.IN)
    try:
        return await dns.asyncquery.udp(query, ip, timeout=timeout, port=port)
    except (dns.exception.DNSException, OSError, ValueError) as exc:
        display = _format_socket_addr(ip, port)
        detail = str(exc) or type(exc).__name__
        raise ConnectionError(f"DNS query to {display} failed: {detail}") from exc


def _record_count(section: list) -> int:
    return sum(len(rrset) for rrset in section)


def _report(
    message: dns.message.Message, name_text: str, record_type: dns.rdatatype.RdataType
) -> RecursionVerdict:
    flags = message.flags
    rd = str(bool(flags & dns.flags.RD)).lower()
    ra = str(bool(flags & dns.flags.RA)).lower()
    authoritative = bool(flags & dns.flags.AA)

    print()
    print(
        f"[*] Response code: {dns.rcode.to_text(message.rcode())} | "
        f"Answers: {_record_count(message.answer)} | "
        f"Authority: {_record_count(message.authority)} | "
        f"Additional: {_record_count(message.additional)}"
    )
    if flags & dns.flags.TC:
        print("[!] Response was truncated (TC flag set).")
    print(f"[*] Flags: RD={rd} RA={ra} AA={str(authoritative).lower()}")

    verdict = assess_response(message)
    if verdict is RecursionVerdict.OPEN:
        note = "(authoritative data returned)" if authoritative else ""
        print(
            f"[+] {name_text} appears to allow recursion (RA flag set) for "
            f"{dns.rdatatype.to_text(record_type)} {note} queries."
        )
        print(
            "    This resolver may be abused for reflection/amplification "
            "attacks (ANY/DNSSEC)."
        )
    elif verdict is RecursionVerdict.ACL_PROTECTED:
        print(
            f"[-] {name_text} reports recursion available but refused the "
            "request (likely ACL protected)."
        )
    else:
        print(
            f"[-] {name_text} does not appear to allow recursion "
            "(RA flag unset or query refused)."
        )
    return verdict


def _read(message: str) -> str:
    try:
        return input(message)
    except EOFError:
        return ""


def _prompt_default(message: str, default: str) -> str:
    answer = _read(f"{message} [{default}]: ").strip()
    if not answer:
        return default
    if len(answer.encode("utf-8")) > MAX_INPUT_LENGTH:
        raise ValueError("Input too long")
    return answer


def _prompt_port(message: str, default: int) -> int:
    while True:
        answer = _read(f"{message} [{default}]: ").strip()
        if not answer:
            return default
        if _is_port_text(answer) and int(answer) > 0:
            return int(answer)
        print("Please provide a valid port between 1 and 65535.")


def _prompt_line(message: str) -> str:
    answer = input(message).strip()
    if len(answer.encode("utf-8")) > MAX_INPUT_LENGTH:
        raise ValueError(f"Input too long (max {MAX_INPUT_LENGTH} characters).")
    return answer


def _prompt_yes_no(message: str, default_yes: bool) -> bool:
    hint = "Y/n" if default_yes else "y/N"
    while True:
        answer = _read(f"{message} [{hint}]: ").strip().lower()
        if not answer:
            return default_yes
        if answer in ("y", "yes"):
            return True
        if answer in ("n", "no", "stop"):
            return False
        print("Please answer with 'y' or 'n'.")


def _report_file_load(collector: TargetCollector, path: str) -> None:
    try:
        count = collector.add_from_file(path)
    except OSError as exc:
        print(f"    Failed to read '{path}': {exc}", file=sys.stderr)
        return
    if count == 0:
        print(f"    No valid targets parsed from '{path}'")
    else:
        print(f"    Loaded {count} target(s) from '{path}'")


def _collect_targets(initial: str) -> TargetCollector:
    collector = TargetCollector()
    trimmed = initial.strip()
    if trimmed:
        added = collector.add_from_string(trimmed, "cli")
        if added == 0 and Path(trimmed).is_file():
            print(f"[*] Loading targets from file '{trimmed}'")
            _report_file_load(collector, trimmed)

    if _prompt_yes_no(
        "Add additional targets manually? (type 'stop' to finish)", not collector.targets
    ):
        while True:
            try:
                entry = _prompt_line("Target (IP/host[:port], 'stop' to finish): ")
            except EOFError:
                break
            if not entry:
                continue
            if entry.lower() == "stop":
                break
            collector.add_token(entry, "interactive")

    if _prompt_yes_no("Load targets from file?", False):
        while True:
            try:
                path = _prompt_line("Path to file ('stop' to finish): ")
            except EOFError:
                break
            if not path:
                continue
            if path.lower() == "stop":
                break
            _report_file_load(collector, path)

    return collector


async def run(initial_target: str) -> None:
    """Interactively gather resolvers and query each of them once."""
    print("\n=== DNS Recursion & Amplification Scanner ===")

    collector = _collect_targets(initial_target)
    if not collector.targets:
        raise ValueError("No valid targets provided. Supply at least one IP/hostname.")

    if any(spec.port is None for spec in collector.targets):
        default_port = _prompt_port(
            "Default DNS port for targets without port", DEFAULT_DNS_PORT
        )
    else:
        default_port = DEFAULT_DNS_PORT

    query_name = validate_domain_input(
        _prompt_default("Domain to query", random_test_domain())
    )
    record_type = parse_record_type(
        _prompt_default("Record type (A, AAAA, ANY, DNSKEY, TXT, MX)", "ANY")
    )
    print(
        f"[*] Prepared {dns.rdatatype.to_text(record_type)} query for {query_name} "
        f"across {len(collector.targets)} target(s)"
    )

    try:
        name = dns.name.from_text(query_name)
    except dns.exception.DNSException as exc:
        raise ValueError(f"Invalid domain name '{query_name}': {exc}") from exc
    name_text = name.to_text(omit_final_dot=True)

    any_success = False
    last_error: Exception | None = None
    for spec in collector.targets:
        port = spec.port if spec.port is not None else default_port
        print(
            f"\n[*] Processing target {format_endpoint(spec.host, port)} "
            f"(input: {spec.input})"
        )
        try:
            address, display = resolve_target(spec.host, port)
        except OSError as exc:
            print(f"[!] Failed to resolve {spec.input}: {exc}", file=sys.stderr)
            last_error = exc
            continue

        print(f"[*] Target resolver: {display}")
        print(
            f"[*] Sending {dns.rdatatype.to_text(record_type)} query "
            f"(timeout {QUERY_TIMEOUT_SECS:g}s) to {display}"
        )
        try:
            response = await query_target(address, name, record_type, QUERY_TIMEOUT_SECS)
        except ConnectionError as exc:
            print(f"[!] Query failed for {display}: {exc}", file=sys.stderr)
            last_error = exc
            continue
        _report(response, name_text, record_type)
        any_success = True

    if not any_success:
        if last_error is not None:
            raise last_error
        raise RuntimeError("All targets failed.")


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="netprobe-dns-recursion",
        description="Check DNS resolvers for open recursion.",
    )
    parser.add_argument(
        "target", nargs="?", default="", help="resolvers (IP/host[:port]) or a file"
    )
    args = parser.parse_args(argv)
    try:
        asyncio.run(run(args.target))
    except (ValueError, OSError, RuntimeError) as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 1
    return 0