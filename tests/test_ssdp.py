import asyncio
import socket

import pytest

from netprobe.ssdp import (
    ALL_ST,
    ROOT_DEVICE_ST,
    SearchTarget,
    build_msearch,
    clean_ipv6_brackets,
    normalize_target,
    parse_ssdp_response,
    send_ssdp_request,
)

SAMPLE_REPLY = (
    "HTTP/1.1 200 OK\r\n"
    "CACHE-CONTROL: max-age=1800\r\n"
    "LOCATION: http://192.168.1.1:80/desc.xml\r\n"
    "SERVER: Linux UPnP/1.0\r\n"
    "ST: upnp:rootdevice\r\n"
    "USN: uuid:placeholder::upnp:rootdevice\r\n"
    "EXT:\r\n"
    "\r\n"
)


def test_search_target_headers():
    assert SearchTarget.root_device().st_header() == ROOT_DEVICE_ST
    assert SearchTarget.all_devices().st_header() == ALL_ST
    assert SearchTarget.custom("urn:x").st_header() == "urn:x"


def test_clean_ipv6_brackets_strips_repeated_brackets():
    assert clean_ipv6_brackets("[[::1]]") == "::1"
    assert clean_ipv6_brackets("10.0.0.1") == "10.0.0.1"


@pytest.mark.parametrize(
    "target, expected",
    [
        ("::1", "[::1]:1900"),
        ("[::1]", "[::1]:1900"),
        ("192.168.1.1", "192.168.1.1:1900"),
    ],
)
def test_normalize_target(target, expected):
    assert normalize_target(target, 1900) == expected


def test_build_msearch_layout():
    request = build_msearch("10.0.0.1", 1900, 3, SearchTarget.all_devices())
    assert request.startswith("M-SEARCH * HTTP/1.1\r\n")
    assert "HOST: 10.0.0.1:1900\r\n" in request
    assert 'MAN: "ssdp:discover"\r\n' in request
    assert "MX: 3\r\n" in request
    assert "ST: ssdp:all\r\n" in request
    assert request.endswith("\r\n\r\n")


def test_build_msearch_mx_at_least_one():
    assert "MX: 1\r\n" in build_msearch("10.0.0.1", 1900, 0, ROOT_DEVICE_ST)


def test_parse_ssdp_response_headers():
    parsed = parse_ssdp_response(SAMPLE_REPLY)
    assert parsed.status_ok
    assert parsed.status_line == "HTTP/1.1 200 OK"
    assert parsed.server == "Linux UPnP/1.0"
    assert parsed.location == "http://192.168.1.1:80/desc.xml"
    assert parsed.st == "upnp:rootdevice"
    assert parsed.usn == "uuid:placeholder::upnp:rootdevice"
    assert parsed.cache_control == "max-age=1800"
    assert parsed.ext == ""


def test_parse_ssdp_response_unexpected():
    parsed = parse_ssdp_response("garbage\r\nmore\r\n")
    assert not parsed.status_ok
    assert parsed.status_line == "garbage"
    assert parsed.server == ""


@pytest.mark.asyncio
async def test_send_rejects_hostname():
    with pytest.raises(ValueError):
        await send_ssdp_request("example.com", 1900, SearchTarget.root_device(), 1.0)


class _Responder(asyncio.DatagramProtocol):
    def __init__(self, reply):
        self.reply = reply
        self.received = []

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        self.received.append(data)
        if self.reply is not None:
            self.transport.sendto(self.reply, addr)


async def _start_responder(reply):
    loop = asyncio.get_running_loop()
    transport, protocol = await loop.create_datagram_endpoint(
        lambda: _Responder(reply), local_addr=("127.0.0.1", 0), family=socket.AF_INET
    )
    return transport, protocol, transport.get_extra_info("sockname")[1]


@pytest.mark.asyncio
async def test_send_receives_reply():
    transport, protocol, port = await _start_responder(SAMPLE_REPLY.encode())
    try:
        reply = await send_ssdp_request("127.0.0.1", port, SearchTarget.root_device(), 2.0)
    finally:
        transport.close()
    assert reply == SAMPLE_REPLY
    assert protocol.received[0].startswith(b"M-SEARCH * HTTP/1.1\r\n")
    assert b"ST: upnp:rootdevice\r\n" in protocol.received[0]


@pytest.mark.asyncio
async def test_send_times_out_without_reply():
    transport, protocol, port = await _start_responder(None)
    try:
        reply = await send_ssdp_request("127.0.0.1", port, ALL_ST, 0.3)
    finally:
        transport.close()
    assert reply is None
    assert len(protocol.received) == 1