import asyncio
import ipaddress
import socket

import pytest

from netprobe.ping_sweep import (
    ICMP,
    TCP,
    PingConfig,
    PingMethod,
    expand_hosts,
    icmp_command,
    icmp_probe,
    load_targets_from_file,
    methods_summary,
    parse_ports,
    parse_target,
    sweep,
    tcp_probe,
)


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_parse_target_bare_ipv4_becomes_host_network():
    net = parse_target("10.0.0.5")
    assert net.network.prefixlen == 32
    assert str(net.ip) == "10.0.0.5"


def test_parse_target_keeps_cidr_and_host_bits():
    net = parse_target("10.0.0.5/24")
    assert str(net) == "10.0.0.5/24"
    assert net.network == ipaddress.ip_network("10.0.0.0/24")


def test_parse_target_ipv6():
    net = parse_target("::1")
    assert net.network.prefixlen == 128
    assert net.ip == ipaddress.ip_address("::1")


@pytest.mark.parametrize(
    "value", ["not-an-ip", "1.2.3.4/33", "1.2.3.4/abc", "1.2.3.4/255.255.255.0", ""]
)
def test_parse_target_rejects_invalid(value):
    with pytest.raises(ValueError, match="Use IP or IP/CIDR"):
        parse_target(value)


def test_parse_ports_sorts_dedups_and_skips_invalid():
    assert parse_ports("443, 80 80,abc 70000") == [80, 443]


def test_parse_ports_empty():
    assert parse_ports("  , ") == []


def test_describe_and_label():
    assert PingMethod(ICMP).describe() == "ICMP"
    assert PingMethod(TCP, (80,)).describe() == "TCP/80"
    assert PingMethod(TCP, (80, 443)).describe() == "TCP [80,443]"
    assert PingMethod(TCP, (80, 443)).label() == "TCP"
    assert PingMethod(ICMP).label() == "ICMP"


def test_unknown_method_kind_rejected():
    with pytest.raises(ValueError):
        PingMethod("UDP")


def test_methods_summary_joins_descriptions():
    methods = [PingMethod(ICMP), PingMethod(TCP, (80, 443))]
    assert methods_summary(methods) == "ICMP, TCP [80,443]"


def test_expand_hosts_excludes_network_and_broadcast():
    net = parse_target("192.168.1.0/29")
    hosts = expand_hosts([net])
    assert net.network.network_address not in hosts
    assert net.network.broadcast_address not in hosts
    assert all(ip in net.network for ip in hosts)
    assert hosts == sorted(hosts)
    assert hosts == list(net.network.hosts())


def test_expand_hosts_small_ipv4_networks_keep_all():
    single = parse_target("10.1.1.1")
    pair = parse_target("10.1.1.0/31")
    assert expand_hosts([single]) == [single.ip]
    assert expand_hosts([pair]) == list(pair.network)


def test_expand_hosts_ipv6_keeps_whole_network():
    net = parse_target("2001:db8::/126")
    assert expand_hosts([net]) == list(net.network)


def test_expand_hosts_dedups_and_orders_v4_first():
    nets = [
        parse_target("::1"),
        parse_target("10.0.0.0/29"),
        parse_target("10.0.0.2"),
    ]
    hosts = expand_hosts(nets)
    assert len(hosts) == len(set(hosts))
    assert hosts[-1] == ipaddress.ip_address("::1")
    assert set(expand_hosts([nets[1]])) | {ipaddress.ip_address("::1")} == set(hosts)


def test_load_targets_from_file(tmp_path):
    path = tmp_path / "targets.txt"
    path.write_text(
        "# comment line\n10.0.0.1, 10.0.0.0/30 # trailing\n\nbogus 192.168.0.7\r\n"
    )
    nets = load_targets_from_file(path)
    assert nets == [
        parse_target("10.0.0.1"),
        parse_target("10.0.0.0/30"),
        parse_target("192.168.0.7"),
    ]


def test_load_targets_missing_file(tmp_path):
    with pytest.raises(OSError, match="Failed to open target file"):
        load_targets_from_file(tmp_path / "absent.txt")


def test_icmp_command_ipv4_uses_ping(monkeypatch):
    monkeypatch.setattr(
        "netprobe.ping_sweep.shutil.which", lambda name: f"/bin/{name}"
    )
    assert icmp_command("10.0.0.1", 2) == ["ping", "-c", "1", "-W", "2", "10.0.0.1"]


def test_icmp_command_minimum_wait_is_one(monkeypatch):
    monkeypatch.setattr(
        "netprobe.ping_sweep.shutil.which", lambda name: f"/bin/{name}"
    )
    assert icmp_command("10.0.0.1", 0)[4] == "1"


def test_icmp_command_ipv6_falls_back_to_ping_dash_6(monkeypatch):
    monkeypatch.setattr(
        "netprobe.ping_sweep.shutil.which",
        lambda name: "/bin/ping" if name == "ping" else None,
    )
    assert icmp_command("::1", 3) == ["ping", "-6", "-c", "1", "-W", "3", "::1"]


def test_icmp_command_ipv6_prefers_ping6(monkeypatch):
    monkeypatch.setattr(
        "netprobe.ping_sweep.shutil.which", lambda name: f"/bin/{name}"
    )
    assert icmp_command("::1", 3)[0] == "ping6"


def test_icmp_command_without_ping(monkeypatch):
    monkeypatch.setattr("netprobe.ping_sweep.shutil.which", lambda name: None)
    with pytest.raises(OSError, match="Neither 'ping' nor 'ping6'"):
        icmp_command("10.0.0.1", 1)


@pytest.mark.asyncio
async def test_icmp_probe_without_ping_raises(monkeypatch):
    monkeypatch.setattr("netprobe.ping_sweep.shutil.which", lambda name: None)
    with pytest.raises(OSError):
        await icmp_probe("127.0.0.1", 1.0)


@pytest.mark.asyncio
async def test_tcp_probe_reports_open_port_only():
    server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
    open_port = server.sockets[0].getsockname()[1]
    closed_port = _free_port()
    try:
        labels = await tcp_probe("127.0.0.1", [closed_port, open_port], 1.0)
    finally:
        server.close()
        await server.wait_closed()
    assert labels == [f"TCP/{open_port}"]


@pytest.mark.asyncio
async def test_tcp_probe_closed_port():
    assert await tcp_probe("127.0.0.1", [_free_port()], 1.0) == []


@pytest.mark.asyncio
async def test_sweep_finds_listening_host():
    server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    config = PingConfig(
        targets=[parse_target("127.0.0.1")],
        methods=[PingMethod(TCP, (port,))],
        concurrency=2,
        timeout_secs=1,
    )
    try:
        up = await sweep(config)
    finally:
        server.close()
        await server.wait_closed()
    assert up == {ipaddress.ip_address("127.0.0.1"): [f"TCP/{port}"]}


@pytest.mark.asyncio
async def test_sweep_reports_nothing_for_closed_host():
    config = PingConfig(
        targets=[parse_target("127.0.0.1")],
        methods=[PingMethod(TCP, (_free_port(),))],
        concurrency=1,
        timeout_secs=1,
        verbose=True,
    )
    assert await sweep(config) == {}


@pytest.mark.asyncio
async def test_sweep_with_no_targets():
    config = PingConfig(targets=[], methods=[PingMethod(ICMP)])
    assert await sweep(config) == {}