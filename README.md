# netprobe

A set of interactive command-line scanners for looking at hosts and
services on networks you are responsible for. Every scanner asks for its
settings at the terminal, with defaults that pressing Enter accepts.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Commands

| Command | What it does |
|---|---|
| `netprobe-http-methods [targets]` | Sends GET, POST, HEAD, OPTIONS, PUT, DELETE, PATCH, TRACE and CONNECT to each target and prints the status of each. Targets without a scheme get `https://` unless you choose `http`. Optionally writes a text report (default name `http_method_scan_<date>_<time>.txt`). |
| `netprobe-http-titles [targets]` | Fetches each target over HTTPS and/or HTTP and prints the page `<title>` (collapsed to one line, at most 200 characters). Optionally writes a text report (default name `http_title_scan_<date>_<time>.txt`). |
| `netprobe-dns-recursion [target]` | Sends one DNS query (A, AAAA, ANY, DNSKEY, TXT or MX; default ANY for a random name under `netprobe.test`) to each resolver and reports whether the RA flag is set and whether the query was refused. The argument may also be a file of targets. |
| `netprobe-ping-sweep [ip-or-cidr]` | Sweeps addresses and networks with ICMP (through the system `ping`/`ping6` commands) and/or TCP connect probes, and prints the hosts that answered. |
| `netprobe-port-scan <host>` | TCP (and optionally UDP) scan over all ports, the common ports, ports 1–1000 or a custom range, with banner grabbing and service guessing. Results go to a file (default `scan_results.txt`). |
| `netprobe-ssdp <ipv4-address>` | Sends SSDP M-SEARCH requests (`upnp:rootdevice`, `ssdp:all` or a custom ST) to a host on port 1900 by default and prints the ST, Server, Location and USN headers of the reply. |

Targets for the HTTP scanners may be separated by commas, semicolons or
new lines, and may also be read from a file; ports can be added to every
target with the port tunnelling option. The DNS and ping scanners read
target files with one or more entries (comma or space separated) per
line, `#` starting a comment. DNS targets take the form `host`,
`host:port`, `ipv4:port`, `ipv6` or `[ipv6]:port`; ping targets take an
IP address or `IP/prefix`.

Examples:

```
netprobe-http-titles example.com,example.org
netprobe-dns-recursion 192.0.2.53:53
netprobe-ping-sweep 192.0.2.0/28
netprobe-port-scan 192.0.2.10
netprobe-ssdp 192.0.2.1
```

## Library use

Besides the commands, each scanner module exposes its parsing and probing
functions, for example `netprobe.port_scanner.run_with_settings` with a
`ScanSettings` and a `PortRange`, `netprobe.ping_sweep.sweep` with a
`PingConfig`, or `netprobe.dns_recursion.query_target` and
`assess_response`, which classifies a reply as a `RecursionVerdict`
(`OPEN`, `ACL_PROTECTED` or `CLOSED`).

Two helper modules have no command of their own:

- `netprobe.targets.normalize_target` validates a target and brackets bare
  IPv6 addresses, so `"::1"` becomes `"[::1]"`; it raises `ValueError` for
  empty, overlong or malformed input.
- `netprobe.proxies.load_proxies_from_file` reads a proxy list (one entry
  per line, `#` and `//` starting comments, `http://` added where no scheme
  is given) and returns a `ProxyLoadSummary` of accepted proxies and
  `SkippedProxy` entries with line numbers and reasons; it raises
  `ProxyError` when nothing usable is found. `netprobe.proxies.test_proxies`
  fetches a test URL through each proxy concurrently and returns a
  `ProxyTestSummary` of working and failed proxies.

## What it does not do

There is no single shell that lists and runs the scanners; each one is a
separate command. The proxy helpers are not used by any scanner: loading
or testing a proxy list does not route scans through it. There is no
traceroute.

Only scan hosts and networks you own or are authorised to test.