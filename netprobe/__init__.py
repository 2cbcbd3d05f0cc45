"""Interactive network scanners (HTTP methods and titles, DNS recursion, ping sweep, port scan, SSDP) with target and proxy-list helpers."""

__version__ = "0.2.0"