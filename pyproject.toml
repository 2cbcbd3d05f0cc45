[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "netprobe"
version = "0.2.0"
description = "Interactive network reconnaissance scanners: HTTP methods and titles, DNS recursion, ping sweeps, port scans and SSDP discovery, plus target and proxy-list helpers"
requires-python = ">=3.10"
keywords = ["network", "scanner", "dns", "http", "ssdp", "ping", "port-scan", "proxy"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "httpx",
    "dnspython",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
netprobe-http-methods = "netprobe.http_methods:main"
netprobe-http-titles = "netprobe.http_titles:main"
netprobe-dns-recursion = "netprobe.dns_recursion:main"
netprobe-ping-sweep = "netprobe.ping_sweep:main"
netprobe-port-scan = "netprobe.port_scanner:main"
netprobe-ssdp = "netprobe.ssdp:main"

[tool.hatch.build.targets.wheel]
packages = ["netprobe"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
