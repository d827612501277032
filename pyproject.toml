[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bmcnet"
version = "0.1.0"
description = "Network helpers for a BMC: address and MAC utilities, routing table, rtnetlink events, file watches and VLAN device files"
requires-python = ">=3.10"
keywords = ["networking", "netlink", "routing", "vlan", "bmc", "systemd-networkd"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]
dependencies = [
    "psutil",
    "watchdog",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["bmcnet"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"
