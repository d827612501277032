"""Host network queries: interfaces, their addresses and external commands."""

from __future__ import annotations

import functools
import ipaddress
import logging
import os
import re
import socket
import subprocess
from dataclasses import dataclass

import psutil

from bmcnet.addresses import to_cidr

__all__ = [
    "InternalFailure",
    "AddrInfo",
    "parse_interfaces",
    "ignored_interfaces_from_env",
    "get_ignored_interfaces",
    "interface_to_uboot_eth_addr",
    "get_interface_addrs",
    "get_interfaces",
    "delete_interface",
    "execute",
]

log = logging.getLogger(__name__)

IGNORED_INTERFACES_ENV = "IGNORED_INTERFACES"
IP_COMMAND = "/sbin/ip"

_C_SPACE = " \t\n\v\f\r"
_ULONG_MAX = (1 << 64) - 1
_STRTOUL_RE = re.compile(r"[ \t\n\v\f\r]*([+-]?)([0-9]+)")
_INET_FAMILIES = (socket.AF_INET, socket.AF_INET6)


class InternalFailure(RuntimeError):
    """An operation on the host system failed."""


@dataclass(frozen=True)
class AddrInfo:
    """One address configured on an interface."""

    addr_type: int
    ipaddress: str
    prefix: int


def parse_interfaces(interfaces: str) -> frozenset[str]:
    """Split a comma separated list of interface names, dropping blanks."""
    names = (part.strip(_C_SPACE) for part in interfaces.split(","))
    return frozenset(name for name in names if name)


def ignored_interfaces_from_env() -> str:
    """Return the raw IGNORED_INTERFACES setting, or an empty string."""
    return os.environ.get(IGNORED_INTERFACES_ENV, "")


@functools.cache
def get_ignored_interfaces() -> frozenset[str]:
    """Return the interfaces to ignore; read from the environment once."""
    return parse_interfaces(ignored_interfaces_from_env())


def interface_to_uboot_eth_addr(intf: str) -> str | None:
    """Name the u-boot environment variable holding the interface's MAC."""
    prefix = "eth"
    if not intf.startswith(prefix):
        return None
    match = _STRTOUL_RE.fullmatch(intf[len(prefix):])
    if match is None:
        return None
    sign, digits = match.groups()
    idx = int(digits)
    if idx > _ULONG_MAX:
        idx = _ULONG_MAX
    elif sign == "-":
        idx = -idx % (_ULONG_MAX + 1)
    if idx == 0:
        return "ethaddr"
    return f"eth{idx}addr"


def _snapshot() -> tuple[dict, dict]:
    try:
        return psutil.net_if_addrs(), psutil.net_if_stats()
    except OSError as exc:
        log.error("Error occurred during the getifaddrs call: ERRNO=%s", exc)
        raise InternalFailure("Unable to list interface addresses") from exc


def _strip_scope(address: str) -> str:
    return address.split("%", 1)[0]


def _is_loopback_addr(addr) -> bool:
    if addr.family not in _INET_FAMILIES:
        return False
    try:
        return ipaddress.ip_address(_strip_scope(addr.address)).is_loopback
    except ValueError:
        return False


def _link_state(stats, addrs) -> tuple[bool, bool]:
    """Return (is_loopback, is_running) for one interface."""
    raw_flags = getattr(stats, "flags", None) if stats is not None else None
    if raw_flags is not None:
        flags = set(raw_flags.split(","))
        return "loopback" in flags, "running" in flags
    loopback = any(_is_loopback_addr(addr) for addr in addrs)
    running = bool(getattr(stats, "isup", False))
    return loopback, running


def get_interface_addrs() -> dict[str, list[AddrInfo]]:
    """Map each running, non-loopback interface to its IPv4/IPv6 addresses."""
    all_addrs, all_stats = _snapshot()
    result: dict[str, list[AddrInfo]] = {}
    for name, addrs in all_addrs.items():
        inet_addrs = [addr for addr in addrs if addr.family in _INET_FAMILIES]
        if not inet_addrs:
            continue
        loopback, running = _link_state(all_stats.get(name), addrs)
        if loopback or not running:
            continue
        for addr in inet_addrs:
            netmask = addr.netmask
            prefix = 0 if netmask is None else to_cidr(addr.family, _strip_scope(netmask))
            result.setdefault(name, []).append(
                AddrInfo(int(addr.family), _strip_scope(addr.address), prefix)
            )
    return dict(sorted(result.items()))


def get_interfaces() -> set[str]:
    """Return every non-loopback interface that is not ignored."""
    all_addrs, all_stats = _snapshot()
    ignored = get_ignored_interfaces()
    interfaces: set[str] = set()
    for name in set(all_addrs) | set(all_stats):
        loopback, _ = _link_state(all_stats.get(name), all_addrs.get(name, ()))
        if loopback or name in ignored:
            continue
        interfaces.add(name)
    return interfaces


def delete_interface(intf: str) -> None:
    """Delete a network device with the ip command."""
    try:
        subprocess.run([IP_COMMAND, "link", "delete", "dev", intf], check=False)
    except OSError as exc:
        log.error("Couldn't delete the device: ERRNO=%s INTF=%s", exc.errno, intf)
        raise InternalFailure(f"Unable to delete the interface {intf}") from exc


def execute(path: str, *args: str) -> None:
    """Run the program at path with the given argv and wait for it.

    The first argument is the program's argv[0], as with execv.
    """
    argv = list(args) or [path]
    try:
        subprocess.run(argv, executable=path, check=False)
    except OSError as exc:
        command = " ".join([path, *args])
        log.error("Couldn't execute the command: ERRNO=%s CMD=%s", exc.errno, command)
        raise InternalFailure(f"Unable to execute the command {command}") from exc