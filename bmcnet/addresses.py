"""IP address helpers: validation, prefix/netmask conversion and raw byte decoding."""

from __future__ import annotations

import ipaddress
import logging
import socket

__all__ = [
    "IPV4_MIN_PREFIX_LENGTH",
    "IPV4_MAX_PREFIX_LENGTH",
    "IPV6_MAX_PREFIX_LENGTH",
    "IPV4_LINK_LOCAL_PREFIX",
    "IPV6_LINK_LOCAL_PREFIX",
    "to_cidr",
    "to_mask",
    "addr_from_buf",
    "addr_to_string",
    "is_link_local_ip",
    "is_valid_ip",
    "is_valid_prefix",
]

log = logging.getLogger(__name__)

IPV4_MIN_PREFIX_LENGTH = 1
IPV4_MAX_PREFIX_LENGTH = 32
IPV6_MAX_PREFIX_LENGTH = 128
IPV4_LINK_LOCAL_PREFIX = "169.254"
IPV6_LINK_LOCAL_PREFIX = "fe80"

_ADDRESS_SIZES = {socket.AF_INET: 4, socket.AF_INET6: 16}


def _pton(family: int, address: str) -> bytes | None:
    """Parse a textual address into packed bytes, or None when it is not valid."""
    try:
        return socket.inet_pton(family, address)
    except (OSError, ValueError, TypeError):
        return None


def to_cidr(family: int, mask: str) -> int:
    """Convert a subnet mask into its prefix length; 0 for an invalid mask."""
    packed = _pton(family, mask)
    if packed is None:
        log.error("inet_pton failed: SUBNETMASK=%s", mask)
        return 0

    bits = len(packed) * 8
    value = int.from_bytes(packed, "big")
    if value == 0:
        return 0

    host_bits = ~value & ((1 << bits) - 1)
    # The host part must be a contiguous run of low-order ones.
    if host_bits & (host_bits + 1):
        log.error("Invalid netmask: SUBNETMASK=%s", mask)
        return 0
    return bits - host_bits.bit_length()


def to_mask(family: int, prefix: int) -> str:
    """Convert a prefix length into a dotted IPv4 netmask.

    IPv6 is not converted and yields an empty string, as does a prefix
    outside 1..30.
    """
    if family == socket.AF_INET6:
        return ""
    if prefix < 1 or prefix > 30:
        log.error("Invalid Prefix: PREFIX=%d", prefix)
        return ""
    mask = (0xFFFFFFFF << (32 - prefix)) & 0xFFFFFFFF
    return socket.inet_ntop(socket.AF_INET, mask.to_bytes(4, "big"))


def addr_from_buf(
    family: int, buf: bytes
) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    """Build an address from network byte order bytes of the given family."""
    size = _ADDRESS_SIZES.get(family)
    if size is None:
        raise ValueError("Unsupported address family")
    data = bytes(buf)
    if len(data) != size:
        kind = "in_addr" if family == socket.AF_INET else "in6_addr"
        raise ValueError(f"Buf not {kind} sized")
    if family == socket.AF_INET:
        return ipaddress.IPv4Address(data)
    return ipaddress.IPv6Address(data)


def addr_to_string(addr: ipaddress.IPv4Address | ipaddress.IPv6Address) -> str:
    """Render an address the way the system's inet_ntop does."""
    if isinstance(addr, ipaddress.IPv4Address):
        return socket.inet_ntop(socket.AF_INET, addr.packed)
    if isinstance(addr, ipaddress.IPv6Address):
        return socket.inet_ntop(socket.AF_INET6, addr.packed)
    raise TypeError("Invalid addr type")


def is_link_local_ip(address: str) -> bool:
    """Tell whether the textual address starts with a link-local prefix."""
    return address.startswith(IPV4_LINK_LOCAL_PREFIX) or address.startswith(
        IPV6_LINK_LOCAL_PREFIX
    )


def is_valid_ip(family: int, address: str) -> bool:
    """Tell whether the address parses for the given family."""
    return _pton(family, address) is not None


def is_valid_prefix(family: int, prefix_length: int) -> bool:
    """Tell whether the prefix length is allowed for the given family."""
    if family == socket.AF_INET:
        return IPV4_MIN_PREFIX_LENGTH <= prefix_length <= IPV4_MAX_PREFIX_LENGTH
    if family == socket.AF_INET6:
        return IPV4_MIN_PREFIX_LENGTH <= prefix_length <= IPV6_MAX_PREFIX_LENGTH
    return True