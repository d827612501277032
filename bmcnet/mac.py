"""Ethernet MAC address parsing, formatting and classification."""

from __future__ import annotations

import re

__all__ = ["from_string", "to_string", "is_empty", "is_multicast", "is_unicast"]

MAC_LENGTH = 6

_MAC_RE = re.compile(r"(?:[0-9a-fA-F]{1,2}:){5}[0-9a-fA-F]{1,2}(?:\s.*)?", re.DOTALL)


def _as_mac(mac: bytes) -> bytes:
    data = bytes(mac)
    if len(data) != MAC_LENGTH:
        raise ValueError(f"MAC address must be {MAC_LENGTH} bytes")
    return data


def from_string(text: str) -> bytes:
    """Parse a colon separated MAC address into its six bytes.

    Each group holds one or two hex digits; anything after trailing
    whitespace is ignored.
    """
    if not _MAC_RE.fullmatch(text):
        raise ValueError("Invalid MAC Address")
    groups = text.split(None, 1)[0].split(":")
    return bytes(int(group, 16) for group in groups)


def to_string(mac: bytes) -> str:
    """Format six MAC bytes as lower-case colon separated hex."""
    return ":".join(f"{octet:02x}" for octet in _as_mac(mac))


def is_empty(mac: bytes) -> bool:
    """True for 00:00:00:00:00:00."""
    return _as_mac(mac) == bytes(MAC_LENGTH)


def is_multicast(mac: bytes) -> bool:
    """True if the multicast bit of the first octet is set."""
    return bool(_as_mac(mac)[0] & 0b1)


def is_unicast(mac: bytes) -> bool:
    """True if the address is neither empty nor multicast."""
    return not is_empty(mac) and not is_multicast(mac)