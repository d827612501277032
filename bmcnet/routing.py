"""Read the kernel's main routing table over rtnetlink."""

from __future__ import annotations

import logging
import os
import socket
import struct
from collections.abc import Iterator
from dataclasses import dataclass

from bmcnet.addresses import addr_from_buf, addr_to_string
from bmcnet.system import InternalFailure

__all__ = [
    "RouteEntry",
    "NetlinkMessage",
    "RoutingTable",
    "iter_netlink_messages",
    "iter_route_attributes",
]

log = logging.getLogger(__name__)

BUFSIZE = 4096

NETLINK_ROUTE = 0
NLMSG_NOOP = 1
NLMSG_ERROR = 2
NLMSG_DONE = 3
NLMSG_MIN_TYPE = 0x10
NLM_F_REQUEST = 0x1
NLM_F_MULTI = 0x2
NLM_F_DUMP = 0x300
RTM_NEWROUTE = 24
RTM_GETROUTE = 26
RTA_DST = 1
RTA_OIF = 4
RTA_GATEWAY = 5
RT_TABLE_MAIN = 254

_AF_NETLINK = getattr(socket, "AF_NETLINK", 16)
_NLMSGHDR = struct.Struct("=IHHII")
_RTATTR = struct.Struct("=HH")
_RTMSG = struct.Struct("=BBBBBBBBI")
_IFINDEX = struct.Struct("=i")


def _align(length: int) -> int:
    return (length + 3) & ~3


@dataclass(frozen=True)
class RouteEntry:
    """A route: destination network, gateway and outgoing interface."""

    destination: str
    gateway: str
    interface: str


@dataclass(frozen=True)
class NetlinkMessage:
    """One netlink message: header fields and payload."""

    type: int
    flags: int
    seq: int
    pid: int
    payload: bytes


def iter_netlink_messages(data: bytes) -> Iterator[NetlinkMessage]:
    """Yield the well-formed netlink messages packed in data."""
    data = bytes(data)
    offset = 0
    while len(data) - offset >= _NLMSGHDR.size:
        length, msg_type, flags, seq, pid = _NLMSGHDR.unpack_from(data, offset)
        if length < _NLMSGHDR.size or length > len(data) - offset:
            return
        payload = data[offset + _NLMSGHDR.size : offset + length]
        yield NetlinkMessage(msg_type, flags, seq, pid, payload)
        offset += _align(length)


def iter_route_attributes(data: bytes) -> Iterator[tuple[int, bytes]]:
    """Yield (type, payload) for each well-formed route attribute in data."""
    data = bytes(data)
    offset = 0
    while len(data) - offset >= _RTATTR.size:
        length, attr_type = _RTATTR.unpack_from(data, offset)
        if length < _RTATTR.size or length > len(data) - offset:
            return
        yield attr_type, data[offset + _RTATTR.size : offset + length]
        offset += _align(length)


def _read_dump(sock) -> bytes:
    chunks: list[bytes] = []
    total = 0
    while True:
        try:
            chunk = sock.recv(BUFSIZE - total)
        except OSError as exc:
            log.error("Socket recv failed: ERROR=%s", exc)
            raise InternalFailure("Netlink receive failed") from exc
        first = next(iter_netlink_messages(chunk), None)
        if first is None or first.type == NLMSG_ERROR:
            log.error(
                "Error validating header: NLMSGTYPE=%s",
                None if first is None else first.type,
            )
            raise InternalFailure("Invalid netlink response")
        if first.type == NLMSG_DONE:
            break
        chunks.append(chunk)
        total += len(chunk)
        if not first.flags & NLM_F_MULTI:
            break
    return b"".join(chunks)


class RoutingTable:
    """Routes of the main table and the default gateways per interface."""

    def __init__(self, load: bool = True) -> None:
        self._routes: dict[str, RouteEntry] = {}
        self._gateways: dict[str, str] = {}
        self._gateways6: dict[str, str] = {}
        if load:
            try:
                self.get_routes()
            except InternalFailure:
                log.error("Failed to read the routing table", exc_info=True)

    def feed(self, data: bytes) -> dict[str, RouteEntry]:
        """Add the routes carried by a netlink route dump; return all routes."""
        for msg in iter_netlink_messages(data):
            if msg.type == NLMSG_DONE:
                break
            if msg.type == NLMSG_ERROR:
                raise InternalFailure("Netlink error message in route dump")
            if msg.type < NLMSG_MIN_TYPE:
                continue
            self._parse_route(msg.payload)
        return dict(sorted(self._routes.items()))

    def get_routes(self) -> dict[str, RouteEntry]:
        """Dump the kernel's routes into the table and return all routes."""
        try:
            sock = socket.socket(_AF_NETLINK, socket.SOCK_DGRAM, NETLINK_ROUTE)
        except OSError as exc:
            log.error("Error occurred during socket creation: ERRNO=%s", exc)
            raise InternalFailure("Unable to open a netlink socket") from exc
        with sock:
            request = _NLMSGHDR.pack(
                _NLMSGHDR.size + _RTMSG.size,
                RTM_GETROUTE,
                NLM_F_DUMP | NLM_F_REQUEST,
                0,
                os.getpid() & 0xFFFFFFFF,
            ) + bytes(_RTMSG.size)
            try:
                sock.send(request)
            except OSError as exc:
                log.error("Error occurred during send on netlink socket: %s", exc)
                raise InternalFailure("Netlink send failed") from exc
            data = _read_dump(sock)
        return self.feed(data)

    def default_gateway(self) -> dict[str, str]:
        """Return the IPv4 default gateway of each interface."""
        return dict(sorted(self._gateways.items()))

    def default_gateway6(self) -> dict[str, str]:
        """Return the IPv6 default gateway of each interface."""
        return dict(sorted(self._gateways6.items()))

    def _parse_route(self, payload: bytes) -> None:
        if len(payload) < _RTMSG.size:
            return
        fields = _RTMSG.unpack_from(payload)
        family, table = fields[0], fields[4]
        if family not in (socket.AF_INET, socket.AF_INET6) or table != RT_TABLE_MAIN:
            return

        if_name = ""
        destination = None
        gateway = None
        for attr_type, value in iter_route_attributes(payload[_RTMSG.size :]):
            if attr_type == RTA_OIF and len(value) >= _IFINDEX.size:
                (index,) = _IFINDEX.unpack_from(value)
                try:
                    if_name = socket.if_indextoname(index)
                except (OSError, OverflowError, ValueError):
                    pass
            elif attr_type == RTA_GATEWAY:
                gateway = addr_from_buf(family, value)
            elif attr_type == RTA_DST:
                destination = addr_from_buf(family, value)

        dst_str = addr_to_string(destination) if destination is not None else ""
        gw_str = addr_to_string(gateway) if gateway is not None else ""
        if destination is None and gateway is not None:
            if family == socket.AF_INET:
                self._gateways[if_name] = gw_str
            else:
                self._gateways6[if_name] = gw_str
        # Only the first route for a network is used by the routing policy.
        self._routes.setdefault(dst_str, RouteEntry(dst_str, gw_str, if_name))