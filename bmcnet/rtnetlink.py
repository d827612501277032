"""Listen for rtnetlink notifications and request a refresh of network objects."""

from __future__ import annotations

import logging
import socket
import struct
from collections.abc import Callable

from bmcnet.routing import NLMSG_DONE, iter_netlink_messages
from bmcnet.system import InternalFailure

__all__ = ["RtnetlinkServer", "should_refresh"]

log = logging.getLogger(__name__)

BUFSIZE = 4096

NETLINK_ROUTE = 0

RTM_NEWADDR = 20
RTM_DELADDR = 21
RTM_NEWROUTE = 24
RTM_DELROUTE = 25
RTM_NEWNEIGH = 28
RTM_DELNEIGH = 29

NUD_PERMANENT = 0x80

RTMGRP_NEIGH = 0x4
RTMGRP_IPV4_IFADDR = 0x10
RTMGRP_IPV4_ROUTE = 0x40
RTMGRP_IPV6_IFADDR = 0x100
RTMGRP_IPV6_ROUTE = 0x400

MULTICAST_GROUPS = (
    RTMGRP_IPV4_IFADDR
    | RTMGRP_IPV6_IFADDR
    | RTMGRP_IPV4_ROUTE
    | RTMGRP_IPV6_ROUTE
    | RTMGRP_NEIGH
)

_AF_NETLINK = getattr(socket, "AF_NETLINK", 16)
# struct ndmsg: family, pad1, pad2, ifindex, state, flags, type
_NDMSG = struct.Struct("=BBHiHBB")

_ALWAYS_REFRESH = frozenset({RTM_NEWADDR, RTM_DELADDR, RTM_NEWROUTE, RTM_DELROUTE})
_NEIGHBOR_TYPES = frozenset({RTM_NEWNEIGH, RTM_DELNEIGH})


def should_refresh(msg_type: int, data: bytes) -> bool:
    """Tell whether a notification of this type and payload needs a refresh.

    Address and route changes always do; neighbor changes only for static
    (permanent) neighbors.
    """
    if msg_type in _ALWAYS_REFRESH:
        return True
    if msg_type in _NEIGHBOR_TYPES:
        if len(data) < _NDMSG.size:
            return False
        state = _NDMSG.unpack_from(data)[4]
        return bool(state & NUD_PERMANENT)
    return False


class RtnetlinkServer:
    """Reads rtnetlink notifications from a socket and calls back on changes.

    With no socket given, a non-blocking rtnetlink socket is opened and
    subscribed to address, route and neighbor notifications.  A netlink
    socket that is given is subscribed as well; any other socket is read
    as it is.
    """

    def __init__(
        self,
        sock: socket.socket | None = None,
        on_refresh: Callable[[], None] | None = None,
    ) -> None:
        self._on_refresh = on_refresh
        owned = sock is None
        try:
            if sock is None:
                sock = socket.socket(
                    _AF_NETLINK, socket.SOCK_RAW | socket.SOCK_NONBLOCK, NETLINK_ROUTE
                )
            if sock.fileno() < 0:
                raise OSError("invalid socket descriptor")
            if sock.family == _AF_NETLINK:
                sock.bind((0, MULTICAST_GROUPS))
        except OSError as exc:
            if owned and sock is not None:
                sock.close()
            log.error("Failure Occurred in starting of server: %s", exc)
            raise InternalFailure("Unable to start the rtnetlink server") from exc
        self._sock = sock

    def fileno(self) -> int:
        """Return the descriptor to poll for readability."""
        return self._sock.fileno()

    def handle_data(self, data: bytes) -> bool:
        """Process one buffer of netlink messages; return True if a refresh was requested."""
        for msg in iter_netlink_messages(data):
            if msg.type == NLMSG_DONE:
                break
            if should_refresh(msg.type, msg.payload):
                if self._on_refresh is not None:
                    self._on_refresh()
                return True
        return False

    def handle_events(self) -> bool:
        """Drain the socket; return True if any notification requested a refresh."""
        refreshed = False
        while True:
            try:
                data = self._sock.recv(BUFSIZE)
            except (BlockingIOError, InterruptedError):
                break
            if not data:
                break
            if not refreshed:
                refreshed = self.handle_data(data)
        return refreshed

    def close(self) -> None:
        """Close the socket."""
        self._sock.close()