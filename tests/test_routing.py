import ipaddress
import socket
import struct
from unittest import mock

import pytest

from bmcnet import routing
from bmcnet.routing import (
    NetlinkMessage,
    RouteEntry,
    RoutingTable,
    iter_netlink_messages,
    iter_route_attributes,
)
from bmcnet.system import InternalFailure

HDR = struct.Struct("=IHHII")
RTA = struct.Struct("=HH")


def _pad(data):
    return data + b"\0" * (-len(data) % 4)


def nlmsg(msg_type, payload, flags=0, seq=0, pid=0):
    return _pad(HDR.pack(HDR.size + len(payload), msg_type, flags, seq, pid) + payload)


def rtattr(attr_type, value):
    return _pad(RTA.pack(RTA.size + len(value), attr_type) + value)


def route_msg(family, attrs, table=routing.RT_TABLE_MAIN, flags=0):
    header = struct.pack("=BBBBBBBBI", family, 0, 0, 0, table, 0, 0, 0, 0)
    body = header + b"".join(rtattr(t, v) for t, v in attrs)
    return nlmsg(routing.RTM_NEWROUTE, body, flags=flags)


def v4(text):
    return ipaddress.IPv4Address(text).packed


def v6(text):
    return ipaddress.IPv6Address(text).packed


def oif(index):
    return struct.pack("=i", index)


class FakeSocket:
    def __init__(self, chunks):
        self.chunks = list(chunks)
        self.sent = []

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False

    def send(self, data):
        self.sent.append(bytes(data))
        return len(data)

    def recv(self, size):
        return self.chunks.pop(0)


def test_iter_netlink_messages_round_trip():
    data = nlmsg(30, b"abc", flags=2, seq=7, pid=9) + nlmsg(31, b"")
    assert list(iter_netlink_messages(data)) == [
        NetlinkMessage(30, 2, 7, 9, b"abc"),
        NetlinkMessage(31, 0, 0, 0, b""),
    ]


@pytest.mark.parametrize(
    "data",
    [
        b"1",
        HDR.pack(HDR.size - 1, 30, 0, 0, 0),
        HDR.pack(HDR.size + 1, 30, 0, 0, 0),
    ],
)
def test_iter_netlink_messages_malformed(data):
    assert list(iter_netlink_messages(data)) == []


def test_iter_route_attributes_padding():
    data = rtattr(1, b"abcd\0") + rtattr(2, b"efgh")
    assert list(iter_route_attributes(data)) == [(1, b"abcd\0"), (2, b"efgh")]


def test_iter_route_attributes_malformed():
    assert list(iter_route_attributes(b"1")) == []
    assert list(iter_route_attributes(RTA.pack(RTA.size + 1, 1))) == []


def test_feed_default_v4_gateway():
    table = RoutingTable(load=False)
    data = route_msg(socket.AF_INET, [(routing.RTA_OIF, oif(3)), (routing.RTA_GATEWAY, v4("192.168.1.1"))])
    with mock.patch("socket.if_indextoname", return_value="eth0"):
        routes = table.feed(data)
    assert routes == {"": RouteEntry("", "192.168.1.1", "eth0")}
    assert table.default_gateway() == {"eth0": "192.168.1.1"}
    assert table.default_gateway6() == {}


def test_feed_default_v6_gateway():
    table = RoutingTable(load=False)
    data = route_msg(socket.AF_INET6, [(routing.RTA_OIF, oif(3)), (routing.RTA_GATEWAY, v6("fd00::1"))])
    with mock.patch("socket.if_indextoname", return_value="eth1"):
        table.feed(data)
    assert table.default_gateway6() == {"eth1": "fd00::1"}
    assert table.default_gateway() == {}


def test_feed_network_route_is_not_default():
    table = RoutingTable(load=False)
    data = route_msg(socket.AF_INET, [(routing.RTA_DST, v4("10.1.0.0")), (routing.RTA_GATEWAY, v4("10.0.0.2"))])
    routes = table.feed(data)
    assert routes == {"10.1.0.0": RouteEntry("10.1.0.0", "10.0.0.2", "")}
    assert table.default_gateway() == {}


def test_feed_first_route_wins():
    table = RoutingTable(load=False)
    data = route_msg(socket.AF_INET, [(routing.RTA_DST, v4("10.1.0.0")), (routing.RTA_GATEWAY, v4("10.0.0.2"))])
    data += route_msg(socket.AF_INET, [(routing.RTA_DST, v4("10.1.0.0")), (routing.RTA_GATEWAY, v4("10.0.0.3"))])
    routes = table.feed(data)
    assert routes["10.1.0.0"].gateway == "10.0.0.2"
    assert len(routes) == 1


def test_feed_ignores_other_tables():
    table = RoutingTable(load=False)
    data = route_msg(socket.AF_INET, [(routing.RTA_GATEWAY, v4("10.0.0.1"))], table=253)
    assert table.feed(data) == {}
    assert table.default_gateway() == {}


def test_feed_unknown_interface_index():
    table = RoutingTable(load=False)
    data = route_msg(socket.AF_INET, [(routing.RTA_OIF, oif(99)), (routing.RTA_GATEWAY, v4("10.0.0.1"))])
    with mock.patch("socket.if_indextoname", side_effect=OSError(6, "no device")):
        table.feed(data)
    assert table.default_gateway() == {"": "10.0.0.1"}


def test_feed_stops_at_done():
    table = RoutingTable(load=False)
    data = nlmsg(routing.NLMSG_DONE, b"\0" * 4)
    data += route_msg(socket.AF_INET, [(routing.RTA_DST, v4("10.1.0.0"))])
    assert table.feed(data) == {}


def test_feed_error_message_raises():
    table = RoutingTable(load=False)
    with pytest.raises(InternalFailure):
        table.feed(nlmsg(routing.NLMSG_ERROR, b"\0" * 20))


def test_feed_bad_gateway_size():
    table = RoutingTable(load=False)
    data = route_msg(socket.AF_INET, [(routing.RTA_GATEWAY, b"\x01\x02\x03")])
    with pytest.raises(ValueError):
        table.feed(data)


def test_default_gateway_returns_copy():
    table = RoutingTable(load=False)
    table.feed(route_msg(socket.AF_INET, [(routing.RTA_GATEWAY, v4("10.0.0.1"))]))
    table.default_gateway().clear()
    assert table.default_gateway() == {"": "10.0.0.1"}


def test_load_from_kernel_dump():
    first = route_msg(
        socket.AF_INET,
        [(routing.RTA_OIF, oif(2)), (routing.RTA_GATEWAY, v4("10.0.0.1"))],
        flags=routing.NLM_F_MULTI,
    ) + route_msg(
        socket.AF_INET,
        [(routing.RTA_DST, v4("10.1.0.0")), (routing.RTA_GATEWAY, v4("10.0.0.2"))],
        flags=routing.NLM_F_MULTI,
    )
    done = nlmsg(routing.NLMSG_DONE, b"\0" * 4, flags=routing.NLM_F_MULTI)
    fake = FakeSocket([first, done])
    with mock.patch("socket.socket", return_value=fake), mock.patch(
        "socket.if_indextoname", return_value="eth0"
    ):
        table = RoutingTable()
    assert table.default_gateway() == {"eth0": "10.0.0.1"}
    assert set(table.feed(b"")) == {"", "10.1.0.0"}
    length, msg_type, flags, seq, _ = HDR.unpack_from(fake.sent[0])
    assert (length, msg_type, flags, seq) == (28, 26, 0x301, 0)
    assert len(fake.sent[0]) == length


def test_get_routes_error_response():
    fake = FakeSocket([nlmsg(routing.NLMSG_ERROR, b"\0" * 20)])
    table = RoutingTable(load=False)
    with mock.patch("socket.socket", return_value=fake):
        with pytest.raises(InternalFailure):
            table.get_routes()


def test_constructor_swallows_socket_failure():
    with mock.patch("socket.socket", side_effect=OSError(1, "denied")):
        table = RoutingTable()
        with pytest.raises(InternalFailure):
            table.get_routes()
    assert table.feed(b"") == {}
    assert table.default_gateway() == {}