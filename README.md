# bmcnet

Network helpers for a baseboard management controller on Linux.

## What it provides

- `bmcnet.addresses`: convert between netmasks and prefix lengths
  (`to_cidr`, which gives 0 for an invalid mask, and `to_mask`, which handles
  IPv4 prefixes 1 to 30 and gives an empty string otherwise), decode raw
  address bytes (`addr_from_buf`, `addr_to_string`), and validate addresses
  and prefixes (`is_valid_ip`, `is_valid_prefix`, `is_link_local_ip`).
- `bmcnet.mac`: parse and format MAC addresses (`from_string`, `to_string`)
  and classify them (`is_empty`, `is_multicast`, `is_unicast`). Addresses are
  six-byte `bytes` values.
- `bmcnet.system`: list interfaces (`get_interfaces`) and the addresses of
  running, non-loopback interfaces (`get_interface_addrs`, giving `AddrInfo`
  records). `get_interfaces` skips interfaces named in the
  `IGNORED_INTERFACES` environment variable (comma separated, read once).
  It also deletes interfaces with `/sbin/ip link delete dev` (`delete_interface`),
  runs an external program and waits for it (`execute`, whose first argument
  after the path is the program's argv[0]) and maps `ethN` to its u-boot
  variable name (`interface_to_uboot_eth_addr`). Failures raise
  `InternalFailure`.
- `bmcnet.routing`: `RoutingTable` reads the kernel's main routing table over
  rtnetlink, keeps the first `RouteEntry` per destination, and gives the
  default IPv4 and IPv6 gateway of each interface (`default_gateway`,
  `default_gateway6`). `feed` accepts a captured route dump;
  `iter_netlink_messages` and `iter_route_attributes` decode the raw format.
- `bmcnet.rtnetlink`: `RtnetlinkServer` subscribes to address, route and
  neighbour notifications. Call `handle_events` when its `fileno()` is
  readable; it calls your refresh callback for address and route changes and
  for changes to static neighbours (`should_refresh`).
- `bmcnet.watch`: `Watch` calls back with the file's path when a writer
  closes the watched file. The file must exist when the watch is created.
- `bmcnet.vlan`: `write_vlan_netdev` writes the systemd-networkd `.netdev`
  file for a VLAN and returns its path.

## Examples

```python
import socket
from bmcnet import addresses, mac, vlan
from bmcnet.routing import RoutingTable

addresses.to_cidr(socket.AF_INET, "255.255.255.0")   # 24
addresses.to_mask(socket.AF_INET, 27)                # "255.255.255.224"
mac.to_string(mac.from_string("02:00:00:AB:CD:EF"))  # "02:00:00:ab:cd:ef"

table = RoutingTable()
print(table.default_gateway())     # {"eth0": "10.0.0.1"}, for example

vlan.write_vlan_netdev("/etc/systemd/network", "eth0.50", 50)
```

Listening for changes:

```python
import selectors
from bmcnet.rtnetlink import RtnetlinkServer

server = RtnetlinkServer(on_refresh=lambda: print("network changed"))
sel = selectors.DefaultSelector()
sel.register(server, selectors.EVENT_READ)
while True:
    for _ in sel.select():
        server.handle_events()
```

Watching a file:

```python
from bmcnet.watch import Watch

with Watch("/run/state", lambda path: print("changed", path)):
    ...
```

## What it does not do

This is a library only. It has no command line, runs no event loop or
service of its own, and does not publish network objects on any bus. Apart
from VLAN `.netdev` files it does not write or read systemd-networkd
configuration, and it does not set hostnames or gateways on the system.

## Tests

```
pip install bmcnet[test]
pytest
```