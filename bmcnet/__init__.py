"""Network helpers for a BMC: addresses, MACs, interfaces, routes, rtnetlink events, file watches and VLAN device files."""

__version__ = "0.1.0"

__all__ = ["addresses", "mac", "system", "routing", "rtnetlink", "watch", "vlan"]