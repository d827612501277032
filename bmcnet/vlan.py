"""Write systemd-networkd device files for VLAN interfaces."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from bmcnet.system import InternalFailure

__all__ = ["write_vlan_netdev"]

log = logging.getLogger(__name__)

NETDEV_SUFFIX = ".netdev"


def write_vlan_netdev(
    conf_dir: str | os.PathLike, interface_name: str, vlan_id: int
) -> Path:
    """Write <interface_name>.netdev describing the VLAN; return its path."""
    path = Path(conf_dir) / f"{interface_name}{NETDEV_SUFFIX}"
    content = (
        "[NetDev]\n"
        f"Name={interface_name}\n"
        "Kind=vlan\n"
        "[VLAN]\n"
        f"Id={vlan_id}\n"
    )
    try:
        path.write_text(content)
    except OSError as exc:
        log.error("Unable to open the VLAN device file: FILE=%s ERROR=%s", path, exc)
        raise InternalFailure(f"Unable to write {path}") from exc
    return path