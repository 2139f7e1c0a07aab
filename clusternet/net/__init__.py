# This file is part of clusternet. See LICENSE file for license information.

import ipaddress
import logging
import re
from typing import Callable

LOG = logging.getLogger(__name__)

CLUSTER_ROLE = "cluster"

# Priority prefixes are a contract with systemd-networkd, which processes
# unit files in lexicographic order: bond devices before the VLANs riding
# on them, VLAN devices before their address bindings.
PRIORITY_BOND_DEVICE = 10
PRIORITY_TRUNK = 15
PRIORITY_VLAN_DEVICE = 20
PRIORITY_BOND_MEMBER = 20
PRIORITY_BOND_TRUNK = 20
PRIORITY_VLAN_BINDING = 20
PRIORITY_BONDED_VLAN_BINDING = 30

NETDEV_SUFFIX = ".netdev"
NETWORK_SUFFIX = ".network"

KERNEL_MODULE_VLAN = "8021q"
KERNEL_MODULE_BOND = "bonding"


def natural_sort_key(s, _nsre=re.compile("([0-9]+)")):
    """Sort key ordering embedded numbers numerically.

    ['server-10', 'server-2', 'agent-1'] sorts as
    ['agent-1', 'server-2', 'server-10'].
    """
    return [
        int(text) if text.isdigit() else text.lower()
        for text in re.split(_nsre, s)
    ]


def unit_name(priority: int, stem: str) -> str:
    """Return the priority-prefixed unit name, e.g. ``20-vlan-cluster``."""
    return "%02d-%s" % (priority, stem)


def vlan_stem(role: str) -> str:
    return "vlan-%s" % role


def maybe_get_address(convert_to_address: Callable, address: str, **kwargs):
    """Return convert_to_address(address), or False if it does not parse."""
    try:
        return convert_to_address(address, **kwargs)
    except (ValueError, TypeError):
        return False


def is_ipv4_address(address: str) -> bool:
    return bool(maybe_get_address(ipaddress.IPv4Address, address))


def is_ipv4_network(address: str) -> bool:
    """Whether ``address`` is an IPv4 network; host bits may be set."""
    return bool(
        maybe_get_address(ipaddress.IPv4Network, address, strict=False)
    )


def is_ip_in_subnet(address: str, subnet: str) -> bool:
    ip_address = ipaddress.ip_address(address)
    subnet_network = ipaddress.ip_network(subnet, strict=False)
    return ip_address in subnet_network


class RendererNotFoundError(RuntimeError):
    pass
