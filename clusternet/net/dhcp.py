# This file is part of clusternet. See LICENSE file for license information.

"""Reservation data for the dhcp-assigned profile.

Nothing here serves leases; it only renders the dnsmasq configuration a
test DHCP server needs to hand every node its fixed cluster address.
"""

import ipaddress
import logging
from typing import List

from clusternet.exceptions import IncompleteTopology
from clusternet.net import CLUSTER_ROLE
from clusternet.net.topology import Topology, TopologyMode

LOG = logging.getLogger(__name__)

# QEMU's locally administered OUI
MAC_PREFIX = "52:54:00"


def make_mac(host_number: int, cluster_id: int = 1, network_id: int = 1):
    """Return ``52:54:00:CC:NN:HH`` for cluster CC, network NN, host HH.

    Host 0 is the DHCP server itself, hosts 1.. are the cluster nodes.
    """
    for label, value in (
        ("host number", host_number),
        ("cluster id", cluster_id),
        ("network id", network_id),
    ):
        if not isinstance(value, int) or not 0 <= value <= 0xFF:
            raise ValueError("Invalid %s for MAC: %r" % (label, value))
    return "%s:%02x:%02x:%02x" % (
        MAC_PREFIX,
        cluster_id,
        network_id,
        host_number,
    )


def _dhcp_spec(topology: Topology):
    if topology.mode != TopologyMode.DHCP_ASSIGNED:
        raise IncompleteTopology(
            "Topology %s is %s, not dhcp-assigned"
            % (topology.name or "<unnamed>", topology.mode.value)
        )
    return topology.dhcp


def _ordered_reservations(topology: Topology):
    by_node = {r.node: r for r in _dhcp_spec(topology).reservations}
    return [by_node[node] for node in topology.node_names()]


def dnsmasq_host_entries(topology: Topology) -> List[str]:
    return [
        "dhcp-host=%s,%s,%s" % (r.mac, r.node, r.ip)
        for r in _ordered_reservations(topology)
    ]


def dnsmasq_config(topology: Topology) -> str:
    dhcp = _dhcp_spec(topology)
    lines = [
        "interface=%s" % topology.interface(CLUSTER_ROLE),
        "bind-interfaces",
    ]
    if dhcp.range_start and dhcp.range_end:
        dhcp_range = [dhcp.range_start, dhcp.range_end]
        if dhcp.subnet:
            # clients need the netmask to install the subnet route
            network = ipaddress.IPv4Network(dhcp.subnet, strict=False)
            dhcp_range.append(str(network.netmask))
        dhcp_range.append(dhcp.lease_time)
        lines.append("dhcp-range=%s" % ",".join(dhcp_range))
    else:
        LOG.debug("No dynamic range configured; serving reservations only")
    lines.extend(dnsmasq_host_entries(topology))
    lines.extend(
        "address=/%s.local/%s" % (r.node, r.ip)
        for r in _ordered_reservations(topology)
    )
    return "\n".join(lines) + "\n"
