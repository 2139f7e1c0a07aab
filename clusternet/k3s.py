# This file is part of clusternet. See LICENSE file for license information.

"""Derive k3s command line flags from a topology.

Every node pins k3s to its cluster-role address and interface. Servers
also advertise that address and add the primary server's address as a
TLS SAN so that the other nodes can verify its certificate while joining.
"""

import logging
from typing import Any, Dict, List, Optional

from clusternet.net import CLUSTER_ROLE
from clusternet.net.topology import Topology

LOG = logging.getLogger(__name__)

# The node that initializes the cluster; all other nodes join through it.
PRIMARY_NODE = "server-1"

ROLE_SERVER = "server"
ROLE_AGENT = "agent"
ROLES = (ROLE_SERVER, ROLE_AGENT)


def _check_role(role):
    if role not in ROLES:
        raise ValueError(
            "Unknown k3s role %r, expected one of %s" % (role, list(ROLES))
        )


def derive_flags(topology: Topology, node_name: str, role: str) -> List[str]:
    """Return the ordered flags for ``node_name`` running as ``role``.

    :raises UnknownNode: if ``node_name`` or the primary server is not
        part of the topology.
    :raises ValueError: if ``role`` is neither server nor agent.
    """
    _check_role(role)
    node_ip = topology.address(node_name, CLUSTER_ROLE)
    flags = [
        "--node-ip=%s" % node_ip,
        "--flannel-iface=%s" % topology.interface_for(node_name, CLUSTER_ROLE),
    ]
    if role == ROLE_SERVER:
        primary_ip = topology.address(PRIMARY_NODE, CLUSTER_ROLE)
        flags.extend(
            [
                "--advertise-address=%s" % node_ip,
                "--tls-san=%s" % primary_ip,
            ]
        )
    else:
        # agents still need the primary to exist to have something to join
        topology.node(PRIMARY_NODE)
    return flags


def derive_cidr_flags(topology: Topology) -> List[str]:
    flags = []
    if topology.pod_network_cidr:
        flags.append("--cluster-cidr=%s" % topology.pod_network_cidr)
    if topology.service_network_cidr:
        flags.append("--service-cidr=%s" % topology.service_network_cidr)
    return flags


def server_address(topology: Topology, node_name: str) -> Optional[str]:
    """The endpoint ``node_name`` joins through, None for the primary."""
    topology.node(node_name)
    if node_name == PRIMARY_NODE:
        return None
    if topology.service_endpoint:
        return topology.service_endpoint
    return "https://%s:6443" % topology.address(PRIMARY_NODE, CLUSTER_ROLE)


def derive_service_config(
    topology: Topology, node_name: str, role: str
) -> Dict[str, Any]:
    flags = derive_flags(topology, node_name, role)
    if role == ROLE_SERVER:
        flags.extend(derive_cidr_flags(topology))
    LOG.debug("k3s %s flags for %s: %s", role, node_name, flags)
    return {
        "role": role,
        "server_addr": server_address(topology, node_name),
        "cluster_init": role == ROLE_SERVER and node_name == PRIMARY_NODE,
        "extra_flags": flags,
    }
