# This file is part of clusternet. See LICENSE file for license information.

import abc

from clusternet.net.topology import Topology, TopologyMode


def uses_node_vlan_tags(topology: Topology) -> bool:
    """Whether VLAN tags must be looked up per node instead of globally."""
    return topology.mode == TopologyMode.INCONSISTENT


def vlan_tag(topology: Topology, node_name: str, role: str) -> int:
    if uses_node_vlan_tags(topology):
        return topology.vlan_tag_for(node_name, role)
    return topology.vlan_tag(role)


def vlan_interface(topology: Topology, node_name: str, role: str) -> str:
    if uses_node_vlan_tags(topology):
        return topology.interface_for(node_name, role)
    return topology.interface(role)


class Renderer(abc.ABC):
    def __init__(self, config=None):
        pass

    @abc.abstractmethod
    def render(self, topology: Topology, node_name: str):
        """Render the network configuration of one node.

        Implementations are pure: the same topology and node always give
        an equal, freshly allocated result.
        """
