# This file is part of clusternet. See LICENSE file for license information.

"""Compare what the two renderers produce for the same node.

Both outputs are reduced to a LinkGraph keyed by interface name, so that
the declarative fragment and the unit files can be compared without
caring how either one spells its content.
"""

import logging
from typing import Dict, List, Mapping, NamedTuple, Optional, Tuple

from clusternet.exceptions import EquivalenceError
from clusternet.net import (
    KERNEL_MODULE_BOND,
    KERNEL_MODULE_VLAN,
    NETDEV_SUFFIX,
    NETWORK_SUFFIX,
    declarative,
    networkd,
)
from clusternet.net.topology import Topology

LOG = logging.getLogger(__name__)

KIND_MODULES = {
    "vlan": KERNEL_MODULE_VLAN,
    "bond": KERNEL_MODULE_BOND,
}


class DeviceNode(NamedTuple):
    unit: str
    kind: str
    vlan_id: Optional[int] = None
    parent: Optional[str] = None
    bond_settings: Tuple[Tuple[str, str], ...] = ()


class BindingNode(NamedTuple):
    unit: str
    addresses: Tuple[str, ...] = ()
    dhcp: str = "no"
    bond: Optional[str] = None
    primary_member: bool = False
    required_for_online: bool = True
    vlans: Tuple[str, ...] = ()


class LinkGraph(NamedTuple):
    devices: Dict[str, DeviceNode]
    bindings: Dict[str, BindingNode]

    def members(self, bond_name: str) -> Tuple[str, ...]:
        return tuple(
            sorted(
                ifname
                for ifname, bind in self.bindings.items()
                if bind.bond == bond_name
            )
        )


def graph_from_fragment(fragment: declarative.ConfigFragment) -> LinkGraph:
    devices = {}
    for dev in fragment.devices:
        devices[dev.ifname] = DeviceNode(
            unit=dev.name,
            kind=dev.kind,
            vlan_id=dev.vlan_id,
            parent=dev.parent,
            bond_settings=tuple(sorted(dev.bond_settings)),
        )
    bindings = {}
    for bind in fragment.bindings:
        bindings[bind.match_name] = BindingNode(
            unit=bind.name,
            addresses=tuple(sorted(bind.addresses)),
            dhcp=bind.dhcp,
            bond=bind.bond,
            primary_member=bind.primary_member,
            required_for_online=bind.required_for_online,
            vlans=tuple(sorted(bind.vlans)),
        )
    return LinkGraph(devices=devices, bindings=bindings)


def _values(section: List[Tuple[str, str]], key: str) -> List[str]:
    return [val for k, val in section if k == key]


def _value(section: List[Tuple[str, str]], key: str) -> Optional[str]:
    found = _values(section, key)
    return found[-1] if found else None


def _stem(filename: str, suffix: str) -> str:
    return filename[: -len(suffix)]


def graph_from_unit_files(files: Mapping[str, str]) -> LinkGraph:
    """Build a LinkGraph from ``{filename: content}`` unit files.

    A VLAN device has no parent of its own in a .netdev file; it is the
    .network file of the trunk that lists it with ``VLAN=``.
    """
    devices: Dict[str, DeviceNode] = {}
    bindings: Dict[str, BindingNode] = {}
    parents: Dict[str, str] = {}
    for filename, content in sorted(files.items()):
        if not filename.endswith((NETDEV_SUFFIX, NETWORK_SUFFIX)):
            LOG.debug("Ignoring non-unit file %s", filename)
            continue
        unit = networkd.parse_unit(content)
        if filename.endswith(NETDEV_SUFFIX):
            netdev = unit.get("NetDev", [])
            ifname = _value(netdev, "Name")
            if ifname is None:
                raise ValueError("%s has no [NetDev] Name" % filename)
            vlan_id = _value(unit.get("VLAN", []), "Id")
            devices[ifname] = DeviceNode(
                unit=_stem(filename, NETDEV_SUFFIX),
                kind=_value(netdev, "Kind"),
                vlan_id=None if vlan_id is None else int(vlan_id),
                bond_settings=tuple(sorted(unit.get("Bond", []))),
            )
        else:
            ifname = _value(unit.get("Match", []), "Name")
            if ifname is None:
                raise ValueError("%s has no [Match] Name" % filename)
            network = unit.get("Network", [])
            vlans = tuple(sorted(_values(network, "VLAN")))
            for vlan in vlans:
                parents[vlan] = ifname
            bindings[ifname] = BindingNode(
                unit=_stem(filename, NETWORK_SUFFIX),
                addresses=tuple(
                    sorted(_values(unit.get("Address", []), "Address"))
                ),
                dhcp=_value(network, "DHCP") or "no",
                bond=_value(network, "Bond"),
                primary_member=_value(network, "PrimarySlave") == "yes",
                required_for_online=(
                    _value(unit.get("Link", []), "RequiredForOnline") != "no"
                ),
                vlans=vlans,
            )
    for ifname, dev in devices.items():
        if ifname in parents:
            devices[ifname] = dev._replace(parent=parents[ifname])
    return LinkGraph(devices=devices, bindings=bindings)


def _compare(kind, left: Dict, right: Dict) -> List[str]:
    differences = []
    for ifname in sorted(set(left) | set(right)):
        if ifname not in right:
            differences.append(
                "%s %s only rendered declaratively" % (kind, ifname)
            )
        elif ifname not in left:
            differences.append(
                "%s %s only rendered as unit file" % (kind, ifname)
            )
        elif left[ifname] != right[ifname]:
            for field in left[ifname]._fields:
                lval = getattr(left[ifname], field)
                rval = getattr(right[ifname], field)
                if lval != rval:
                    differences.append(
                        "%s %s %s: %r != %r"
                        % (kind, ifname, field, lval, rval)
                    )
    return differences


def graph_differences(left: LinkGraph, right: LinkGraph) -> List[str]:
    return _compare("device", left.devices, right.devices) + _compare(
        "binding", left.bindings, right.bindings
    )


def _module_differences(fragment: declarative.ConfigFragment) -> List[str]:
    differences = []
    for dev in fragment.devices:
        module = KIND_MODULES.get(dev.kind)
        if module and module not in fragment.kernel_modules:
            differences.append(
                "kernel module %s missing for %s device %s"
                % (module, dev.kind, dev.ifname)
            )
    return differences


def check_equivalence(
    topology: Topology,
    node_name: str,
    declarative_renderer=None,
    networkd_renderer=None,
) -> LinkGraph:
    """Render ``node_name`` both ways and raise if the results differ.

    :return: the agreed LinkGraph.
    :raises EquivalenceError: listing every difference found.
    """
    if declarative_renderer is None:
        declarative_renderer = declarative.Renderer()
    if networkd_renderer is None:
        networkd_renderer = networkd.Renderer()

    fragment = declarative_renderer.render(topology, node_name)
    files = networkd_renderer.render(topology, node_name)
    left = graph_from_fragment(fragment)
    right = graph_from_unit_files(files)

    differences = _module_differences(fragment)
    differences.extend(graph_differences(left, right))
    if differences:
        raise EquivalenceError(node_name, differences)
    LOG.debug(
        "Renderers agree for %s: %d devices, %d bindings",
        node_name,
        len(left.devices),
        len(left.bindings),
    )
    return left


def verify_all(topology: Topology) -> Dict[str, LinkGraph]:
    """Check every node of ``topology``, in natural node order."""
    return {
        node: check_equivalence(topology, node)
        for node in topology.node_names()
    }
