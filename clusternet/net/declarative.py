# This file is part of clusternet. See LICENSE file for license information.

"""Render a topology into device/binding definitions for a declarative OS.

The consumer merges these definitions into its own module system
(``systemd.network.netdevs`` / ``systemd.network.networks`` style), so the
output here is a structured value, not file content.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from clusternet.exceptions import FragmentConflict
from clusternet.net import (
    CLUSTER_ROLE,
    KERNEL_MODULE_BOND,
    KERNEL_MODULE_VLAN,
    PRIORITY_BOND_DEVICE,
    PRIORITY_BOND_MEMBER,
    PRIORITY_BOND_TRUNK,
    PRIORITY_BONDED_VLAN_BINDING,
    PRIORITY_TRUNK,
    PRIORITY_VLAN_BINDING,
    PRIORITY_VLAN_DEVICE,
    renderer,
    unit_name,
    vlan_stem,
)
from clusternet.net.topology import BondSpec, Topology, TopologyMode

LOG = logging.getLogger(__name__)


class AddressSource(Enum):
    STATIC = "static"
    EXTERNAL = "external"
    NONE = "none"


class DeviceDefinition(NamedTuple):
    name: str
    kind: str
    ifname: str
    vlan_id: Optional[int] = None
    parent: Optional[str] = None
    bond_settings: Tuple[Tuple[str, str], ...] = ()
    required_for_online: bool = True


class BindingDefinition(NamedTuple):
    name: str
    match_name: str
    addresses: Tuple[str, ...] = ()
    address_source: AddressSource = AddressSource.NONE
    vlans: Tuple[str, ...] = ()
    bond: Optional[str] = None
    primary_member: bool = False
    required_for_online: bool = True

    @property
    def dhcp(self) -> str:
        # IPv4 only; v6 autoconfiguration and link-local stay disabled
        if self.address_source == AddressSource.EXTERNAL:
            return "ipv4"
        return "no"


class ConfigFragment(NamedTuple):
    devices: Tuple[DeviceDefinition, ...] = ()
    bindings: Tuple[BindingDefinition, ...] = ()
    kernel_modules: Tuple[str, ...] = ()

    def device(self, ifname: str) -> Optional[DeviceDefinition]:
        for dev in self.devices:
            if dev.ifname == ifname:
                return dev
        return None

    def binding(self, match_name: str) -> Optional[BindingDefinition]:
        for bind in self.bindings:
            if bind.match_name == match_name:
                return bind
        return None


def merge_fragments(fragments: Sequence[ConfigFragment]) -> ConfigFragment:
    """Combine fragments into one, in list order.

    Devices and bindings keep the order in which their names first appear.
    A name seen again with identical content is dropped; a name seen again
    with different content raises FragmentConflict rather than letting
    either definition win. Kernel modules are unioned, first appearance
    first.
    """
    devices: Dict[str, DeviceDefinition] = {}
    bindings: Dict[str, BindingDefinition] = {}
    modules: List[str] = []
    for fragment in fragments:
        for dev in fragment.devices:
            if dev.name in devices and devices[dev.name] != dev:
                raise FragmentConflict("device", dev.name)
            devices.setdefault(dev.name, dev)
        for bind in fragment.bindings:
            if bind.name in bindings and bindings[bind.name] != bind:
                raise FragmentConflict("binding", bind.name)
            bindings.setdefault(bind.name, bind)
        for module in fragment.kernel_modules:
            if module not in modules:
                modules.append(module)
    return ConfigFragment(
        devices=tuple(devices.values()),
        bindings=tuple(bindings.values()),
        kernel_modules=tuple(modules),
    )


def _bond_settings(bond: BondSpec) -> Tuple[Tuple[str, str], ...]:
    settings = {
        "Mode": bond.mode,
        "MIIMonitorSec": "%dms" % bond.monitor_interval_ms,
        "PrimaryReselectPolicy": bond.primary_reselect_policy,
        "UpDelaySec": "%dms" % bond.up_delay_ms,
        "DownDelaySec": "%dms" % bond.down_delay_ms,
    }
    if bond.transmit_hash_policy:
        settings["TransmitHashPolicy"] = bond.transmit_hash_policy
    if bond.lacp_transmit_rate:
        settings["LACPTransmitRate"] = bond.lacp_transmit_rate
    return tuple(sorted(settings.items()))


class Renderer(renderer.Renderer):
    """Renders a topology node into a ConfigFragment."""

    def __init__(self, config=None):
        super().__init__(config)
        self.mode_handlers = {
            TopologyMode.FLAT: self._render_flat,
            TopologyMode.DHCP_ASSIGNED: self._render_dhcp,
            TopologyMode.VLAN: self._render_vlan,
            TopologyMode.INCONSISTENT: self._render_vlan,
            TopologyMode.BONDED_VLAN: self._render_bonded_vlan,
        }

    def render(self, topology: Topology, node_name: str) -> ConfigFragment:
        topology.node(node_name)
        mode = topology.mode
        LOG.debug(
            "Rendering declarative config for %s (%s)", node_name, mode.value
        )
        fragments = self.mode_handlers[mode](topology, node_name)
        return merge_fragments(fragments)

    def _render_flat(self, topology, node_name):
        return [
            self._single_binding(
                topology,
                node_name,
                addresses=(topology.cidr_address(node_name, CLUSTER_ROLE),),
                source=AddressSource.STATIC,
            )
        ]

    def _render_dhcp(self, topology, node_name):
        return [
            self._single_binding(
                topology,
                node_name,
                addresses=(),
                source=AddressSource.EXTERNAL,
            )
        ]

    def _render_vlan(self, topology, node_name):
        return [
            self._vlan_layer(
                topology, node_name, topology.trunk, bonded=False
            )
        ]

    def _render_bonded_vlan(self, topology, node_name):
        return [
            self._bond_layer(topology),
            self._vlan_layer(topology, node_name, topology.trunk, bonded=True),
        ]

    def _single_binding(self, topology, node_name, addresses, source):
        ifname = topology.interface(CLUSTER_ROLE)
        return ConfigFragment(
            bindings=(
                BindingDefinition(
                    name=unit_name(PRIORITY_TRUNK, ifname),
                    match_name=ifname,
                    addresses=addresses,
                    address_source=source,
                ),
            )
        )

    def _bond_layer(self, topology: Topology) -> ConfigFragment:
        bond = topology.bond
        bond_name = topology.trunk
        device = DeviceDefinition(
            name=unit_name(PRIORITY_BOND_DEVICE, bond_name),
            kind="bond",
            ifname=bond_name,
            bond_settings=_bond_settings(bond),
            required_for_online=False,
        )
        members = tuple(
            BindingDefinition(
                name=unit_name(PRIORITY_BOND_MEMBER, member),
                match_name=member,
                bond=bond_name,
                primary_member=(
                    bond.is_active_backup and member == bond.primary_member
                ),
                required_for_online=False,
            )
            for member in topology.bond_members
        )
        return ConfigFragment(
            devices=(device,),
            bindings=members,
            kernel_modules=(KERNEL_MODULE_BOND,),
        )

    def _vlan_layer(self, topology, node_name, parent, bonded):
        devices = []
        bindings = []
        for role in topology.vlan_roles():
            ifname = renderer.vlan_interface(topology, node_name, role)
            # with bonding only the cluster VLAN gates network-online
            required = role == CLUSTER_ROLE or not bonded
            devices.append(
                DeviceDefinition(
                    name=unit_name(PRIORITY_VLAN_DEVICE, vlan_stem(role)),
                    kind="vlan",
                    ifname=ifname,
                    vlan_id=renderer.vlan_tag(topology, node_name, role),
                    parent=parent,
                    required_for_online=required,
                )
            )
            bindings.append(
                BindingDefinition(
                    name=unit_name(
                        PRIORITY_BONDED_VLAN_BINDING
                        if bonded
                        else PRIORITY_VLAN_BINDING,
                        vlan_stem(role),
                    ),
                    match_name=ifname,
                    addresses=(topology.cidr_address(node_name, role),),
                    address_source=AddressSource.STATIC,
                    required_for_online=required,
                )
            )
        trunk = BindingDefinition(
            name=unit_name(
                PRIORITY_BOND_TRUNK if bonded else PRIORITY_TRUNK, parent
            ),
            match_name=parent,
            vlans=tuple(dev.ifname for dev in devices),
            required_for_online=not bonded,
        )
        return ConfigFragment(
            devices=tuple(devices),
            bindings=(trunk,) + tuple(bindings),
            kernel_modules=(KERNEL_MODULE_VLAN,),
        )


def render(topology: Topology, node_name: str) -> ConfigFragment:
    return Renderer().render(topology, node_name)


def fragment_to_dict(fragment: ConfigFragment) -> Dict[str, Any]:
    """Return a plain-data view of a fragment, suitable for yaml/json."""
    devices = []
    for dev in fragment.devices:
        entry: Dict[str, Any] = {
            "name": dev.name,
            "kind": dev.kind,
            "ifname": dev.ifname,
            "requiredForOnline": dev.required_for_online,
        }
        if dev.vlan_id is not None:
            entry["vlanId"] = dev.vlan_id
        if dev.parent is not None:
            entry["parent"] = dev.parent
        if dev.bond_settings:
            entry["bondSettings"] = dict(dev.bond_settings)
        devices.append(entry)
    bindings = []
    for bind in fragment.bindings:
        entry = {
            "name": bind.name,
            "matchName": bind.match_name,
            "addresses": list(bind.addresses),
            "addressSource": bind.address_source.value,
            "dhcp": bind.dhcp,
            "ipv6AcceptRA": False,
            "linkLocalAddressing": "no",
            "requiredForOnline": bind.required_for_online,
        }
        if bind.vlans:
            entry["vlans"] = list(bind.vlans)
        if bind.bond is not None:
            entry["bond"] = bind.bond
            entry["primaryMember"] = bind.primary_member
        bindings.append(entry)
    return {
        "devices": devices,
        "bindings": bindings,
        "kernelModules": list(fragment.kernel_modules),
    }
