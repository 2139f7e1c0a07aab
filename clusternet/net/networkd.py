# This file is part of clusternet. See LICENSE file for license information.

import logging
import os
from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

from clusternet import util
from clusternet.net import (
    CLUSTER_ROLE,
    NETDEV_SUFFIX,
    NETWORK_SUFFIX,
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


def _format_value(val) -> str:
    if isinstance(val, bool):
        return "yes" if val else "no"
    return str(val)


class CfgParser:
    def __init__(self):
        self.conf_dict = OrderedDict(
            {
                "Match": [],
                "Link": [],
                "NetDev": [],
                "VLAN": [],
                "Bond": [],
                "Network": [],
                "Address": [],
            }
        )

    def update_section(self, sec, key, val):
        if sec not in self.conf_dict:
            raise ValueError("Unknown networkd section: %s" % sec)
        self.conf_dict[sec].append(key + "=" + _format_value(val))
        # remove duplicates from list
        self.conf_dict[sec] = list(dict.fromkeys(self.conf_dict[sec]))
        self.conf_dict[sec].sort()

    def get_final_conf(self):
        contents = ""
        for k, v in sorted(self.conf_dict.items()):
            if not v:
                continue
            if k == "Address":
                for e in sorted(v):
                    contents += "[" + k + "]\n"
                    contents += e + "\n"
                    contents += "\n"
            else:
                contents += "[" + k + "]\n"
                for e in sorted(v):
                    contents += e + "\n"
                contents += "\n"

        return contents


def parse_unit(content: str) -> Dict[str, List[Tuple[str, str]]]:
    """Read rendered unit content back into section -> [(key, value)].

    Repeated sections (one ``[Address]`` per address) are folded into a
    single entry.
    """
    sections: Dict[str, List[Tuple[str, str]]] = {}
    current = None
    for lineno, line in enumerate(content.splitlines(), 1):
        line = line.strip()
        if not line or line.startswith(("#", ";")):
            continue
        if line.startswith("[") and line.endswith("]"):
            current = line[1:-1]
            sections.setdefault(current, [])
            continue
        if current is None or "=" not in line:
            raise ValueError(
                "Unparseable unit content at line %d: %r" % (lineno, line)
            )
        key, _, val = line.partition("=")
        sections[current].append((key.strip(), val.strip()))
    return sections


class Renderer(renderer.Renderer):
    """
    Renders network information in /etc/systemd/network

    Device definitions go to .netdev files and address bindings to .network
    files; the two-digit prefix on every file name orders their processing.
    """

    def __init__(self, config=None):
        if not config:
            config = {}
        self.network_conf_dir = config.get(
            "network_conf_dir", "/etc/systemd/network/"
        )
        self.mode_handlers = {
            TopologyMode.FLAT: self._render_flat,
            TopologyMode.DHCP_ASSIGNED: self._render_dhcp,
            TopologyMode.VLAN: self._render_vlan,
            TopologyMode.INCONSISTENT: self._render_vlan,
            TopologyMode.BONDED_VLAN: self._render_bonded_vlan,
        }

    def generate_match_section(self, name, cfg: CfgParser):
        cfg.update_section("Match", "Name", name)

    def generate_link_section(self, required_for_online, cfg: CfgParser):
        cfg.update_section("Link", "RequiredForOnline", required_for_online)

    def generate_network_section(self, cfg: CfgParser, dhcp="no"):
        # IPv4 only, either static or explicitly DHCP; never autoconfigured
        cfg.update_section("Network", "DHCP", dhcp)
        cfg.update_section("Network", "IPv6AcceptRA", False)
        cfg.update_section("Network", "LinkLocalAddressing", "no")

    def network_file(
        self,
        name: str,
        *,
        address: Optional[str] = None,
        dhcp: str = "no",
        required_for_online: bool = True,
        vlans=(),
        bond: Optional[str] = None,
        primary_member: bool = False,
    ) -> str:
        cfg = CfgParser()
        self.generate_match_section(name, cfg)
        self.generate_link_section(required_for_online, cfg)
        self.generate_network_section(cfg, dhcp=dhcp)
        if address:
            cfg.update_section("Address", "Address", address)
        for vlan in vlans:
            cfg.update_section("Network", "VLAN", vlan)
        if bond:
            cfg.update_section("Network", "Bond", bond)
            if primary_member:
                cfg.update_section("Network", "PrimarySlave", True)
        return cfg.get_final_conf()

    def vlan_netdev(self, name: str, tag: int) -> str:
        cfg = CfgParser()
        cfg.update_section("NetDev", "Kind", "vlan")
        cfg.update_section("NetDev", "Name", name)
        cfg.update_section("VLAN", "Id", tag)
        return cfg.get_final_conf()

    def bond_netdev(self, name: str, bond: BondSpec) -> str:
        cfg = CfgParser()
        cfg.update_section("NetDev", "Kind", "bond")
        cfg.update_section("NetDev", "Name", name)
        cfg.update_section("Bond", "Mode", bond.mode)
        cfg.update_section(
            "Bond", "MIIMonitorSec", "%dms" % bond.monitor_interval_ms
        )
        cfg.update_section(
            "Bond", "PrimaryReselectPolicy", bond.primary_reselect_policy
        )
        cfg.update_section("Bond", "UpDelaySec", "%dms" % bond.up_delay_ms)
        cfg.update_section(
            "Bond", "DownDelaySec", "%dms" % bond.down_delay_ms
        )
        if bond.transmit_hash_policy:
            cfg.update_section(
                "Bond", "TransmitHashPolicy", bond.transmit_hash_policy
            )
        if bond.lacp_transmit_rate:
            cfg.update_section(
                "Bond", "LACPTransmitRate", bond.lacp_transmit_rate
            )
        return cfg.get_final_conf()

    def render(self, topology: Topology, node_name: str) -> Dict[str, str]:
        topology.node(node_name)
        mode = topology.mode
        LOG.debug(
            "Rendering networkd units for %s (%s)", node_name, mode.value
        )
        files: Dict[str, str] = {}
        self.mode_handlers[mode](topology, node_name, files)
        return dict(sorted(files.items()))

    def _render_flat(self, topology, node_name, files):
        ifname = topology.interface(CLUSTER_ROLE)
        fn = unit_name(PRIORITY_TRUNK, ifname) + NETWORK_SUFFIX
        files[fn] = self.network_file(
            ifname, address=topology.cidr_address(node_name, CLUSTER_ROLE)
        )

    def _render_dhcp(self, topology, node_name, files):
        ifname = topology.interface(CLUSTER_ROLE)
        fn = unit_name(PRIORITY_TRUNK, ifname) + NETWORK_SUFFIX
        files[fn] = self.network_file(ifname, dhcp="ipv4")

    def _render_vlan(self, topology, node_name, files):
        self._render_vlan_layer(topology, node_name, files, bonded=False)

    def _render_bonded_vlan(self, topology, node_name, files):
        bond_name = topology.trunk
        bond = topology.bond
        fn = unit_name(PRIORITY_BOND_DEVICE, bond_name) + NETDEV_SUFFIX
        files[fn] = self.bond_netdev(bond_name, bond)
        for member in topology.bond_members:
            fn = unit_name(PRIORITY_BOND_MEMBER, member) + NETWORK_SUFFIX
            files[fn] = self.network_file(
                member,
                required_for_online=False,
                bond=bond_name,
                primary_member=(
                    bond.is_active_backup and member == bond.primary_member
                ),
            )
        self._render_vlan_layer(topology, node_name, files, bonded=True)

    def _render_vlan_layer(self, topology, node_name, files, bonded):
        trunk = topology.trunk
        vlans = []
        for role in topology.vlan_roles():
            ifname = renderer.vlan_interface(topology, node_name, role)
            tag = renderer.vlan_tag(topology, node_name, role)
            required = role == CLUSTER_ROLE or not bonded
            vlans.append(ifname)

            fn = unit_name(PRIORITY_VLAN_DEVICE, vlan_stem(role))
            files[fn + NETDEV_SUFFIX] = self.vlan_netdev(ifname, tag)

            priority = (
                PRIORITY_BONDED_VLAN_BINDING
                if bonded
                else PRIORITY_VLAN_BINDING
            )
            fn = unit_name(priority, vlan_stem(role))
            files[fn + NETWORK_SUFFIX] = self.network_file(
                ifname,
                address=topology.cidr_address(node_name, role),
                required_for_online=required,
            )

        priority = PRIORITY_BOND_TRUNK if bonded else PRIORITY_TRUNK
        fn = unit_name(priority, trunk) + NETWORK_SUFFIX
        files[fn] = self.network_file(
            trunk, required_for_online=not bonded, vlans=vlans
        )

    def render_to_target(
        self, topology: Topology, node_name: str, target=None
    ) -> List[str]:
        network_dir = self.network_conf_dir
        if target:
            network_dir = util.target_path(target, network_dir)

        # render first so a bad topology writes nothing at all
        files = self.render(topology, node_name)
        util.ensure_dir(network_dir)
        written = []
        for fn, content in files.items():
            LOG.debug("Setting networkd config for %s: %s", node_name, fn)
            path = os.path.join(network_dir, fn)
            util.write_file(path, content)
            written.append(path)
        return written


def render(topology: Topology, node_name: str) -> Dict[str, str]:
    return Renderer().render(topology, node_name)
