# This file is part of clusternet. See LICENSE file for license information.

"""The validated, read-only description of one cluster network profile."""

import logging
import re
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, NamedTuple, Optional, Sequence, Tuple

from clusternet.exceptions import IncompleteTopology, UnknownNode, UnknownRole
from clusternet.net import (
    CLUSTER_ROLE,
    is_ip_in_subnet,
    is_ipv4_address,
    is_ipv4_network,
    natural_sort_key,
)

LOG = logging.getLogger(__name__)

DEFAULT_PREFIX_LENGTH = 24
DEFAULT_MONITOR_INTERVAL_MS = 100
DEFAULT_BOND_DELAY_MS = 200

BOND_MODE_ACTIVE_BACKUP = "active-backup"
BOND_MODES = (
    "balance-rr",
    BOND_MODE_ACTIVE_BACKUP,
    "balance-xor",
    "broadcast",
    "802.3ad",
    "balance-tlb",
    "balance-alb",
)
HASH_POLICY_BOND_MODES = ("balance-xor", "802.3ad", "balance-tlb")

TRUNK_KEY = "trunk"
BOND_MEMBERS_KEY = "bondMembers"

MAC_RE = re.compile(r"^([0-9a-fA-F]{2}:){5}[0-9a-fA-F]{2}$")


class TopologyMode(Enum):
    FLAT = "flat"
    VLAN = "vlan"
    BONDED_VLAN = "bonded-vlan"
    DHCP_ASSIGNED = "dhcp-assigned"
    INCONSISTENT = "inconsistent"


class BondSpec(NamedTuple):
    mode: str
    monitor_interval_ms: int = DEFAULT_MONITOR_INTERVAL_MS
    primary_member: Optional[str] = None
    up_delay_ms: int = DEFAULT_BOND_DELAY_MS
    down_delay_ms: int = DEFAULT_BOND_DELAY_MS

    @property
    def is_active_backup(self) -> bool:
        return self.mode == BOND_MODE_ACTIVE_BACKUP

    @property
    def primary_reselect_policy(self) -> str:
        return "always" if self.is_active_backup else "better"

    @property
    def transmit_hash_policy(self) -> Optional[str]:
        if self.mode in HASH_POLICY_BOND_MODES:
            return "layer2+3"
        return None

    @property
    def lacp_transmit_rate(self) -> Optional[str]:
        if self.mode == "802.3ad":
            return "slow"
        return None


class DhcpReservation(NamedTuple):
    node: str
    mac: str
    ip: str


class DhcpSpec(NamedTuple):
    server_mac: Optional[str] = None
    server_ip: Optional[str] = None
    subnet: Optional[str] = None
    range_start: Optional[str] = None
    range_end: Optional[str] = None
    lease_time: str = "12h"
    reservations: Tuple[DhcpReservation, ...] = ()


def _freeze(mapping: Mapping) -> Mapping:
    return MappingProxyType(
        {
            key: _freeze(value) if isinstance(value, Mapping) else value
            for key, value in mapping.items()
        }
    )


def _role_order(roles) -> Tuple[str, ...]:
    """Cluster role first, the remaining roles sorted."""
    roles = set(roles)
    ordered = sorted(roles - {CLUSTER_ROLE})
    if CLUSTER_ROLE in roles:
        ordered.insert(0, CLUSTER_ROLE)
    return tuple(ordered)


def _valid_tag(tag) -> bool:
    return isinstance(tag, int) and not isinstance(tag, bool) and (
        1 <= tag <= 4094
    )


class Topology:
    """An immutable network profile.

    The mode is never stored; it is derived from which optional fields are
    present so that it can not drift from the data the renderers consume.
    """

    def __init__(
        self,
        nodes: Mapping[str, Mapping[str, str]],
        interfaces: Mapping[str, str],
        *,
        trunk: Optional[str] = None,
        bond_members: Sequence[str] = (),
        vlan_tags: Optional[Mapping[str, int]] = None,
        bond: Optional[BondSpec] = None,
        node_vlan_tags: Optional[Mapping[str, Mapping[str, int]]] = None,
        dhcp: Optional[DhcpSpec] = None,
        service_endpoint: Optional[str] = None,
        pod_network_cidr: Optional[str] = None,
        service_network_cidr: Optional[str] = None,
        prefix_length: int = DEFAULT_PREFIX_LENGTH,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ):
        if not isinstance(nodes, Mapping) or not isinstance(
            interfaces, Mapping
        ):
            raise IncompleteTopology("nodes and interfaces must be mappings")
        for node, addresses in nodes.items():
            if not isinstance(addresses, Mapping):
                raise IncompleteTopology(
                    "Node '%s' must map roles to addresses" % node
                )
        self._nodes = _freeze(nodes)
        self._interfaces = _freeze(dict(interfaces))
        self._trunk = trunk
        self._bond_members = tuple(bond_members)
        self._vlan_tags = (
            None if vlan_tags is None else _freeze(dict(vlan_tags))
        )
        self._bond = bond
        self._node_vlan_tags = (
            None if node_vlan_tags is None else _freeze(node_vlan_tags)
        )
        self._dhcp = dhcp
        self._service_endpoint = service_endpoint
        self._pod_network_cidr = pod_network_cidr
        self._service_network_cidr = service_network_cidr
        self._prefix_length = prefix_length
        self._name = name
        self._description = description
        self._validate()

    def __repr__(self):
        return "<%s name=%s mode=%s nodes=%s>" % (
            self.__class__.__name__,
            self._name,
            self.mode.value,
            list(self.node_names()),
        )

    def __eq__(self, other):
        if not isinstance(other, Topology):
            return NotImplemented
        return self.to_config() == other.to_config()

    __hash__ = None  # type: ignore

    @property
    def name(self) -> Optional[str]:
        return self._name

    @property
    def description(self) -> Optional[str]:
        return self._description

    @property
    def nodes(self) -> Mapping[str, Mapping[str, str]]:
        return self._nodes

    @property
    def interfaces(self) -> Mapping[str, str]:
        return self._interfaces

    @property
    def trunk(self) -> Optional[str]:
        return self._trunk

    @property
    def bond_members(self) -> Tuple[str, ...]:
        return self._bond_members

    @property
    def vlan_tags(self) -> Optional[Mapping[str, int]]:
        return self._vlan_tags

    @property
    def bond(self) -> Optional[BondSpec]:
        return self._bond

    @property
    def node_vlan_tags(self) -> Optional[Mapping[str, Mapping[str, int]]]:
        return self._node_vlan_tags

    @property
    def dhcp(self) -> Optional[DhcpSpec]:
        return self._dhcp

    @property
    def service_endpoint(self) -> Optional[str]:
        return self._service_endpoint

    @property
    def pod_network_cidr(self) -> Optional[str]:
        return self._pod_network_cidr

    @property
    def service_network_cidr(self) -> Optional[str]:
        return self._service_network_cidr

    @property
    def prefix_length(self) -> int:
        return self._prefix_length

    @property
    def mode(self) -> TopologyMode:
        if self._node_vlan_tags is not None:
            return TopologyMode.INCONSISTENT
        if self._dhcp is not None:
            return TopologyMode.DHCP_ASSIGNED
        if self._vlan_tags is not None:
            if self._bond is not None:
                return TopologyMode.BONDED_VLAN
            return TopologyMode.VLAN
        return TopologyMode.FLAT

    def node_names(self) -> Tuple[str, ...]:
        return tuple(sorted(self._nodes, key=natural_sort_key))

    def roles(self) -> Tuple[str, ...]:
        if self._node_vlan_tags is not None:
            roles = set()
            for tags in self._node_vlan_tags.values():
                roles.update(tags)
            return _role_order(roles)
        return _role_order(self._interfaces)

    def vlan_roles(self) -> Tuple[str, ...]:
        if self._node_vlan_tags is not None:
            return self.roles()
        if self._vlan_tags is None:
            return ()
        return _role_order(self._vlan_tags)

    def node(self, name: str) -> Mapping[str, str]:
        try:
            return self._nodes[name]
        except KeyError:
            raise UnknownNode(name, self._nodes) from None

    def address(self, node: str, role: str) -> str:
        addresses = self.node(node)
        try:
            return addresses[role]
        except KeyError:
            raise UnknownRole(role, "node '%s'" % node) from None

    def cidr_address(self, node: str, role: str) -> str:
        return "%s/%d" % (self.address(node, role), self._prefix_length)

    def interface(self, role: str) -> str:
        try:
            return self._interfaces[role]
        except KeyError:
            raise UnknownRole(role, "interfaces") from None

    def vlan_tag(self, role: str) -> int:
        if self._vlan_tags is None or role not in self._vlan_tags:
            raise UnknownRole(role, "vlanTags")
        return self._vlan_tags[role]

    def vlan_tag_for(self, node: str, role: str) -> int:
        """Return the VLAN tag ``node`` uses for ``role``.

        Only the negative test profile carries per-node tags; everywhere
        else this is the topology-global tag.
        """
        self.node(node)
        if self._node_vlan_tags is None:
            return self.vlan_tag(role)
        tags = self._node_vlan_tags[node]
        if role not in tags:
            raise UnknownRole(role, "nodeVlanTags of '%s'" % node)
        return tags[role]

    def interface_for(self, node: str, role: str) -> str:
        self.node(node)
        if self._node_vlan_tags is None:
            return self.interface(role)
        return "%s.%d" % (self._trunk, self.vlan_tag_for(node, role))

    def _validate(self):
        if not self._nodes:
            raise IncompleteTopology("Topology defines no nodes")
        if not isinstance(self._prefix_length, int) or not (
            0 < self._prefix_length <= 32
        ):
            raise IncompleteTopology(
                "Invalid prefix length: %r" % (self._prefix_length,)
            )
        roles = self.roles()
        if CLUSTER_ROLE not in roles:
            raise UnknownRole(CLUSTER_ROLE, "interfaces")
        for node, addresses in self._nodes.items():
            for role in roles:
                if role not in addresses:
                    raise IncompleteTopology(
                        "Node '%s' has no address for role '%s'"
                        % (node, role)
                    )
            for role, address in addresses.items():
                if not is_ipv4_address(address):
                    raise IncompleteTopology(
                        "Node '%s' role '%s' address is not IPv4: %r"
                        % (node, role, address)
                    )
        for cidr in (self._pod_network_cidr, self._service_network_cidr):
            if cidr is not None and not is_ipv4_network(cidr):
                raise IncompleteTopology("Invalid network CIDR: %r" % cidr)

        if self._bond_members and self._bond is None:
            raise IncompleteTopology("bondMembers given without a bondSpec")
        if self._node_vlan_tags is not None:
            self._validate_node_vlan_tags()
        elif self._dhcp is not None:
            self._validate_dhcp()
        elif self._vlan_tags is not None:
            self._validate_vlans()
            if self._bond is not None:
                self._validate_bond()
        elif self._bond is not None:
            raise IncompleteTopology("Bonding requires vlanTags")

    def _validate_vlans(self):
        if not self._trunk:
            raise IncompleteTopology("VLAN tagging requires a trunk interface")
        for role, tag in self._vlan_tags.items():
            if role not in self._interfaces:
                raise UnknownRole(role, "vlanTags")
            if not _valid_tag(tag):
                raise IncompleteTopology(
                    "Invalid VLAN tag for role '%s': %r" % (role, tag)
                )
        trunk_prefix = self._trunk + "."
        for role, ifname in self._interfaces.items():
            if role not in self._vlan_tags:
                # nothing but tagged roles can ride a trunk
                raise IncompleteTopology(
                    "Role '%s' (%s) has no VLAN tag" % (role, ifname)
                )
            suffix = ifname[len(trunk_prefix):]
            if (
                ifname.startswith(trunk_prefix)
                and suffix.isdigit()
                and int(suffix) != self._vlan_tags[role]
            ):
                raise IncompleteTopology(
                    "Interface %s for role '%s' disagrees with VLAN tag %s"
                    % (ifname, role, self._vlan_tags[role])
                )
        tagged = {}
        for role in _role_order(self._vlan_tags):
            tag = self._vlan_tags[role]
            if tag in tagged:
                raise IncompleteTopology(
                    "VLAN tag %s is used by roles '%s' and '%s'"
                    % (tag, tagged[tag], role)
                )
            tagged[tag] = role
        owners = {self._trunk: "the trunk"}
        for member in self._bond_members:
            owners[member] = "bond member %s" % member
        for role in _role_order(self._interfaces):
            ifname = self._interfaces[role]
            if ifname in owners:
                raise IncompleteTopology(
                    "Interface %s for role '%s' clashes with %s"
                    % (ifname, role, owners[ifname])
                )
            owners[ifname] = "role '%s'" % role

    def _validate_bond(self):
        bond = self._bond
        if bond.mode not in BOND_MODES:
            raise IncompleteTopology("Unknown bond mode: %r" % (bond.mode,))
        if not self._bond_members:
            raise IncompleteTopology("Bonding requires bondMembers")
        if len(set(self._bond_members)) != len(self._bond_members):
            raise IncompleteTopology(
                "Duplicate bond members: %s" % list(self._bond_members)
            )
        if self._trunk in self._bond_members:
            raise IncompleteTopology(
                "Bond device %s can not be its own member" % self._trunk
            )
        for value in (
            bond.monitor_interval_ms,
            bond.up_delay_ms,
            bond.down_delay_ms,
        ):
            if not isinstance(value, int) or value < 0:
                raise IncompleteTopology(
                    "Invalid bond timing value: %r" % (value,)
                )
        if bond.is_active_backup and (
            bond.primary_member not in self._bond_members
        ):
            raise IncompleteTopology(
                "Primary member %r is not one of %s"
                % (bond.primary_member, list(self._bond_members))
            )

    def _validate_dhcp(self):
        if self._vlan_tags is not None or self._bond is not None:
            raise IncompleteTopology(
                "DHCP-assigned addressing supports flat topologies only"
            )
        reserved = {}
        for reservation in self._dhcp.reservations:
            if reservation.node not in self._nodes:
                raise UnknownNode(reservation.node, self._nodes)
            mac = reservation.mac
            if not isinstance(mac, str) or not MAC_RE.match(mac):
                raise IncompleteTopology(
                    "Invalid MAC for node '%s': %r"
                    % (reservation.node, reservation.mac)
                )
            if reservation.ip != self.address(reservation.node, CLUSTER_ROLE):
                raise IncompleteTopology(
                    "Reservation for '%s' (%s) disagrees with its cluster"
                    " address %s"
                    % (
                        reservation.node,
                        reservation.ip,
                        self.address(reservation.node, CLUSTER_ROLE),
                    )
                )
            reserved[reservation.node] = reservation
        missing = sorted(set(self._nodes) - set(reserved))
        if missing:
            raise IncompleteTopology(
                "Nodes without DHCP reservations: %s" % ", ".join(missing)
            )
        for address in (
            self._dhcp.server_ip,
            self._dhcp.range_start,
            self._dhcp.range_end,
        ):
            if address is not None and not is_ipv4_address(address):
                raise IncompleteTopology(
                    "Invalid DHCP server address: %r" % (address,)
                )
        subnet = self._dhcp.subnet
        if subnet is None:
            return
        if not is_ipv4_network(subnet):
            raise IncompleteTopology("Invalid DHCP subnet: %r" % (subnet,))
        for reservation in self._dhcp.reservations:
            if not is_ip_in_subnet(reservation.ip, subnet):
                raise IncompleteTopology(
                    "Reservation for '%s' (%s) is outside %s"
                    % (reservation.node, reservation.ip, subnet)
                )

    def _validate_node_vlan_tags(self):
        if (
            self._vlan_tags is not None
            or self._bond is not None
            or self._dhcp is not None
        ):
            raise IncompleteTopology(
                "nodeVlanTags can not be combined with vlanTags, bondSpec"
                " or dhcp"
            )
        if not self._trunk:
            raise IncompleteTopology("nodeVlanTags requires a trunk interface")
        if self._interfaces:
            raise IncompleteTopology(
                "nodeVlanTags derives interface names from the trunk;"
                " unexpected interfaces: %s" % sorted(self._interfaces)
            )
        for node in self._node_vlan_tags:
            if node not in self._nodes:
                raise UnknownNode(node, self._nodes)
        roles = None
        for node in self.node_names():
            tags = self._node_vlan_tags.get(node)
            if tags is None:
                raise IncompleteTopology(
                    "Node '%s' has no entry in nodeVlanTags" % node
                )
            if roles is None:
                roles = set(tags)
            elif set(tags) != roles:
                raise IncompleteTopology(
                    "Node '%s' tags roles %s, expected %s"
                    % (node, sorted(tags), sorted(roles))
                )
            for role, tag in tags.items():
                if not _valid_tag(tag):
                    raise IncompleteTopology(
                        "Invalid VLAN tag for node '%s' role '%s': %r"
                        % (node, role, tag)
                    )
            if len(set(tags.values())) != len(tags):
                raise IncompleteTopology(
                    "Node '%s' uses one VLAN tag for several roles: %s"
                    % (node, dict(sorted(tags.items())))
                )
        LOG.warning(
            "Topology %s uses per-node VLAN tags; nodes will not share"
            " VLANs. This is only meant for negative testing.",
            self._name or "<unnamed>",
        )

    def to_config(self) -> Dict[str, Any]:
        """Return the profile document this topology was parsed from."""
        interfaces: Dict[str, Any] = dict(self._interfaces)
        if self._trunk is not None:
            interfaces[TRUNK_KEY] = self._trunk
        if self._bond_members:
            interfaces[BOND_MEMBERS_KEY] = list(self._bond_members)
        config: Dict[str, Any] = {
            "nodes": {n: dict(roles) for n, roles in self._nodes.items()},
            "interfaces": interfaces,
            "prefixLength": self._prefix_length,
        }
        optional = {
            "name": self._name,
            "description": self._description,
            "serviceEndpoint": self._service_endpoint,
            "podNetworkCidr": self._pod_network_cidr,
            "serviceNetworkCidr": self._service_network_cidr,
        }
        config.update({k: v for k, v in optional.items() if v is not None})
        if self._vlan_tags is not None:
            config["vlanTags"] = dict(self._vlan_tags)
        if self._node_vlan_tags is not None:
            config["nodeVlanTags"] = {
                n: dict(tags) for n, tags in self._node_vlan_tags.items()
            }
        if self._bond is not None:
            config["bondSpec"] = {
                "mode": self._bond.mode,
                "monitorIntervalMs": self._bond.monitor_interval_ms,
                "upDelayMs": self._bond.up_delay_ms,
                "downDelayMs": self._bond.down_delay_ms,
            }
            if self._bond.primary_member is not None:
                config["bondSpec"]["primaryMember"] = self._bond.primary_member
        if self._dhcp is not None:
            server = {
                "mac": self._dhcp.server_mac,
                "ip": self._dhcp.server_ip,
                "subnet": self._dhcp.subnet,
                "rangeStart": self._dhcp.range_start,
                "rangeEnd": self._dhcp.range_end,
                "leaseTime": self._dhcp.lease_time,
            }
            config["dhcp"] = {
                "server": {k: v for k, v in server.items() if v is not None},
                "reservations": {
                    r.node: {"mac": r.mac, "ip": r.ip}
                    for r in self._dhcp.reservations
                },
            }
        return config


def _mapping(value, what) -> Optional[Mapping]:
    if value is not None and not isinstance(value, Mapping):
        raise IncompleteTopology(
            "%s must be a mapping, got %s" % (what, type(value).__name__)
        )
    return value


def _parse_bond(cfg: Mapping, members: Sequence[str]) -> BondSpec:
    if "mode" not in cfg:
        raise IncompleteTopology("bondSpec is missing 'mode'")
    primary = cfg.get("primaryMember")
    if primary is None and cfg["mode"] == BOND_MODE_ACTIVE_BACKUP and members:
        primary = members[0]
        LOG.debug("Defaulting bond primary member to %s", primary)
    return BondSpec(
        mode=cfg["mode"],
        monitor_interval_ms=cfg.get(
            "monitorIntervalMs", DEFAULT_MONITOR_INTERVAL_MS
        ),
        primary_member=primary,
        up_delay_ms=cfg.get("upDelayMs", DEFAULT_BOND_DELAY_MS),
        down_delay_ms=cfg.get("downDelayMs", DEFAULT_BOND_DELAY_MS),
    )


def _parse_dhcp(cfg: Mapping, nodes: Mapping) -> DhcpSpec:
    server = _mapping(cfg.get("server"), "dhcp.server") or {}
    reservations = []
    entries = _mapping(cfg.get("reservations"), "dhcp.reservations") or {}
    for node, entry in sorted(entries.items()):
        if node not in nodes:
            raise UnknownNode(node, nodes)
        entry = _mapping(entry, "dhcp.reservations.%s" % node)
        if entry is None:
            raise IncompleteTopology(
                "No DHCP reservation for node '%s'" % node
            )
        if CLUSTER_ROLE not in nodes[node]:
            raise UnknownRole(CLUSTER_ROLE, "node '%s'" % node)
        reservations.append(
            DhcpReservation(
                node=node,
                mac=entry.get("mac"),
                ip=entry.get("ip", nodes[node][CLUSTER_ROLE]),
            )
        )
    return DhcpSpec(
        server_mac=server.get("mac"),
        server_ip=server.get("ip"),
        subnet=server.get("subnet"),
        range_start=server.get("rangeStart"),
        range_end=server.get("rangeEnd"),
        lease_time=server.get("leaseTime", "12h"),
        reservations=tuple(reservations),
    )


def from_config(config: Mapping[str, Any]) -> Topology:
    """Build a Topology from a camelCase profile document.

    :param config: profile document as loaded from YAML/JSON or one of the
        catalog presets.
    :raises IncompleteTopology: when the document can not describe a
        renderable topology.
    """
    if not isinstance(config, Mapping):
        raise IncompleteTopology(
            "Profile must be a mapping, got %s" % type(config).__name__
        )
    nodes = _mapping(config.get("nodes"), "nodes")
    if not nodes:
        raise IncompleteTopology("Profile is missing 'nodes'")
    for node, addresses in nodes.items():
        if _mapping(addresses, "nodes.%s" % node) is None:
            raise IncompleteTopology("Node '%s' has no addresses" % node)
    interfaces = dict(_mapping(config.get("interfaces"), "interfaces") or {})
    trunk = interfaces.pop(TRUNK_KEY, None)
    members = interfaces.pop(BOND_MEMBERS_KEY, None) or []
    if not isinstance(members, (list, tuple)):
        raise IncompleteTopology(
            "bondMembers must be a list, got %s" % type(members).__name__
        )
    names = list(interfaces.values()) + list(members)
    if trunk is not None:
        names.append(trunk)
    for ifname in names:
        if not isinstance(ifname, str):
            raise IncompleteTopology(
                "Interface names must be strings, got %r" % (ifname,)
            )
    vlan_tags = _mapping(config.get("vlanTags"), "vlanTags")
    node_vlan_tags = _mapping(config.get("nodeVlanTags"), "nodeVlanTags")
    for node, tags in (node_vlan_tags or {}).items():
        if _mapping(tags, "nodeVlanTags.%s" % node) is None:
            raise IncompleteTopology("No VLAN tags for node '%s'" % node)

    bond = None
    bond_cfg = _mapping(config.get("bondSpec"), "bondSpec")
    if bond_cfg is not None:
        bond = _parse_bond(bond_cfg, members)
    dhcp = None
    dhcp_cfg = _mapping(config.get("dhcp"), "dhcp")
    if dhcp_cfg is not None:
        dhcp = _parse_dhcp(dhcp_cfg, nodes)

    return Topology(
        nodes,
        interfaces,
        trunk=trunk,
        bond_members=members,
        vlan_tags=vlan_tags,
        bond=bond,
        node_vlan_tags=node_vlan_tags,
        dhcp=dhcp,
        service_endpoint=config.get("serviceEndpoint"),
        pod_network_cidr=config.get("podNetworkCidr"),
        service_network_cidr=config.get("serviceNetworkCidr"),
        prefix_length=config.get("prefixLength", DEFAULT_PREFIX_LENGTH),
        name=config.get("name"),
        description=config.get("description"),
    )
