# This file is part of clusternet. See LICENSE file for license information.

import os

import pytest

from clusternet.exceptions import IncompleteTopology
from clusternet.net import networkd, topology
from tests.unittests.helpers import NODES

FLAT_RENDERED_SERVER_1 = """[Address]
Address=192.168.1.1/24

[Link]
RequiredForOnline=yes

[Match]
Name=eth1

[Network]
DHCP=no
IPv6AcceptRA=no
LinkLocalAddressing=no

"""

DHCP_RENDERED = """[Link]
RequiredForOnline=yes

[Match]
Name=eth1

[Network]
DHCP=ipv4
IPv6AcceptRA=no
LinkLocalAddressing=no

"""

VLAN_TRUNK_RENDERED = """[Link]
RequiredForOnline=yes

[Match]
Name=eth1

[Network]
DHCP=no
IPv6AcceptRA=no
LinkLocalAddressing=no
VLAN=eth1.100
VLAN=eth1.200

"""

VLAN_CLUSTER_NETDEV = """[NetDev]
Kind=vlan
Name=eth1.200

[VLAN]
Id=200

"""

VLAN_CLUSTER_NETWORK_SERVER_1 = """[Address]
Address=192.168.200.1/24

[Link]
RequiredForOnline=yes

[Match]
Name=eth1.200

[Network]
DHCP=no
IPv6AcceptRA=no
LinkLocalAddressing=no

"""

BOND_NETDEV = """[Bond]
DownDelaySec=200ms
MIIMonitorSec=100ms
Mode=active-backup
PrimaryReselectPolicy=always
UpDelaySec=200ms

[NetDev]
Kind=bond
Name=bond0

"""

BOND_PRIMARY_MEMBER = """[Link]
RequiredForOnline=no

[Match]
Name=eth1

[Network]
Bond=bond0
DHCP=no
IPv6AcceptRA=no
LinkLocalAddressing=no
PrimarySlave=yes

"""

BOND_STORAGE_NETWORK_AGENT_1 = """[Address]
Address=192.168.100.3/24

[Link]
RequiredForOnline=no

[Match]
Name=bond0.100

[Network]
DHCP=no
IPv6AcceptRA=no
LinkLocalAddressing=no

"""


def _prefix(filename):
    return int(filename.split("-", 1)[0])


class TestCfgParser:
    def test_sections_and_keys_sorted(self):
        cfg = networkd.CfgParser()
        cfg.update_section("Network", "VLAN", "eth1.200")
        cfg.update_section("Match", "Name", "eth1")
        cfg.update_section("Network", "DHCP", "no")
        cfg.update_section("Network", "VLAN", "eth1.100")
        assert (
            "[Match]\nName=eth1\n\n"
            "[Network]\nDHCP=no\nVLAN=eth1.100\nVLAN=eth1.200\n\n"
        ) == cfg.get_final_conf()

    def test_one_address_section_per_address(self):
        cfg = networkd.CfgParser()
        cfg.update_section("Address", "Address", "10.0.0.2/24")
        cfg.update_section("Address", "Address", "10.0.0.1/24")
        assert (
            "[Address]\nAddress=10.0.0.1/24\n\n"
            "[Address]\nAddress=10.0.0.2/24\n\n"
        ) == cfg.get_final_conf()

    def test_duplicates_removed_and_booleans_rendered(self):
        cfg = networkd.CfgParser()
        cfg.update_section("Link", "RequiredForOnline", False)
        cfg.update_section("Link", "RequiredForOnline", False)
        assert "[Link]\nRequiredForOnline=no\n\n" == cfg.get_final_conf()

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="DHCPv6"):
            networkd.CfgParser().update_section("DHCPv6", "UseDNS", True)


class TestParseUnit:
    def test_repeated_sections_folded(self):
        content = (
            "# comment\n[Address]\nAddress=10.0.0.1/24\n\n"
            "[Address]\nAddress=10.0.0.2/24\n[Match]\nName = eth0\n"
        )
        assert {
            "Address": [
                ("Address", "10.0.0.1/24"),
                ("Address", "10.0.0.2/24"),
            ],
            "Match": [("Name", "eth0")],
        } == networkd.parse_unit(content)

    @pytest.mark.parametrize(
        "content", ["Name=eth0\n", "[Match]\nthis is not a key\n"]
    )
    def test_unparseable(self, content):
        with pytest.raises(ValueError, match="line"):
            networkd.parse_unit(content)


class TestRenderFlat:
    def test_scenario_flat(self, flat):
        files = networkd.render(flat, "server-1")
        assert {"15-eth1.network": FLAT_RENDERED_SERVER_1} == files

    def test_dhcp(self, dhcp_assigned):
        files = networkd.render(dhcp_assigned, "server-2")
        assert {"15-eth1.network": DHCP_RENDERED} == files


class TestRenderVlan:
    def test_scenario_vlan(self, vlan):
        files = networkd.render(vlan, "server-1")
        assert [
            "15-eth1.network",
            "20-vlan-cluster.netdev",
            "20-vlan-cluster.network",
            "20-vlan-storage.netdev",
            "20-vlan-storage.network",
        ] == list(files)
        assert VLAN_TRUNK_RENDERED == files["15-eth1.network"]
        assert VLAN_CLUSTER_NETDEV == files["20-vlan-cluster.netdev"]
        assert (
            VLAN_CLUSTER_NETWORK_SERVER_1 == files["20-vlan-cluster.network"]
        )
        assert (
            "Address=192.168.100.1/24" in files["20-vlan-storage.network"]
        )

    @pytest.mark.parametrize("node", NODES)
    def test_ordering_invariant(self, vlan, node):
        files = list(networkd.render(vlan, node))
        trunk = [f for f in files if "-vlan-" not in f]
        vlan_devices = [f for f in files if f.endswith(".netdev")]
        vlan_bindings = [f for f in files if f not in trunk + vlan_devices]
        assert ["15-eth1.network"] == trunk
        assert 2 == len(vlan_devices) == len(vlan_bindings)
        assert _prefix(trunk[0]) < min(_prefix(f) for f in vlan_devices)
        assert max(_prefix(f) for f in vlan_devices) <= min(
            _prefix(f) for f in vlan_bindings
        )
        for device in vlan_devices:
            binding = device.replace(".netdev", ".network")
            assert files.index(device) < files.index(binding)

    def test_scenario_negative_per_node_tags(self, broken):
        server1 = networkd.render(broken, "server-1")
        server2 = networkd.render(broken, "server-2")
        assert "Id=200\n" in server1["20-vlan-cluster.netdev"]
        assert "Id=201\n" in server2["20-vlan-cluster.netdev"]
        assert "Name=eth1.201\n" in server2["20-vlan-cluster.netdev"]
        assert "VLAN=eth1.201\n" in server2["15-eth1.network"]
        assert "VLAN=eth1.200\n" not in server2["15-eth1.network"]


class TestRenderBondedVlan:
    def test_scenario_bonded(self, bonded):
        files = networkd.render(bonded, "agent-1")
        assert [
            "10-bond0.netdev",
            "20-bond0.network",
            "20-eth1.network",
            "20-eth2.network",
            "20-vlan-cluster.netdev",
            "20-vlan-storage.netdev",
            "30-vlan-cluster.network",
            "30-vlan-storage.network",
        ] == sorted(files)
        assert BOND_NETDEV == files["10-bond0.netdev"]
        assert BOND_PRIMARY_MEMBER == files["20-eth1.network"]
        assert (
            BOND_PRIMARY_MEMBER.replace("Name=eth1", "Name=eth2").replace(
                "PrimarySlave=yes\n", ""
            )
            == files["20-eth2.network"]
        )
        assert "Name=bond0.200\n" in files["20-vlan-cluster.netdev"]
        assert "RequiredForOnline=yes" in files["30-vlan-cluster.network"]
        assert BOND_STORAGE_NETWORK_AGENT_1 == files["30-vlan-storage.network"]
        trunk = files["20-bond0.network"]
        assert "VLAN=bond0.100\nVLAN=bond0.200\n" in trunk
        assert "RequiredForOnline=no" in trunk

    def test_ordering_invariant(self, bonded):
        files = networkd.render(bonded, "server-2")
        bond = [f for f in files if f.startswith("10-bond0.")]
        vlan_devices = [
            f for f in files if f.endswith(".netdev") and "-vlan-" in f
        ]
        vlan_bindings = [
            f for f in files if f.endswith(".network") and "-vlan-" in f
        ]
        assert ["10-bond0.netdev"] == bond
        assert vlan_devices and vlan_bindings
        assert max(_prefix(f) for f in bond) < min(
            _prefix(f) for f in vlan_devices
        )
        assert max(_prefix(f) for f in vlan_devices) < min(
            _prefix(f) for f in vlan_bindings
        )

    def test_lacp_bond_settings(self, bonded):
        doc = bonded.to_config()
        doc["bondSpec"] = {"mode": "802.3ad", "monitorIntervalMs": 50}
        files = networkd.render(topology.from_config(doc), "server-1")
        netdev = files["10-bond0.netdev"]
        assert "Mode=802.3ad\n" in netdev
        assert "MIIMonitorSec=50ms\n" in netdev
        assert "PrimaryReselectPolicy=better\n" in netdev
        assert "TransmitHashPolicy=layer2+3\n" in netdev
        assert "LACPTransmitRate=slow\n" in netdev
        assert "PrimarySlave" not in files["20-eth1.network"]


class TestRenderContract:
    def test_unknown_node(self, bonded):
        with pytest.raises(IncompleteTopology, match="agent-9"):
            networkd.render(bonded, "agent-9")

    @pytest.mark.parametrize("node", NODES)
    def test_idempotent(self, any_profile, node):
        assert networkd.render(any_profile, node) == networkd.render(
            any_profile, node
        )

    @pytest.mark.parametrize("node", NODES)
    def test_ipv6_and_link_local_always_disabled(self, any_profile, node):
        for fn, content in networkd.render(any_profile, node).items():
            if fn.endswith(".network"):
                assert "IPv6AcceptRA=no\n" in content
                assert "LinkLocalAddressing=no\n" in content

    @pytest.mark.parametrize("node", NODES)
    def test_address_fidelity(self, any_profile, node):
        addresses = set()
        for content in networkd.render(any_profile, node).values():
            for section, values in networkd.parse_unit(content).items():
                if section == "Address":
                    addresses.update(val for _, val in values)
        if any_profile.dhcp is not None:
            assert set() == addresses
        else:
            assert {
                "%s/24" % ip for ip in any_profile.nodes[node].values()
            } == addresses


class TestRenderToTarget:
    def test_writes_into_target(self, vlan, tmp_path):
        r = networkd.Renderer()
        written = r.render_to_target(vlan, "agent-2", target=str(tmp_path))
        unit_dir = tmp_path / "etc" / "systemd" / "network"
        assert sorted(os.listdir(str(unit_dir))) == sorted(
            os.path.basename(p) for p in written
        )
        assert (
            "Address=192.168.200.4/24"
            in (unit_dir / "20-vlan-cluster.network").read_text()
        )

    def test_configured_directory(self, flat, tmp_path):
        r = networkd.Renderer(config={"network_conf_dir": str(tmp_path)})
        r.render_to_target(flat, "server-1")
        assert FLAT_RENDERED_SERVER_1 == (
            tmp_path / "15-eth1.network"
        ).read_text()

    def test_nothing_written_on_error(self, flat, tmp_path):
        r = networkd.Renderer(config={"network_conf_dir": str(tmp_path)})
        with pytest.raises(IncompleteTopology):
            r.render_to_target(flat, "nope")
        assert [] == os.listdir(str(tmp_path))
