# This file is part of clusternet. See LICENSE file for license information.

import pytest

from clusternet import k3s
from clusternet.exceptions import UnknownNode
from clusternet.net import topology
from tests.unittests.helpers import NODES

SERVER_ONLY = ("--advertise-address=", "--tls-san=")


class TestDeriveFlags:
    def test_server_flags_flat(self, flat):
        assert [
            "--node-ip=192.168.1.2",
            "--flannel-iface=eth1",
            "--advertise-address=192.168.1.2",
            "--tls-san=192.168.1.1",
        ] == k3s.derive_flags(flat, "server-2", "server")

    def test_agent_flags_vlan(self, vlan):
        assert [
            "--node-ip=192.168.200.3",
            "--flannel-iface=eth1.200",
        ] == k3s.derive_flags(vlan, "agent-1", "agent")

    def test_bonded_overlay_interface(self, bonded):
        flags = k3s.derive_flags(bonded, "server-1", "server")
        assert "--flannel-iface=bond0.200" in flags
        assert "--tls-san=192.168.200.1" in flags

    def test_negative_profile_uses_node_interface(self, broken):
        flags = k3s.derive_flags(broken, "agent-2", "agent")
        assert "--flannel-iface=eth1.203" in flags

    @pytest.mark.parametrize("node", NODES)
    def test_role_differentiated(self, any_profile, node):
        agent = k3s.derive_flags(any_profile, node, "agent")
        server = k3s.derive_flags(any_profile, node, "server")
        for prefix in SERVER_ONLY:
            assert not [f for f in agent if f.startswith(prefix)]
            assert 1 == len([f for f in server if f.startswith(prefix)])
        assert agent == server[:2]

    def test_unknown_node(self, flat):
        with pytest.raises(UnknownNode):
            k3s.derive_flags(flat, "server-7", "agent")

    def test_missing_primary(self):
        topo = topology.Topology(
            {"server-2": {"cluster": "10.0.0.2"}}, {"cluster": "eth0"}
        )
        with pytest.raises(UnknownNode, match="server-1"):
            k3s.derive_flags(topo, "server-2", "server")
        with pytest.raises(UnknownNode, match="server-1"):
            k3s.derive_flags(topo, "server-2", "agent")

    def test_unknown_role(self, flat):
        with pytest.raises(ValueError, match="controller"):
            k3s.derive_flags(flat, "server-1", "controller")


class TestServiceConfig:
    def test_cidr_flags(self, vlan):
        assert [
            "--cluster-cidr=10.42.0.0/16",
            "--service-cidr=10.43.0.0/16",
        ] == k3s.derive_cidr_flags(vlan)

    def test_cidr_flags_absent(self):
        topo = topology.Topology(
            {"server-1": {"cluster": "10.0.0.1"}}, {"cluster": "eth0"}
        )
        assert [] == k3s.derive_cidr_flags(topo)

    def test_server_address(self, flat):
        assert None is k3s.server_address(flat, "server-1")
        assert "https://192.168.1.1:6443" == k3s.server_address(
            flat, "agent-1"
        )

    def test_server_address_without_endpoint(self):
        topo = topology.Topology(
            {
                "server-1": {"cluster": "10.0.0.1"},
                "agent-1": {"cluster": "10.0.0.2"},
            },
            {"cluster": "eth0"},
        )
        assert "https://10.0.0.1:6443" == k3s.server_address(topo, "agent-1")

    def test_primary_server_config(self, vlan):
        cfg = k3s.derive_service_config(vlan, "server-1", "server")
        assert {
            "role": "server",
            "server_addr": None,
            "cluster_init": True,
            "extra_flags": [
                "--node-ip=192.168.200.1",
                "--flannel-iface=eth1.200",
                "--advertise-address=192.168.200.1",
                "--tls-san=192.168.200.1",
                "--cluster-cidr=10.42.0.0/16",
                "--service-cidr=10.43.0.0/16",
            ],
        } == cfg

    def test_agent_config(self, vlan):
        cfg = k3s.derive_service_config(vlan, "agent-2", "agent")
        assert "https://192.168.200.1:6443" == cfg["server_addr"]
        assert False is cfg["cluster_init"]
        assert 2 == len(cfg["extra_flags"])
