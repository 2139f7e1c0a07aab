# This file is part of clusternet. See LICENSE file for license information.

from unittest import mock

import pytest

from clusternet.exceptions import EquivalenceError
from clusternet.net import declarative, equivalence, networkd
from tests.unittests.helpers import NODES


class TestGraphs:
    def test_unit_files_give_vlan_parent(self, vlan):
        graph = equivalence.graph_from_unit_files(
            networkd.render(vlan, "server-1")
        )
        cluster = graph.devices["eth1.200"]
        assert "vlan" == cluster.kind
        assert 200 == cluster.vlan_id
        assert "eth1" == cluster.parent
        assert "20-vlan-cluster" == cluster.unit
        assert ("eth1.100", "eth1.200") == graph.bindings["eth1"].vlans

    def test_bond_members(self, bonded):
        fragment = declarative.render(bonded, "agent-1")
        graph = equivalence.graph_from_fragment(fragment)
        assert ("eth1", "eth2") == graph.members("bond0")
        assert graph.bindings["eth1"].primary_member

    def test_non_unit_files_ignored(self, flat):
        files = dict(networkd.render(flat, "server-1"))
        files["README"] = "not a unit"
        graph = equivalence.graph_from_unit_files(files)
        assert ["eth1"] == list(graph.bindings)

    def test_netdev_without_name(self):
        with pytest.raises(ValueError, match="Name"):
            equivalence.graph_from_unit_files(
                {"20-x.netdev": "[NetDev]\nKind=vlan\n"}
            )


class TestCheckEquivalence:
    @pytest.mark.parametrize("node", NODES)
    def test_presets_agree(self, any_profile, node):
        graph = equivalence.check_equivalence(any_profile, node)
        assert graph.bindings

    def test_verify_all_in_node_order(self, bonded):
        graphs = equivalence.verify_all(bonded)
        assert ["agent-1", "agent-2", "server-1", "server-2"] == list(graphs)

    def test_scenario_negative_graphs_differ_between_nodes(self, broken):
        graphs = equivalence.verify_all(broken)
        assert 200 == graphs["server-1"].devices["eth1.200"].vlan_id
        assert 201 == graphs["server-2"].devices["eth1.201"].vlan_id

    def test_disagreement_reported(self, vlan):
        good = networkd.render(vlan, "server-1")
        tampered = dict(good)
        tampered["20-vlan-cluster.netdev"] = good[
            "20-vlan-cluster.netdev"
        ].replace("Id=200", "Id=299")
        del tampered["20-vlan-storage.network"]
        nd = mock.Mock(spec=networkd.Renderer)
        nd.render.return_value = tampered
        with pytest.raises(EquivalenceError) as exc_info:
            equivalence.check_equivalence(
                vlan, "server-1", networkd_renderer=nd
            )
        differences = exc_info.value.differences
        assert "device eth1.200 vlan_id: 200 != 299" in differences
        assert (
            "binding eth1.100 only rendered declaratively" in differences
        )
        assert "server-1" == exc_info.value.node

    def test_missing_kernel_module_reported(self, bonded):
        fragment = declarative.render(bonded, "server-1")
        dr = mock.Mock(spec=declarative.Renderer)
        dr.render.return_value = fragment._replace(kernel_modules=("8021q",))
        with pytest.raises(EquivalenceError, match="bonding"):
            equivalence.check_equivalence(
                bonded, "server-1", declarative_renderer=dr
            )
