# This file is part of clusternet. See LICENSE file for license information.

import pytest

from clusternet.net import (
    RendererNotFoundError,
    declarative,
    networkd,
    renderer,
    renderers,
)


class TestSelect:
    @pytest.mark.parametrize(
        "name,cls",
        [
            ("declarative", declarative.Renderer),
            ("networkd", networkd.Renderer),
            (None, networkd.Renderer),
        ],
    )
    def test_select(self, name, cls):
        found_name, found = renderers.select(name)
        assert cls is found
        assert issubclass(found, renderer.Renderer)
        assert found_name == (name or "networkd")

    def test_unknown(self):
        with pytest.raises(RendererNotFoundError, match="netplan"):
            renderers.select("netplan")


class TestVlanLookup:
    def test_global_lookup(self, vlan):
        assert not renderer.uses_node_vlan_tags(vlan)
        assert 100 == renderer.vlan_tag(vlan, "agent-1", "storage")
        assert "eth1.100" == renderer.vlan_interface(
            vlan, "agent-1", "storage"
        )

    def test_per_node_lookup_only_for_negative_profile(self, broken):
        assert renderer.uses_node_vlan_tags(broken)
        assert 102 == renderer.vlan_tag(broken, "agent-1", "storage")
        assert "eth1.202" == renderer.vlan_interface(
            broken, "agent-1", "cluster"
        )

    def test_renderer_is_abstract(self):
        with pytest.raises(TypeError):
            renderer.Renderer()
