# This file is part of clusternet. See LICENSE file for license information.

import pytest

from clusternet.exceptions import IncompleteTopology
from clusternet.net import dhcp


class TestMakeMac:
    @pytest.mark.parametrize(
        "args,expected",
        [
            ((0,), "52:54:00:01:01:00"),
            ((1,), "52:54:00:01:01:01"),
            ((255, 2, 16), "52:54:00:02:10:ff"),
        ],
    )
    def test_scheme(self, args, expected):
        assert expected == dhcp.make_mac(*args)

    @pytest.mark.parametrize("host", [-1, 256, "1"])
    def test_invalid(self, host):
        with pytest.raises(ValueError, match="host number"):
            dhcp.make_mac(host)


class TestDnsmasq:
    def test_host_entries(self, dhcp_assigned):
        assert [
            "dhcp-host=52:54:00:01:01:03,agent-1,192.168.1.3",
            "dhcp-host=52:54:00:01:01:04,agent-2,192.168.1.4",
            "dhcp-host=52:54:00:01:01:01,server-1,192.168.1.1",
            "dhcp-host=52:54:00:01:01:02,server-2,192.168.1.2",
        ] == dhcp.dnsmasq_host_entries(dhcp_assigned)

    def test_config(self, dhcp_assigned):
        lines = dhcp.dnsmasq_config(dhcp_assigned).splitlines()
        assert "interface=eth1" == lines[0]
        assert "bind-interfaces" == lines[1]
        assert (
            "dhcp-range=192.168.1.100,192.168.1.200,255.255.255.0,12h"
            == lines[2]
        )
        assert "address=/server-1.local/192.168.1.1" in lines
        assert 11 == len(lines)

    def test_static_topology_rejected(self, flat):
        with pytest.raises(IncompleteTopology, match="flat"):
            dhcp.dnsmasq_host_entries(flat)
