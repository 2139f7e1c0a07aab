# This file is part of clusternet. See LICENSE file for license information.

"""Flat network whose addresses come from MAC-based DHCP reservations.

The reserved addresses equal the static ones of the simple profile, so
the k3s flags stay deterministic.
"""

from clusternet.net.dhcp import make_mac

NAME = "dhcp-simple"

_NODES = ("server-1", "server-2", "agent-1", "agent-2")

PROFILE = {
    "name": NAME,
    "description": "Flat network on eth1, IPs assigned by DHCP reservation",
    "nodes": {
        node: {"cluster": "192.168.1.%d" % host}
        for host, node in enumerate(_NODES, 1)
    },
    "interfaces": {"cluster": "eth1"},
    "dhcp": {
        "server": {
            "mac": make_mac(0),
            "ip": "192.168.1.254",
            "subnet": "192.168.1.0/24",
            "rangeStart": "192.168.1.100",
            "rangeEnd": "192.168.1.200",
            "leaseTime": "12h",
        },
        "reservations": {
            node: {"mac": make_mac(host), "ip": "192.168.1.%d" % host}
            for host, node in enumerate(_NODES, 1)
        },
    },
    "serviceEndpoint": "https://192.168.1.1:6443",
    "podNetworkCidr": "10.42.0.0/16",
    "serviceNetworkCidr": "10.43.0.0/16",
}
