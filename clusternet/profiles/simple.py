# This file is part of clusternet. See LICENSE file for license information.

"""Flat network: one untagged interface, static addresses."""

NAME = "simple"

PROFILE = {
    "name": NAME,
    "description": "Flat network, static IPs on eth1",
    "nodes": {
        "server-1": {"cluster": "192.168.1.1"},
        "server-2": {"cluster": "192.168.1.2"},
        "agent-1": {"cluster": "192.168.1.3"},
        "agent-2": {"cluster": "192.168.1.4"},
    },
    "interfaces": {"cluster": "eth1"},
    "serviceEndpoint": "https://192.168.1.1:6443",
    "podNetworkCidr": "10.42.0.0/16",
    "serviceNetworkCidr": "10.43.0.0/16",
}
