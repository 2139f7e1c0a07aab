# This file is part of clusternet. See LICENSE file for license information.

"""Negative profile: every node tags its VLANs differently.

Only server-1 uses the tags of the vlans profile. The other nodes boot
fine but can not reach it, so cluster formation must fail. This is the
one profile allowed to carry per-node tags.
"""

NAME = "vlans-broken"

PROFILE = {
    "name": NAME,
    "description": "Per-node VLAN tags on eth1; nodes can not reach server-1",
    "nodes": {
        "server-1": {"cluster": "192.168.200.1", "storage": "192.168.100.1"},
        "server-2": {"cluster": "192.168.200.2", "storage": "192.168.100.2"},
        "agent-1": {"cluster": "192.168.200.3", "storage": "192.168.100.3"},
        "agent-2": {"cluster": "192.168.200.4", "storage": "192.168.100.4"},
    },
    "interfaces": {"trunk": "eth1"},
    "nodeVlanTags": {
        "server-1": {"cluster": 200, "storage": 100},
        "server-2": {"cluster": 201, "storage": 101},
        "agent-1": {"cluster": 202, "storage": 102},
        "agent-2": {"cluster": 203, "storage": 103},
    },
    "serviceEndpoint": "https://192.168.200.1:6443",
    "podNetworkCidr": "10.42.0.0/16",
    "serviceNetworkCidr": "10.43.0.0/16",
}
