# This file is part of clusternet. See LICENSE file for license information.

"""The VLAN layout riding on an active-backup bond of eth1 and eth2."""

NAME = "bonding-vlans"

CLUSTER_VLAN = 200
STORAGE_VLAN = 100

PROFILE = {
    "name": NAME,
    "description": "Active-backup bond0 (eth1, eth2) carrying VLANs %d and %d"
    % (CLUSTER_VLAN, STORAGE_VLAN),
    "nodes": {
        "server-1": {"cluster": "192.168.200.1", "storage": "192.168.100.1"},
        "server-2": {"cluster": "192.168.200.2", "storage": "192.168.100.2"},
        "agent-1": {"cluster": "192.168.200.3", "storage": "192.168.100.3"},
        "agent-2": {"cluster": "192.168.200.4", "storage": "192.168.100.4"},
    },
    "interfaces": {
        "trunk": "bond0",
        "cluster": "bond0.%d" % CLUSTER_VLAN,
        "storage": "bond0.%d" % STORAGE_VLAN,
        "bondMembers": ["eth1", "eth2"],
    },
    "vlanTags": {"cluster": CLUSTER_VLAN, "storage": STORAGE_VLAN},
    "bondSpec": {
        "mode": "active-backup",
        "primaryMember": "eth1",
        "monitorIntervalMs": 100,
    },
    "serviceEndpoint": "https://192.168.200.1:6443",
    "podNetworkCidr": "10.42.0.0/16",
    "serviceNetworkCidr": "10.43.0.0/16",
}
