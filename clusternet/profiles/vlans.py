# This file is part of clusternet. See LICENSE file for license information.

"""Cluster and storage traffic on two VLANs over a single trunk."""

NAME = "vlans"

CLUSTER_VLAN = 200
STORAGE_VLAN = 100

PROFILE = {
    "name": NAME,
    "description": "802.1Q VLANs %d (cluster) and %d (storage) on eth1"
    % (CLUSTER_VLAN, STORAGE_VLAN),
    "nodes": {
        "server-1": {"cluster": "192.168.200.1", "storage": "192.168.100.1"},
        "server-2": {"cluster": "192.168.200.2", "storage": "192.168.100.2"},
        "agent-1": {"cluster": "192.168.200.3", "storage": "192.168.100.3"},
        "agent-2": {"cluster": "192.168.200.4", "storage": "192.168.100.4"},
    },
    "interfaces": {
        "trunk": "eth1",
        "cluster": "eth1.%d" % CLUSTER_VLAN,
        "storage": "eth1.%d" % STORAGE_VLAN,
    },
    "vlanTags": {"cluster": CLUSTER_VLAN, "storage": STORAGE_VLAN},
    "serviceEndpoint": "https://192.168.200.1:6443",
    "podNetworkCidr": "10.42.0.0/16",
    "serviceNetworkCidr": "10.43.0.0/16",
}
