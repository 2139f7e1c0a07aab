# This file is part of clusternet. See LICENSE file for license information.

__VERSION__ = "0.4.0"
_PACKAGED_VERSION = "@@PACKAGED_VERSION@@"

FEATURES = [
    # renders systemd-networkd unit files
    "NETWORKD_UNIT_FILES",
    # renders declarative device/binding fragments
    "DECLARATIVE_FRAGMENTS",
    # per-node VLAN tags for the negative test profile
    "NEGATIVE_VLAN_PROFILE",
]


def version_string():
    """Extract a version string from clusternet."""
    if not _PACKAGED_VERSION.startswith("@@"):
        return _PACKAGED_VERSION
    return __VERSION__
