# This file is part of clusternet. See LICENSE file for license information.

import pytest

from clusternet import profiles
from clusternet.profiles import (
    bonding_vlans,
    dhcp_simple,
    simple,
    vlans,
    vlans_broken,
)


@pytest.fixture
def catalog():
    return profiles.default_catalog()


@pytest.fixture
def flat(catalog):
    return catalog.get(simple.NAME)


@pytest.fixture
def vlan(catalog):
    return catalog.get(vlans.NAME)


@pytest.fixture
def bonded(catalog):
    return catalog.get(bonding_vlans.NAME)


@pytest.fixture
def dhcp_assigned(catalog):
    return catalog.get(dhcp_simple.NAME)


@pytest.fixture
def broken(catalog):
    return catalog.get(vlans_broken.NAME)


@pytest.fixture(params=[p.NAME for p in profiles.PRESETS])
def any_profile(request, catalog):
    return catalog.get(request.param)
