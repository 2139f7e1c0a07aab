# This file is part of clusternet. See LICENSE file for license information.

"""Named network profiles.

A profile is plain data: the camelCase document that
:func:`clusternet.net.topology.from_config` turns into a Topology. The
catalog stores documents, never Topology objects, so every lookup hands
out a freshly validated value.
"""

import copy
import logging
import os
from typing import List

from clusternet import schema, util
from clusternet.exceptions import ClusterNetError, ProfileNotFoundError
from clusternet.net import topology
from clusternet.profiles import (
    bonding_vlans,
    dhcp_simple,
    simple,
    vlans,
    vlans_broken,
)

LOG = logging.getLogger(__name__)

PRESETS = (simple, vlans, bonding_vlans, dhcp_simple, vlans_broken)

JSON_EXTENSIONS = (".json",)


class Catalog:
    """Profile documents by name."""

    def __init__(self):
        self._items = {}

    def register(self, name, document):
        """Validate and register a profile document under ``name``.

        :raises ValueError: when ``name`` is already registered.
        :raises SchemaValidationError: when ``document`` is malformed.
        """
        if name in self._items:
            raise ValueError("Profile already registered with name %s" % name)
        schema.validate_profile(document)
        self._items[name] = copy.deepcopy(document)

    def document(self, name):
        try:
            return copy.deepcopy(self._items[name])
        except KeyError:
            raise ProfileNotFoundError(
                "Unknown profile '%s'. Available profiles: %s"
                % (name, ", ".join(self.names()) or "none")
            ) from None

    def get(self, name) -> topology.Topology:
        return topology.from_config(self.document(name))

    def names(self) -> List[str]:
        return sorted(self._items)

    def __contains__(self, name):
        return name in self._items


def load_profile_file(path):
    """Read and validate a YAML or JSON profile document from ``path``."""
    content = util.load_text_file(path)
    if os.path.splitext(path)[1].lower() in JSON_EXTENSIONS:
        try:
            document = util.load_json(content)
        except (ValueError, TypeError) as e:
            raise ClusterNetError(
                "Failed loading profile %s: %s" % (path, e)
            ) from e
    else:
        document = util.load_yaml(content, default=None)
        if document is None:
            raise ClusterNetError(
                "Failed loading profile %s: not a YAML mapping" % path
            )
    schema.validate_profile(document)
    return document


def _profile_name(path, document):
    return document.get("name") or os.path.splitext(os.path.basename(path))[0]


def register_profile_file(catalog: Catalog, path) -> str:
    document = load_profile_file(path)
    name = _profile_name(path, document)
    catalog.register(name, document)
    LOG.debug("Registered profile %s from %s", name, path)
    return name


def default_catalog(cfg=None) -> Catalog:
    """Return the built-in presets plus any configured ``profile_paths``."""
    catalog = Catalog()
    for preset in PRESETS:
        catalog.register(preset.NAME, preset.PROFILE)
    for path in (cfg or {}).get("profile_paths") or []:
        register_profile_file(catalog, path)
    return catalog
