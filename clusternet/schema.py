# This file is part of clusternet. See LICENSE file for license information.
"""schema.py: Validate profile documents against a JSON schema."""

import logging
import re
from typing import List, Tuple

from jsonschema import Draft4Validator, FormatChecker

from clusternet.exceptions import SchemaValidationError
from clusternet.net.topology import BOND_MODES

LOG = logging.getLogger(__name__)

_MAC_PATTERN = "^([0-9a-fA-F]{2}:){5}[0-9a-fA-F]{2}$"

_IPV4 = {"type": "string", "format": "ipv4"}
_VLAN_TAG = {"type": "integer", "minimum": 1, "maximum": 4094}
_MILLISECONDS = {"type": "integer", "minimum": 0}

PROFILE_SCHEMA = {
    "$schema": "http://json-schema.org/draft-04/schema#",
    "title": "clusternet network profile",
    "type": "object",
    "required": ["nodes", "interfaces"],
    "additionalProperties": False,
    "properties": {
        "name": {"type": "string"},
        "description": {"type": "string"},
        "nodes": {
            "type": "object",
            "minProperties": 1,
            "additionalProperties": {
                "type": "object",
                "minProperties": 1,
                "additionalProperties": _IPV4,
            },
        },
        "interfaces": {
            "type": "object",
            "properties": {
                "trunk": {"type": "string"},
                "bondMembers": {
                    "type": "array",
                    "items": {"type": "string"},
                    "minItems": 1,
                    "uniqueItems": True,
                },
            },
            "additionalProperties": {"type": "string"},
        },
        "vlanTags": {
            "type": "object",
            "additionalProperties": _VLAN_TAG,
        },
        "nodeVlanTags": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "additionalProperties": _VLAN_TAG,
            },
        },
        "bondSpec": {
            "type": "object",
            "required": ["mode"],
            "additionalProperties": False,
            "properties": {
                "mode": {"enum": list(BOND_MODES)},
                "monitorIntervalMs": _MILLISECONDS,
                "primaryMember": {"type": "string"},
                "upDelayMs": _MILLISECONDS,
                "downDelayMs": _MILLISECONDS,
            },
        },
        "dhcp": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "server": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "mac": {"type": "string", "pattern": _MAC_PATTERN},
                        "ip": _IPV4,
                        "subnet": {"type": "string"},
                        "rangeStart": _IPV4,
                        "rangeEnd": _IPV4,
                        "leaseTime": {"type": "string"},
                    },
                },
                "reservations": {
                    "type": "object",
                    "additionalProperties": {
                        "type": "object",
                        "required": ["mac"],
                        "additionalProperties": False,
                        "properties": {
                            "mac": {
                                "type": "string",
                                "pattern": _MAC_PATTERN,
                            },
                            "ip": _IPV4,
                        },
                    },
                },
            },
        },
        "serviceEndpoint": {"type": "string"},
        "podNetworkCidr": {"type": "string"},
        "serviceNetworkCidr": {"type": "string"},
        "prefixLength": {"type": "integer", "minimum": 1, "maximum": 32},
    },
}


def schema_problems(document, schema=None) -> List[Tuple[str, str]]:
    """Return (path, message) for every way ``document`` violates schema."""
    if schema is None:
        schema = PROFILE_SCHEMA
    validator = Draft4Validator(schema, format_checker=FormatChecker())
    errors = []
    for schema_error in sorted(
        validator.iter_errors(document), key=lambda e: list(e.path)
    ):
        path = ".".join([str(p) for p in schema_error.path])
        if (
            not path
            and schema_error.validator == "additionalProperties"
            and schema_error.schema == schema
        ):
            # an issue with invalid top-level property
            prop_match = re.match(
                r".*\('(?P<name>.*)' was unexpected\)", schema_error.message
            )
            if prop_match:
                path = prop_match["name"]
        errors.append((path, schema_error.message))
    return errors


def validate_profile(document, schema=None, strict=True) -> bool:
    """Validate a profile document.

    @param document: Dict loaded from a YAML or JSON profile.
    @param schema: Optional schema to use instead of PROFILE_SCHEMA.
    @param strict: Boolean, when True raise SchemaValidationError instead
       of logging a warning.

    @returns: True when the document is valid.
    @raises: SchemaValidationError when strict and the document is invalid.
    """
    errors = schema_problems(document, schema)
    if not errors:
        return True
    if strict:
        raise SchemaValidationError(errors)
    LOG.warning(
        "Invalid profile document: %s",
        ", ".join("%s: %s" % (path, msg) for path, msg in errors),
    )
    return False
