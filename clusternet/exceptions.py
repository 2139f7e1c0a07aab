# This file is part of clusternet. See LICENSE file for license information.


class ClusterNetError(Exception):
    pass


class TopologyError(ClusterNetError):
    """A topology cannot be rendered as described."""


class IncompleteTopology(TopologyError):
    """A field implied by the topology mode is missing or malformed."""


class UnknownNode(IncompleteTopology):
    def __init__(self, node, known=()):
        self.node = node
        self.known = tuple(sorted(known))
        super().__init__(
            "Unknown node '%s' (known nodes: %s)"
            % (node, ", ".join(self.known) or "none")
        )


class UnknownRole(IncompleteTopology):
    def __init__(self, role, where="topology"):
        self.role = role
        self.where = where
        super().__init__("Unknown role '%s' in %s" % (role, where))


class FragmentConflict(ClusterNetError):
    def __init__(self, kind, name):
        self.kind = kind
        self.name = name
        super().__init__(
            "Conflicting %s definitions for '%s'" % (kind, name)
        )


class ProfileNotFoundError(ClusterNetError):
    pass


class EquivalenceError(ClusterNetError):
    """Raised when the two renderers disagree about a node."""

    def __init__(self, node, differences):
        self.node = node
        self.differences = list(differences)
        super().__init__(
            "Renderers disagree for node '%s': %s"
            % (node, "; ".join(self.differences))
        )


class SchemaValidationError(ClusterNetError, ValueError):
    """Raised when validating a profile document against the schema."""

    def __init__(self, schema_errors=None):
        """Init the exception with an n-tuple of schema errors.

        @param schema_errors: An n-tuple of the format:
            ((flat.config.key, msg),)
        """
        self.schema_errors = sorted(set(schema_errors or ()))
        message = "Profile schema errors: " + ", ".join(
            "%s: %s" % (path, msg) for path, msg in self.schema_errors
        )
        super().__init__(message)
