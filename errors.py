class ForestFormatError(ValueError):
    """Base class for invalid or unsupported flat forest data."""


class UnsupportedVersion(ForestFormatError):
    pass


class SchemaMismatch(ForestFormatError):
    pass


class MalformedTag(ForestFormatError):
    pass


class UnexpectedLeafTags(ForestFormatError):
    pass


class UnsupportedNodeType(ForestFormatError):
    pass


class MalformedTopology(ForestFormatError):
    """Offsets in a topology array point outside the arrays or backwards."""
