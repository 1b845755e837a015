"""
Errors raised while reading an assembly.

All three derive from ValueError so callers that only care about "this
input could not be turned into a listing" can catch one type.
"""


class NotAnAssemblyError(ValueError):
    """The file is a valid PE image (or not even that) without a CLI header."""


class MetadataFormatError(ValueError):
    """The metadata root, a stream or a table is truncated or malformed."""


class UnsupportedMetadataError(ValueError):
    """
    A metadata shape the reader does not know how to describe.

    Signals either a malformed binary or a reader defect; never a normal
    runtime condition, never retried.
    """
