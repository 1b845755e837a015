"""
Assembly attributes — custom attributes attached to the Assembly row.

Responsibilities:
  - List the assembly-level CustomAttribute rows with their type names.
  - Decode the first fixed constructor argument when it is a string
    (ECMA-335 Partition II, §23.3).
"""
import logging
from typing import List, NamedTuple, Optional

from api_listing.core.errors import MetadataFormatError
from api_listing.core.metadata_loader import MetadataImage
from api_listing.core.signatures import read_compressed_uint

logger = logging.getLogger(__name__)

ATTRIBUTE_PROLOG = b"\x01\x00"
NULL_STRING = 0xFF


class AssemblyAttribute(NamedTuple):
    type_name: Optional[str]
    value: bytes


def assembly_attributes(image: MetadataImage) -> List[AssemblyAttribute]:
    """Custom attributes of the assembly, in CustomAttribute table order."""
    token = image.assembly_token()
    if token is None:
        return []
    return [
        AssemblyAttribute(image.attribute_type_name(row), row.Value)
        for row in image.attributes(token)
    ]


def string_argument(value: bytes) -> Optional[str]:
    """
    First constructor argument of an attribute blob, read as a SerString.

    Returns None for a null string.

    Raises
    ------
    MetadataFormatError
        If the blob lacks the prolog or is truncated.
    """
    if value[:2] != ATTRIBUTE_PROLOG:
        raise MetadataFormatError("custom attribute blob has no prolog")
    if len(value) < 3:
        raise MetadataFormatError("custom attribute blob has no arguments")
    if value[2] == NULL_STRING:
        return None
    length, size = read_compressed_uint(value, 2)
    start = 2 + size
    if start + length > len(value):
        raise MetadataFormatError("custom attribute string argument is truncated")
    return value[start:start + length].decode("utf-8", errors="replace")
