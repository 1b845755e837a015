"""
Type index — enumerate visible TypeDefs and build their descriptors.

Responsibilities:
  - Walk the TypeDef table in declaration order and keep public types
    and visible nested types whose enclosing chain is visible.
  - Classify each type (class / interface / struct / enum).
  - Compute modifiers, base type, directly implemented interfaces and
    generic parameter constraints.
  - Assemble the ApiListing, delegating members to member_index.

Descriptors are built member-less first so exclusion filters can drop a
type before its members are read.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

from api_listing.core.errors import UnsupportedMetadataError
from api_listing.core.interface_map import InterfaceMap
from api_listing.core.member_index import build_members, generic_parameter_descriptors
from api_listing.core.metadata_loader import MetadataImage
from api_listing.core.metadata_tables import TableId
from api_listing.core.signatures import substitute
from api_listing.core.type_names import GenericScope, format_type, join_names
from api_listing.io.schema import (
    ApiListing,
    TypeDescriptor,
    TypeKind,
    Visibility,
)
from api_listing.policy.filters import ApiFilter
from api_listing.policy.visibility import chain_visibility

logger = logging.getLogger(__name__)

SYSTEM_OBJECT = "System.Object"
SYSTEM_VALUE_TYPE = "System.ValueType"
SYSTEM_ENUM = "System.Enum"
SYSTEM_INT32 = "System.Int32"

ENUM_STORAGE_FIELD = "value__"


@dataclass(frozen=True)
class TypeCandidate:
    """A visible TypeDef row, before descriptor construction."""

    rid: int
    visibility: Visibility


def iter_visible_types(image: MetadataImage) -> Iterator[TypeCandidate]:
    """Yield visible TypeDefs in declaration order."""
    for row in image.tables.rows(TableId.TypeDef):
        chain = image.nesting_chain(row.rid)
        visibility = chain_visibility(image.type_def(r).Flags for r in chain)
        if visibility is None:
            continue
        yield TypeCandidate(rid=row.rid, visibility=visibility)


def type_kind(image: MetadataImage, rid: int) -> TypeKind:
    row = image.type_def(rid)
    if row.Flags.tdInterface:
        return TypeKind.INTERFACE

    own_name = join_names(row.TypeNamespace, [row.TypeName])
    base = image.extends_name(rid)
    if base == SYSTEM_ENUM:
        return TypeKind.ENUM
    if base == SYSTEM_VALUE_TYPE and own_name != SYSTEM_ENUM:
        return TypeKind.STRUCT
    if base is None and own_name != SYSTEM_OBJECT:
        raise UnsupportedMetadataError(f"Can't determine kind of type {own_name}")
    return TypeKind.CLASS


def enum_underlying_type(image: MetadataImage, rid: int) -> str:
    for field_rid in image.fields(rid):
        row = image.tables.row(TableId.Field, field_rid)
        if row.Name == ENUM_STORAGE_FIELD:
            return format_type(image.field_sig(field_rid))
    raise UnsupportedMetadataError(f"enum {image.definition_name(rid)} has no storage field")


def _base_type(image: MetadataImage, rid: int, kind: TypeKind, scope: GenericScope) -> Optional[str]:
    if kind == TypeKind.ENUM:
        underlying = enum_underlying_type(image, rid)
        return None if underlying == SYSTEM_INT32 else underlying
    extends = image.type_def(rid).Extends
    if extends.is_null:
        return None
    base = format_type(image.resolve_type(extends), scope)
    if base in (SYSTEM_OBJECT, SYSTEM_VALUE_TYPE):
        return None
    return base


def _implemented_interfaces(image: MetadataImage, imap: InterfaceMap, rid: int, scope: GenericScope) -> tuple:
    """Own interfaces minus those an in-assembly base already implements, sorted."""
    inherited = set()
    for base_rid, base_args in image.base_chain(rid):
        for sig in imap.interface_sigs(base_rid):
            inherited.add(format_type(substitute(sig, base_args), scope))

    own = set(imap.interface_names(rid))
    return tuple(sorted(own - inherited))


def build_type(
    image: MetadataImage,
    imap: InterfaceMap,
    candidate: TypeCandidate,
) -> TypeDescriptor:
    """Build the member-less descriptor of one visible type."""
    rid = candidate.rid
    row = image.type_def(rid)
    kind = type_kind(image, rid)
    scope = image.type_scope(rid)

    is_class = kind == TypeKind.CLASS
    abstract = is_class and row.Flags.tdAbstract
    sealed = is_class and row.Flags.tdSealed

    return TypeDescriptor(
        name=image.definition_name(rid),
        kind=kind,
        visibility=candidate.visibility,
        static=abstract and sealed,
        abstract=abstract,
        sealed=sealed,
        base_type=_base_type(image, rid, kind, scope),
        implemented_interfaces=_implemented_interfaces(image, imap, rid, scope),
        generic_parameters=generic_parameter_descriptors(image, image.type_generic_params(rid), scope),
    )


def build_listing(image: MetadataImage, filters: Iterable[ApiFilter] = ()) -> ApiListing:
    """
    Build the ApiListing of *image*.

    Types (and members) matching any filter are dropped.

    Raises
    ------
    UnsupportedMetadataError
        On a metadata shape the reader cannot describe.
    """
    filters = list(filters)
    imap = InterfaceMap(image)
    types: List[TypeDescriptor] = []

    for candidate in iter_visible_types(image):
        descriptor = build_type(image, imap, candidate)
        if any(f(descriptor) for f in filters):
            logger.debug("type %s excluded by filter", descriptor.name)
            continue
        members = build_members(image, imap, candidate.rid, descriptor, filters)
        types.append(descriptor.model_copy(update={"members": members}))

    return ApiListing(assembly_identity=image.assembly_identity(), types=tuple(types))
