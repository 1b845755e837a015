"""
Member index — build MemberDescriptors for one visible type.

Responsibilities:
  - Methods and constructors in MethodDef order, then fields in Field
    order; property, event and nested-type rows are never visited (their
    accessors and nested TypeDefs are covered elsewhere).
  - Gate on public / family / family-or-assembly access.
  - Derive modifiers, interface implementation, ``new`` hiding,
    extension marker, parameters with direction / default / params.
  - Enum types keep only their literal fields, without visibility.
"""
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from api_listing.core.interface_map import InterfaceMap
from api_listing.core.literals import format_literal
from api_listing.core.metadata_loader import MetadataImage
from api_listing.core.metadata_tables import CodedIndex, TableId
from api_listing.core.signatures import (
    ElementType,
    MethodSig,
    NamedTypeSig,
    PrimitiveSig,
    substitute_method,
)
from api_listing.core.type_names import GenericScope, format_type, method_signature_key, unwrap_by_ref
from api_listing.io.schema import (
    GenericParameterDescriptor,
    MemberDescriptor,
    MemberKind,
    ParameterDescriptor,
    ParameterDirection,
    TypeDescriptor,
    TypeKind,
    method_name,
)
from api_listing.policy.filters import ApiFilter
from api_listing.policy.visibility import member_visibility

logger = logging.getLogger(__name__)

CONSTRUCTOR_NAME = ".ctor"
EXTENSION_ATTRIBUTE = "System.Runtime.CompilerServices.ExtensionAttribute"
PARAM_ARRAY_ATTRIBUTE = "System.ParamArrayAttribute"

# Constraint types that carry no information beyond the flags.
IMPLICIT_CONSTRAINTS = frozenset({"System.Object", "System.ValueType"})


def _instance_method(return_type, *params) -> MethodSig:
    return MethodSig(has_this=True, generic_count=0, return_type=return_type, params=params)


# Visible System.Object methods every class and struct inherits, as
# (name, signature key).  Consulted when the base chain leaves the assembly.
OBJECT_METHODS = frozenset({
    ("Equals", method_signature_key(_instance_method(
        PrimitiveSig(ElementType.BOOLEAN), PrimitiveSig(ElementType.OBJECT),
    ))),
    ("GetHashCode", method_signature_key(_instance_method(PrimitiveSig(ElementType.I4)))),
    ("ToString", method_signature_key(_instance_method(PrimitiveSig(ElementType.STRING)))),
    ("GetType", method_signature_key(_instance_method(NamedTypeSig("System", ("Type",))))),
})


# ── Generic parameters ───────────────────────────────────────────────────────

def generic_parameter_descriptors(
    image: MetadataImage,
    params: Sequence[tuple],
    scope: GenericScope,
) -> tuple:
    """Descriptors for GenericParam rows (already sorted by position)."""
    result = []
    for param in params:
        constraints = [format_type(c, scope) for c in image.constraints(param.rid)]
        result.append(
            GenericParameterDescriptor(
                parameter_name=param.Name,
                parameter_position=param.Number,
                base_type_or_interfaces=tuple(c for c in constraints if c not in IMPLICIT_CONSTRAINTS),
                new_constraint=param.Flags.gpDefaultConstructorConstraint,
                class_constraint=param.Flags.gpReferenceTypeConstraint,
                struct_constraint=param.Flags.gpNotNullableValueTypeConstraint,
            )
        )
    return tuple(result)


# ── Parameters ───────────────────────────────────────────────────────────────

def build_parameters(
    image: MetadataImage,
    method_rid: int,
    sig: MethodSig,
    scope: GenericScope,
) -> tuple:
    rows: Dict[int, tuple] = {p.Sequence: p for p in image.params(method_rid)}
    result = []
    for position, param_sig in enumerate(sig.params, start=1):
        row = rows.get(position)
        element, by_ref = unwrap_by_ref(param_sig)
        if by_ref and row is not None and row.Flags.pdOut:
            direction = ParameterDirection.OUT
        elif by_ref:
            direction = ParameterDirection.REF
        else:
            direction = ParameterDirection.IN

        default_value = None
        is_params = False
        if row is not None:
            token = CodedIndex(TableId.Param, row.rid)
            if row.Flags.pdHasDefault:
                constant = image.constant(token)
                if constant is not None:
                    default_value = format_literal(constant.Type, constant.Value, element, scope)
            is_params = image.has_attribute(token, PARAM_ARRAY_ATTRIBUTE)

        result.append(
            ParameterDescriptor(
                name=row.Name if row is not None else "",
                type=format_type(element, scope),
                direction=direction,
                default_value=default_value,
                is_params=is_params,
            )
        )
    return tuple(result)


# ── Hiding ───────────────────────────────────────────────────────────────────

def hides_base_method(image: MetadataImage, type_rid: int, method_rid: int) -> bool:
    """
    True when a base type declares a visible method with the same name and
    signature as *method_rid*.

    In-assembly bases are searched member by member.  Bases defined in
    other assemblies are not in the image; of their members only the
    System.Object methods in OBJECT_METHODS are known.
    """
    row = image.tables.row(TableId.MethodDef, method_rid)
    key = method_signature_key(image.method_sig(method_rid))
    for base_rid, base_args in image.base_chain(type_rid):
        for candidate in image.methods(base_rid):
            base_row = image.tables.row(TableId.MethodDef, candidate)
            if base_row.Name != row.Name or member_visibility(base_row.Flags) is None:
                continue
            base_sig = substitute_method(image.method_sig(candidate), base_args)
            if method_signature_key(base_sig) == key:
                return True
    # interfaces and System.Object itself have no base
    if image.type_def(type_rid).Extends.is_null:
        return False
    return (row.Name, key) in OBJECT_METHODS


# ── Methods ──────────────────────────────────────────────────────────────────

def build_method(
    image: MetadataImage,
    imap: InterfaceMap,
    type_rid: int,
    owner: TypeDescriptor,
    method_rid: int,
) -> Optional[MemberDescriptor]:
    """Descriptor of one MethodDef, or None when it is not visible."""
    row = image.tables.row(TableId.MethodDef, method_rid)
    visibility = member_visibility(row.Flags)
    if visibility is None:
        return None

    flags = row.Flags
    in_interface = owner.kind == TypeKind.INTERFACE
    sig = image.method_sig(method_rid)
    scope = image.method_scope(method_rid)
    is_constructor = row.Name == CONSTRUCTOR_NAME

    generic_rows = image.method_generic_params(method_rid)
    extension = image.has_attribute(CodedIndex(TableId.MethodDef, method_rid), EXTENSION_ATTRIBUTE)
    parameters = build_parameters(image, method_rid, sig, scope)
    name = method_name(row.Name, [g.Name for g in generic_rows], parameters, extension)

    if is_constructor:
        return MemberDescriptor(
            kind=MemberKind.CONSTRUCTOR,
            name=name,
            visibility=visibility,
            parameters=parameters,
        )

    is_virtual = flags.mdVirtual
    is_final = flags.mdFinal
    new_slot = flags.mdNewSlot
    is_abstract = flags.mdAbstract

    virtual = override = sealed = abstract = False
    implemented_interface = None
    if not in_interface:
        virtual = is_virtual and not (is_final and new_slot)
        override = is_virtual and not new_slot
        sealed = is_final and override
        abstract = is_abstract
        # Explicit implementations are private and stop at the visibility
        # gate above, so a listed method only ever implements implicitly.
        implemented_interface = imap.implemented_interface(type_rid, method_rid)

    new = (
        not is_abstract
        and not is_virtual
        and flags.mdHideBySig
        and hides_base_method(image, type_rid, method_rid)
    )

    return MemberDescriptor(
        kind=MemberKind.METHOD,
        name=name,
        visibility=None if in_interface else visibility,
        static=flags.mdStatic,
        sealed=sealed,
        virtual=virtual,
        override=override,
        abstract=abstract,
        new=new,
        extension=extension,
        return_type=format_type(sig.return_type, scope),
        parameters=parameters,
        implemented_interface=implemented_interface,
        generic_parameters=generic_parameter_descriptors(image, generic_rows, scope),
    )


# ── Fields ───────────────────────────────────────────────────────────────────

def build_field(
    image: MetadataImage,
    type_rid: int,
    owner: TypeDescriptor,
    field_rid: int,
) -> Optional[MemberDescriptor]:
    """Descriptor of one Field row, or None when it is not part of the surface."""
    row = image.tables.row(TableId.Field, field_rid)
    visibility = member_visibility(row.Flags)
    if visibility is None:
        return None

    is_enum = owner.kind == TypeKind.ENUM
    is_literal = row.Flags.fdLiteral
    if is_enum and not is_literal:
        # enum storage field
        return None

    scope = image.type_scope(type_rid)
    field_sig = image.field_sig(field_rid)

    literal = None
    if is_enum or is_literal:
        constant = image.constant(CodedIndex(TableId.Field, field_rid))
        if constant is not None:
            literal = format_literal(constant.Type, constant.Value, field_sig, scope)

    if is_enum:
        return MemberDescriptor(kind=MemberKind.FIELD, name=row.Name, literal=literal)

    return MemberDescriptor(
        kind=MemberKind.FIELD,
        name=row.Name,
        visibility=visibility,
        constant=is_literal,
        static=row.Flags.fdStatic,
        read_only=row.Flags.fdInitOnly,
        return_type=format_type(field_sig, scope),
        literal=literal,
    )


def build_members(
    image: MetadataImage,
    imap: InterfaceMap,
    type_rid: int,
    owner: TypeDescriptor,
    filters: Iterable[ApiFilter] = (),
) -> tuple:
    """All visible members of one type in declaration order (methods, then fields)."""
    filters = list(filters)
    members: List[MemberDescriptor] = []

    candidates: Sequence = [
        *(build_method(image, imap, type_rid, owner, m) for m in image.methods(type_rid)),
        *(build_field(image, type_rid, owner, f) for f in image.fields(type_rid)),
    ]
    for member in candidates:
        if member is None:
            continue
        if any(f(member) for f in filters):
            logger.debug("member %s.%s excluded by filter", owner.name, member.name)
            continue
        members.append(member)

    return tuple(members)
