"""
Schema — Pydantic models for the API listing (the baseline artifact).

One output per assembly:
  api_listing.json — assembly identity + every visible type and member.

Runtime contract fields (present in every output):
  package_name, reader_version, schema_version.

Every descriptor exposes a computed ``id``: the canonical identity string
that is the sole comparison key between two listings.  Models are frozen;
a listing is built once and never updated.
"""
from enum import Enum, unique
from typing import Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, computed_field

from api_listing import PACKAGE_NAME, READER_VERSION, SCHEMA_VERSION


# ── Enumerations ─────────────────────────────────────────────────────────────

@unique
class TypeKind(str, Enum):
    CLASS = "class"
    INTERFACE = "interface"
    STRUCT = "struct"
    ENUM = "enum"


@unique
class MemberKind(str, Enum):
    CONSTRUCTOR = "constructor"
    METHOD = "method"
    FIELD = "field"


@unique
class Visibility(str, Enum):
    PUBLIC = "public"
    PROTECTED = "protected"


@unique
class ParameterDirection(str, Enum):
    IN = "in"
    OUT = "out"
    REF = "ref"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ── Generic parameters ───────────────────────────────────────────────────────

class GenericParameterDescriptor(_Frozen):
    """One generic parameter and its constraints."""

    parameter_name: str
    parameter_position: int
    base_type_or_interfaces: Tuple[str, ...] = ()
    new_constraint: bool = False
    class_constraint: bool = False
    struct_constraint: bool = False

    @property
    def has_constraints(self) -> bool:
        return bool(
            self.base_type_or_interfaces
            or self.new_constraint
            or self.class_constraint
            or self.struct_constraint
        )

    def constraint_clause(self) -> str:
        """``where T : class, Base, new()`` or empty when unconstrained."""
        if not self.has_constraints:
            return ""
        parts = []
        if self.class_constraint:
            parts.append("class")
        if self.struct_constraint:
            parts.append("struct")
        parts.extend(self.base_type_or_interfaces)
        if self.new_constraint and not self.struct_constraint:
            parts.append("new()")
        return f"where {self.parameter_name} : {', '.join(parts)}"


def where_clauses(parameters: Sequence[GenericParameterDescriptor]) -> str:
    """Space-prefixed where clauses for every constrained parameter, in position order."""
    clauses = [p.constraint_clause() for p in sorted(parameters, key=lambda p: p.parameter_position)]
    return "".join(f" {c}" for c in clauses if c)


# ── Members ──────────────────────────────────────────────────────────────────

class ParameterDescriptor(_Frozen):
    name: str
    type: str
    direction: ParameterDirection = ParameterDirection.IN
    default_value: Optional[str] = None
    is_params: bool = False

    def render(self, this_prefix: bool = False) -> str:
        text = ""
        if this_prefix:
            text += "this "
        if self.is_params:
            text += "params "
        if self.direction != ParameterDirection.IN:
            text += f"{self.direction.value} "
        text += f"{self.type} {self.name}"
        if self.default_value is not None:
            text += f" = {self.default_value}"
        return text


class MemberDescriptor(_Frozen):
    """One constructor, method or field of a visible type."""

    kind: MemberKind
    name: str
    visibility: Optional[Visibility] = None

    static: bool = False
    sealed: bool = False
    virtual: bool = False
    override: bool = False
    abstract: bool = False
    new: bool = False
    extension: bool = False
    constant: bool = False
    read_only: bool = False

    return_type: Optional[str] = None
    parameters: Tuple[ParameterDescriptor, ...] = ()
    explicit_interface: Optional[str] = None
    implemented_interface: Optional[str] = None
    generic_parameters: Tuple[GenericParameterDescriptor, ...] = ()
    literal: Optional[str] = None

    @computed_field
    @property
    def id(self) -> str:
        if self.kind == MemberKind.FIELD:
            return self._field_id()
        return self._method_id()

    def _method_id(self) -> str:
        parts = []
        if self.visibility is not None:
            parts.append(self.visibility.value)
        if self.static:
            parts.append("static")
        if self.abstract:
            parts.append("abstract")
            if self.override:
                parts.append("override")
        elif self.override:
            if self.sealed:
                parts.append("sealed")
            parts.append("override")
        elif self.virtual:
            parts.append("virtual")
        if self.new:
            parts.append("new")
        if self.return_type is not None:
            parts.append(self.return_type)
        parts.append(self.name)
        return " ".join(parts) + where_clauses(self.generic_parameters)

    def _field_id(self) -> str:
        if self.return_type is None:
            # enumeration value
            return f"{self.name} = {self.literal}"
        parts = []
        if self.visibility is not None:
            parts.append(self.visibility.value)
        if self.constant:
            parts.append("const")
        elif self.static:
            parts.append("static")
        if self.read_only:
            parts.append("readonly")
        parts.append(self.return_type)
        parts.append(self.name)
        text = " ".join(parts)
        if self.literal is not None:
            text += f" = {self.literal}"
        return text


def method_name(name: str, generic_names: Sequence[str], parameters: Sequence[ParameterDescriptor], extension: bool = False) -> str:
    """``Name<T, U>(this System.String s, out System.Int32 n = 0)``."""
    if generic_names:
        name = f"{name}<{', '.join(generic_names)}>"
    rendered = [p.render(this_prefix=extension and i == 0) for i, p in enumerate(parameters)]
    return f"{name}({', '.join(rendered)})"


# ── Types ────────────────────────────────────────────────────────────────────

class TypeDescriptor(_Frozen):
    """One publicly visible type."""

    name: str
    kind: TypeKind
    visibility: Visibility

    static: bool = False
    abstract: bool = False
    sealed: bool = False

    base_type: Optional[str] = None
    implemented_interfaces: Tuple[str, ...] = ()
    generic_parameters: Tuple[GenericParameterDescriptor, ...] = ()
    members: Tuple[MemberDescriptor, ...] = ()

    @computed_field
    @property
    def id(self) -> str:
        parts = [self.visibility.value]
        if self.static:
            parts.append("static")
        elif self.abstract:
            parts.append("abstract")
        elif self.sealed:
            parts.append("sealed")
        parts.append(self.kind.value)
        parts.append(self.name)
        text = " ".join(parts)

        supertypes = ([self.base_type] if self.base_type else []) + list(self.implemented_interfaces)
        if supertypes:
            text += " : " + ", ".join(supertypes)
        return text + where_clauses(self.generic_parameters)

    @property
    def namespace(self) -> str:
        outer = self.name.split("<", 1)[0].split("+", 1)[0]
        return outer.rpartition(".")[0]

    def find_member(self, member_id: str) -> Optional[MemberDescriptor]:
        for member in self.members:
            if member.id == member_id:
                return member
        return None


# ── Listing ──────────────────────────────────────────────────────────────────

class ApiListing(_Frozen):
    """Top-level artifact — api_listing.json."""

    package_name: str = PACKAGE_NAME
    reader_version: str = READER_VERSION
    schema_version: str = SCHEMA_VERSION

    assembly_identity: str
    types: Tuple[TypeDescriptor, ...] = ()

    def find_type(self, type_id: str) -> Optional[TypeDescriptor]:
        for type_descriptor in self.types:
            if type_descriptor.id == type_id:
                return type_descriptor
        return None
