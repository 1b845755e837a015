"""
Signature decoder — turn ECMA-335 signature blobs into type trees.

Responsibilities:
  - Decode field, method and type-spec signatures (Partition II, §23.2).
  - Resolve TypeDefOrRef tokens through a caller-supplied resolver so the
    resulting trees are self-contained and comparable.
  - Substitute generic type arguments into a tree (interface mapping).

Custom modifiers and the pinned marker are consumed and dropped; they are
not part of a member's public identity.
"""
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Callable, Sequence, Tuple

from dnfile.utils import read_compressed_int

from api_listing.core.errors import MetadataFormatError, UnsupportedMetadataError
from api_listing.core.metadata_tables import CodedIndex, TableId


class ElementType(IntEnum):
    END = 0x00
    VOID = 0x01
    BOOLEAN = 0x02
    CHAR = 0x03
    I1 = 0x04
    U1 = 0x05
    I2 = 0x06
    U2 = 0x07
    I4 = 0x08
    U4 = 0x09
    I8 = 0x0A
    U8 = 0x0B
    R4 = 0x0C
    R8 = 0x0D
    STRING = 0x0E
    PTR = 0x0F
    BYREF = 0x10
    VALUETYPE = 0x11
    CLASS = 0x12
    VAR = 0x13
    ARRAY = 0x14
    GENERICINST = 0x15
    TYPEDBYREF = 0x16
    I = 0x18
    U = 0x19
    FNPTR = 0x1B
    OBJECT = 0x1C
    SZARRAY = 0x1D
    MVAR = 0x1E
    CMOD_REQD = 0x1F
    CMOD_OPT = 0x20
    SENTINEL = 0x41
    PINNED = 0x45


PRIMITIVE_NAMES = {
    ElementType.VOID: "System.Void",
    ElementType.BOOLEAN: "System.Boolean",
    ElementType.CHAR: "System.Char",
    ElementType.I1: "System.SByte",
    ElementType.U1: "System.Byte",
    ElementType.I2: "System.Int16",
    ElementType.U2: "System.UInt16",
    ElementType.I4: "System.Int32",
    ElementType.U4: "System.UInt32",
    ElementType.I8: "System.Int64",
    ElementType.U8: "System.UInt64",
    ElementType.R4: "System.Single",
    ElementType.R8: "System.Double",
    ElementType.STRING: "System.String",
    ElementType.TYPEDBYREF: "System.TypedReference",
    ElementType.I: "System.IntPtr",
    ElementType.U: "System.UIntPtr",
    ElementType.OBJECT: "System.Object",
}

_REFERENCE_PRIMITIVES = {ElementType.VOID, ElementType.STRING, ElementType.OBJECT}

# Calling-convention byte
SIG_GENERIC = 0x10
SIG_HASTHIS = 0x20
SIG_EXPLICITTHIS = 0x40
SIG_FIELD = 0x06
SIG_PROPERTY = 0x08

_MAX_DEPTH = 64


def read_compressed_uint(data: bytes, pos: int) -> Tuple[int, int]:
    """
    Read an ECMA-335 compressed unsigned integer at *pos*.

    Returns (value, size in bytes).

    Raises
    ------
    MetadataFormatError
        If the leading byte is invalid or the encoding runs past *data*.
    """
    decoded = read_compressed_int(data[pos:pos + 4])
    if decoded is None:
        raise MetadataFormatError(f"invalid or truncated compressed integer at offset {pos}")
    return decoded


# ── Signature tree ────────────────────────────────────────────────────────

class TypeSig:
    """Base class of every signature tree node."""

    value_type = False


@dataclass(frozen=True)
class PrimitiveSig(TypeSig):
    element: ElementType

    @property
    def value_type(self) -> bool:
        return self.element not in _REFERENCE_PRIMITIVES


@dataclass(frozen=True)
class NamedTypeSig(TypeSig):
    """A TypeDef or TypeRef; *names* runs outermost-first for nested types."""

    namespace: str
    names: Tuple[str, ...]
    value_type: bool = field(default=False, compare=False)


@dataclass(frozen=True)
class GenericInstSig(TypeSig):
    generic_type: NamedTypeSig
    arguments: Tuple[TypeSig, ...]

    @property
    def value_type(self) -> bool:
        return self.generic_type.value_type


@dataclass(frozen=True)
class GenericParamSig(TypeSig):
    position: int
    method: bool = False


@dataclass(frozen=True)
class ArraySig(TypeSig):
    element: TypeSig
    rank: int = 1


@dataclass(frozen=True)
class PointerSig(TypeSig):
    element: TypeSig


@dataclass(frozen=True)
class ByRefSig(TypeSig):
    element: TypeSig


@dataclass(frozen=True)
class MethodSig:
    has_this: bool
    generic_count: int
    return_type: TypeSig
    params: Tuple[TypeSig, ...]


@dataclass(frozen=True)
class FunctionPointerSig(TypeSig):
    method: MethodSig


TypeResolver = Callable[[CodedIndex], TypeSig]


# ── Decoder ───────────────────────────────────────────────────────────────

class _Reader:
    def __init__(self, blob: bytes):
        self.blob = blob
        self.pos = 0

    def byte(self) -> int:
        if self.pos >= len(self.blob):
            raise MetadataFormatError("signature blob is truncated")
        value = self.blob[self.pos]
        self.pos += 1
        return value

    def peek(self) -> int:
        if self.pos >= len(self.blob):
            raise MetadataFormatError("signature blob is truncated")
        return self.blob[self.pos]

    def compressed(self) -> int:
        value, size = read_compressed_uint(self.blob, self.pos)
        self.pos += size
        return value


_TYPE_DEF_OR_REF_ENCODED = (TableId.TypeDef, TableId.TypeRef, TableId.TypeSpec)


class SignatureDecoder:
    """
    Decode signature blobs against one metadata image.

    *resolve* maps a TypeDefOrRef token to a tree; it is the decoder's only
    link back to the tables.
    """

    def __init__(self, resolve: TypeResolver):
        self._resolve = resolve

    def _type_token(self, r: _Reader) -> CodedIndex:
        value = r.compressed()
        tag = value & 0x3
        if tag >= len(_TYPE_DEF_OR_REF_ENCODED):
            raise MetadataFormatError(f"invalid TypeDefOrRefEncoded tag {tag}")
        return CodedIndex(_TYPE_DEF_OR_REF_ENCODED[tag], value >> 2)

    def _skip_modifiers(self, r: _Reader) -> None:
        while r.peek() in (ElementType.CMOD_OPT, ElementType.CMOD_REQD, ElementType.PINNED):
            if r.byte() != ElementType.PINNED:
                self._type_token(r)

    def _type(self, r: _Reader, depth: int = 0) -> TypeSig:
        if depth > _MAX_DEPTH:
            raise MetadataFormatError("signature nesting too deep")
        self._skip_modifiers(r)
        code = r.byte()

        if code in PRIMITIVE_NAMES:
            return PrimitiveSig(ElementType(code))
        if code in (ElementType.CLASS, ElementType.VALUETYPE):
            resolved = self._resolve(self._type_token(r))
            if code == ElementType.VALUETYPE and isinstance(resolved, NamedTypeSig):
                resolved = replace(resolved, value_type=True)
            return resolved
        if code == ElementType.SZARRAY:
            return ArraySig(self._type(r, depth + 1))
        if code == ElementType.ARRAY:
            element = self._type(r, depth + 1)
            rank = r.compressed()
            for _ in range(r.compressed()):      # sizes
                r.compressed()
            for _ in range(r.compressed()):      # lower bounds
                r.compressed()
            return ArraySig(element, rank)
        if code == ElementType.PTR:
            return PointerSig(self._type(r, depth + 1))
        if code == ElementType.BYREF:
            return ByRefSig(self._type(r, depth + 1))
        if code == ElementType.VAR:
            return GenericParamSig(r.compressed(), method=False)
        if code == ElementType.MVAR:
            return GenericParamSig(r.compressed(), method=True)
        if code == ElementType.GENERICINST:
            kind = r.byte()
            base = self._resolve(self._type_token(r))
            if not isinstance(base, NamedTypeSig):
                raise UnsupportedMetadataError("generic instantiation of a non-named type")
            if kind == ElementType.VALUETYPE:
                base = replace(base, value_type=True)
            arguments = tuple(self._type(r, depth + 1) for _ in range(r.compressed()))
            return GenericInstSig(base, arguments)
        if code == ElementType.FNPTR:
            return FunctionPointerSig(self._method(r, depth + 1))

        raise UnsupportedMetadataError(f"unsupported signature element type {code:#04x}")

    def _method(self, r: _Reader, depth: int = 0) -> MethodSig:
        convention = r.byte()
        generic_count = r.compressed() if convention & SIG_GENERIC else 0
        param_count = r.compressed()
        return_type = self._type(r, depth)
        params = []
        for _ in range(param_count):
            if r.peek() == ElementType.SENTINEL:
                r.byte()
            params.append(self._type(r, depth))
        return MethodSig(
            has_this=bool(convention & SIG_HASTHIS),
            generic_count=generic_count,
            return_type=return_type,
            params=tuple(params),
        )

    # -- public API ------------------------------------------------------------

    def method(self, blob: bytes) -> MethodSig:
        return self._method(_Reader(blob))

    def field(self, blob: bytes) -> TypeSig:
        r = _Reader(blob)
        if r.byte() != SIG_FIELD:
            raise MetadataFormatError("field signature does not start with FIELD")
        return self._type(r)

    def type_spec(self, blob: bytes) -> TypeSig:
        return self._type(_Reader(blob))


def substitute(sig: TypeSig, type_args: Sequence[TypeSig]) -> TypeSig:
    """Replace type-level generic parameters (!n) in *sig* with *type_args*."""
    if isinstance(sig, GenericParamSig):
        if not sig.method and sig.position < len(type_args):
            return type_args[sig.position]
        return sig
    if isinstance(sig, GenericInstSig):
        return GenericInstSig(sig.generic_type, tuple(substitute(a, type_args) for a in sig.arguments))
    if isinstance(sig, ArraySig):
        return ArraySig(substitute(sig.element, type_args), sig.rank)
    if isinstance(sig, PointerSig):
        return PointerSig(substitute(sig.element, type_args))
    if isinstance(sig, ByRefSig):
        return ByRefSig(substitute(sig.element, type_args))
    if isinstance(sig, FunctionPointerSig):
        return FunctionPointerSig(substitute_method(sig.method, type_args))
    return sig


def substitute_method(sig: MethodSig, type_args: Sequence[TypeSig]) -> MethodSig:
    return MethodSig(
        has_this=sig.has_this,
        generic_count=sig.generic_count,
        return_type=substitute(sig.return_type, type_args),
        params=tuple(substitute(p, type_args) for p in sig.params),
    )
