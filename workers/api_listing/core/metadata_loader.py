"""
Metadata loader — a navigable view over one assembly's metadata tables.

Responsibilities:
  - Open a validated PE image and parse its metadata tables.
  - Index the relationship tables (NestedClass, GenericParam,
    InterfaceImpl, MethodImpl, CustomAttribute, Constant) by owner.
  - Resolve TypeDefOrRef tokens into signature trees and decode the
    signatures of fields and methods (memoised).
  - Render the assembly identity string.
"""
import hashlib
import logging
from collections import defaultdict
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

from api_listing.core.errors import UnsupportedMetadataError
from api_listing.core.metadata_tables import CodedIndex, MetadataTables, TableId
from api_listing.core.pe_reader import AssemblyMeta, describe_pe, load_pe
from api_listing.core.signatures import (
    GenericInstSig,
    MethodSig,
    NamedTypeSig,
    SignatureDecoder,
    TypeSig,
    substitute,
)
from api_listing.core.type_names import GenericScope, join_names

logger = logging.getLogger(__name__)

VALUE_TYPE_ROOTS = ("System.ValueType", "System.Enum")


class MetadataImage:
    """
    Holds the parsed tables of one assembly plus owner-keyed indexes.

    Usage::

        image = open_image(path)
        for row in image.tables.rows(TableId.TypeDef):
            ...

    Everything is built once in the constructor or memoised on first use;
    the image is never mutated afterwards.
    """

    def __init__(self, tables: MetadataTables, meta: Optional[AssemblyMeta] = None):
        self.tables = tables
        self.meta = meta
        self.decoder = SignatureDecoder(self.resolve_type)

        self._type_sigs: Dict[CodedIndex, TypeSig] = {}
        self._method_sigs: Dict[int, MethodSig] = {}
        self._field_sigs: Dict[int, TypeSig] = {}
        self._resolving: set = set()
        self._by_name: Optional[Dict[Tuple[str, Tuple[str, ...]], int]] = None

        self._enclosing: Dict[int, int] = {
            row.NestedClass: row.EnclosingClass for row in tables.rows(TableId.NestedClass)
        }

        self._generic_params: Dict[CodedIndex, List[tuple]] = defaultdict(list)
        for row in tables.rows(TableId.GenericParam):
            self._generic_params[row.Owner].append(row)
        for params in self._generic_params.values():
            params.sort(key=lambda r: r.Number)

        self._constraints: Dict[int, List[CodedIndex]] = defaultdict(list)
        for row in tables.rows(TableId.GenericParamConstraint):
            self._constraints[row.Owner].append(row.Constraint)

        self._interfaces: Dict[int, List[CodedIndex]] = defaultdict(list)
        for row in tables.rows(TableId.InterfaceImpl):
            self._interfaces[row.Class].append(row.Interface)

        self._method_impls: Dict[int, List[Tuple[CodedIndex, CodedIndex]]] = defaultdict(list)
        for row in tables.rows(TableId.MethodImpl):
            self._method_impls[row.Class].append((row.MethodBody, row.MethodDeclaration))

        self._attributes: Dict[CodedIndex, List[tuple]] = defaultdict(list)
        for row in tables.rows(TableId.CustomAttribute):
            self._attributes[row.Parent].append(row)

        self._constants: Dict[CodedIndex, tuple] = {
            row.Parent: row for row in tables.rows(TableId.Constant)
        }

        self._methods: Dict[int, List[int]] = {}
        self._fields: Dict[int, List[int]] = {}
        self._method_owner: Dict[int, int] = {}
        for row in tables.rows(TableId.TypeDef):
            methods = list(row.MethodList)
            self._methods[row.rid] = methods
            self._fields[row.rid] = list(row.FieldList)
            for method_rid in methods:
                self._method_owner[method_rid] = row.rid

    # -- type definitions ------------------------------------------------------

    def type_def(self, rid: int) -> tuple:
        return self.tables.row(TableId.TypeDef, rid)

    def enclosing_type(self, rid: int) -> Optional[int]:
        return self._enclosing.get(rid)

    def nesting_chain(self, rid: int) -> List[int]:
        """TypeDef rids from the outermost enclosing type down to *rid*."""
        chain = [rid]
        while chain[-1] in self._enclosing:
            parent = self._enclosing[chain[-1]]
            if parent in chain:
                raise UnsupportedMetadataError(f"circular nesting at TypeDef {rid}")
            chain.append(parent)
        chain.reverse()
        return chain

    def generic_params(self, owner: CodedIndex) -> List[tuple]:
        return self._generic_params.get(owner, [])

    def type_generic_params(self, rid: int) -> List[tuple]:
        return self.generic_params(CodedIndex(TableId.TypeDef, rid))

    def method_generic_params(self, rid: int) -> List[tuple]:
        return self.generic_params(CodedIndex(TableId.MethodDef, rid))

    def constraints(self, generic_param_rid: int) -> List[TypeSig]:
        return [self.resolve_type(c) for c in self._constraints.get(generic_param_rid, [])]

    def type_scope(self, rid: int) -> GenericScope:
        return GenericScope(tuple(p.Name for p in self.type_generic_params(rid)))

    def method_scope(self, method_rid: int) -> GenericScope:
        owner = self._method_owner.get(method_rid)
        type_params = self.type_scope(owner).type_params if owner else ()
        return GenericScope(type_params, tuple(p.Name for p in self.method_generic_params(method_rid)))

    def definition_name(self, rid: int) -> str:
        """Canonical name of a TypeDef with its own generic parameter names."""
        chain = [self.type_def(r) for r in self.nesting_chain(rid)]
        params = [p.Name for p in self.type_generic_params(rid)]
        return join_names(chain[0].TypeNamespace, [r.TypeName for r in chain], params)

    def extends_name(self, rid: int) -> Optional[str]:
        """Full name (arity suffix stripped) of the base type, or None."""
        extends = self.type_def(rid).Extends
        if extends.is_null:
            return None
        base = self.resolve_type(extends)
        generic = getattr(base, "generic_type", base)
        if isinstance(generic, NamedTypeSig):
            return join_names(generic.namespace, generic.names)
        return None

    def is_value_type(self, rid: int) -> bool:
        row = self.type_def(rid)
        if row.Flags.tdInterface:
            return False
        own = join_names(row.TypeNamespace, [row.TypeName])
        return self.extends_name(rid) in VALUE_TYPE_ROOTS and own != "System.Enum"

    def find_type_def(self, sig: TypeSig) -> Optional[Tuple[int, Tuple[TypeSig, ...]]]:
        """
        Locate the TypeDef a (possibly instantiated) named type refers to.

        Returns (rid, type arguments) or None for types defined elsewhere.
        """
        if self._by_name is None:
            self._by_name = {}
            for row in self.tables.rows(TableId.TypeDef):
                chain = [self.type_def(r) for r in self.nesting_chain(row.rid)]
                key = (chain[0].TypeNamespace, tuple(r.TypeName for r in chain))
                self._by_name.setdefault(key, row.rid)

        arguments: Tuple[TypeSig, ...] = ()
        if isinstance(sig, GenericInstSig):
            arguments = sig.arguments
            sig = sig.generic_type
        if not isinstance(sig, NamedTypeSig):
            return None
        rid = self._by_name.get((sig.namespace, sig.names))
        return (rid, arguments) if rid is not None else None

    def base_chain(self, rid: int) -> List[Tuple[int, Tuple[TypeSig, ...]]]:
        """
        In-assembly base types of *rid*, nearest first.

        Each entry carries the base's type arguments expressed in terms of
        *rid*'s own generic parameters.  The walk stops at the first base
        defined outside this assembly.
        """
        chain: List[Tuple[int, Tuple[TypeSig, ...]]] = []
        current, current_args = rid, None
        while True:
            extends = self.type_def(current).Extends
            if extends.is_null:
                break
            found = self.find_type_def(self.resolve_type(extends))
            if found is None:
                break
            base_rid, base_args = found
            if base_rid == rid or any(base_rid == r for r, _ in chain):
                raise UnsupportedMetadataError(f"circular inheritance at TypeDef {rid}")
            if current_args is not None:
                base_args = tuple(substitute(a, current_args) for a in base_args)
            chain.append((base_rid, base_args))
            current, current_args = base_rid, base_args
        return chain

    def interfaces(self, rid: int) -> List[CodedIndex]:
        return self._interfaces.get(rid, [])

    def method_impls(self, rid: int) -> List[Tuple[CodedIndex, CodedIndex]]:
        return self._method_impls.get(rid, [])

    def methods(self, rid: int) -> List[int]:
        return self._methods.get(rid, [])

    def fields(self, rid: int) -> List[int]:
        return self._fields.get(rid, [])

    def method_owner(self, method_rid: int) -> Optional[int]:
        return self._method_owner.get(method_rid)

    def params(self, method_rid: int) -> List[tuple]:
        rids = self.tables.row(TableId.MethodDef, method_rid).ParamList
        return [self.tables.row(TableId.Param, r) for r in rids]

    # -- token resolution ------------------------------------------------------

    def _resolve_type_ref(self, rid: int) -> NamedTypeSig:
        names: List[str] = []
        row = self.tables.row(TableId.TypeRef, rid)
        seen = set()
        while True:
            names.append(row.TypeName)
            scope = row.ResolutionScope
            if scope.table != TableId.TypeRef or scope.rid == 0:
                break
            if scope.rid in seen:
                raise UnsupportedMetadataError(f"circular TypeRef scope at row {rid}")
            seen.add(scope.rid)
            row = self.tables.row(TableId.TypeRef, scope.rid)
        names.reverse()
        return NamedTypeSig(row.TypeNamespace, tuple(names))

    def resolve_type(self, token: CodedIndex) -> TypeSig:
        """Map a TypeDefOrRef token to a signature tree (memoised)."""
        cached = self._type_sigs.get(token)
        if cached is not None:
            return cached
        if token.is_null:
            raise UnsupportedMetadataError("null type reference")

        if token.table == TableId.TypeDef:
            chain = [self.type_def(r) for r in self.nesting_chain(token.rid)]
            sig: TypeSig = NamedTypeSig(
                chain[0].TypeNamespace,
                tuple(r.TypeName for r in chain),
            )
            # Base-type lookups recurse through resolve_type; guard the edge.
            if token not in self._resolving:
                self._resolving.add(token)
                try:
                    sig = replace(sig, value_type=self.is_value_type(token.rid))
                finally:
                    self._resolving.discard(token)
        elif token.table == TableId.TypeRef:
            sig = self._resolve_type_ref(token.rid)
        elif token.table == TableId.TypeSpec:
            sig = self.decoder.type_spec(self.tables.row(TableId.TypeSpec, token.rid).Signature)
        else:
            raise UnsupportedMetadataError(f"{token.table} is not a type token")

        self._type_sigs[token] = sig
        return sig

    def method_sig(self, rid: int) -> MethodSig:
        sig = self._method_sigs.get(rid)
        if sig is None:
            sig = self.decoder.method(self.tables.row(TableId.MethodDef, rid).Signature)
            self._method_sigs[rid] = sig
        return sig

    def field_sig(self, rid: int) -> TypeSig:
        sig = self._field_sigs.get(rid)
        if sig is None:
            sig = self.decoder.field(self.tables.row(TableId.Field, rid).Signature)
            self._field_sigs[rid] = sig
        return sig

    # -- attributes and constants ----------------------------------------------

    def constant(self, parent: CodedIndex) -> Optional[tuple]:
        return self._constants.get(parent)

    def attribute_type_name(self, row: tuple) -> Optional[str]:
        """Full name of the attribute class whose constructor *row* calls."""
        ctor = row.Type
        if ctor.table == TableId.MethodDef:
            owner = self.method_owner(ctor.rid)
            if owner is None:
                return None
            owner_sig = self.resolve_type(CodedIndex(TableId.TypeDef, owner))
        elif ctor.table == TableId.MemberRef:
            parent = self.tables.row(TableId.MemberRef, ctor.rid).Class
            if parent.table not in (TableId.TypeDef, TableId.TypeRef, TableId.TypeSpec):
                return None
            owner_sig = self.resolve_type(parent)
        else:
            return None
        owner_sig = getattr(owner_sig, "generic_type", owner_sig)
        if not isinstance(owner_sig, NamedTypeSig):
            return None
        return join_names(owner_sig.namespace, owner_sig.names)

    def attributes(self, parent: CodedIndex) -> Sequence[tuple]:
        return self._attributes.get(parent, [])

    def find_attribute(self, parent: CodedIndex, full_name: str) -> Optional[tuple]:
        for row in self.attributes(parent):
            if self.attribute_type_name(row) == full_name:
                return row
        return None

    def has_attribute(self, parent: CodedIndex, full_name: str) -> bool:
        return self.find_attribute(parent, full_name) is not None

    # -- assembly --------------------------------------------------------------

    def assembly_identity(self) -> str:
        """``Name, Version=a.b.c.d, Culture=neutral, PublicKeyToken=<hex>|null``."""
        assemblies = self.tables.rows(TableId.Assembly)
        if not assemblies:
            modules = self.tables.rows(TableId.Module)
            if not modules:
                raise UnsupportedMetadataError("metadata has neither an Assembly nor a Module row")
            return modules[0].Name

        row = assemblies[0]
        version = f"{row.MajorVersion}.{row.MinorVersion}.{row.BuildNumber}.{row.RevisionNumber}"
        culture = row.Culture or "neutral"
        if row.PublicKey:
            token = hashlib.sha1(row.PublicKey).digest()[-8:][::-1].hex()
        else:
            token = "null"
        return f"{row.Name}, Version={version}, Culture={culture}, PublicKeyToken={token}"

    def assembly_token(self) -> Optional[CodedIndex]:
        if not self.tables.rows(TableId.Assembly):
            return None
        return CodedIndex(TableId.Assembly, 1)


def open_image(path: str) -> MetadataImage:
    """
    Read *path* and return its MetadataImage.

    Raises FileNotFoundError, NotAnAssemblyError or MetadataFormatError.
    """
    pe = load_pe(path)
    try:
        meta = describe_pe(path, pe)
        tables = MetadataTables(pe)
    finally:
        pe.close()
    logger.debug(
        "%s: metadata %s, %d types, %d methods",
        path,
        tables.version,
        tables.row_count(TableId.TypeDef),
        tables.row_count(TableId.MethodDef),
    )
    return MetadataImage(tables, meta)
