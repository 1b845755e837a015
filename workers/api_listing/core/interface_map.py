"""
Interface map — which interface a type's declared methods implement.

Responsibilities:
  - Build, once per type, a map from declared MethodDef rid to the
    canonical name of the interface it implements.
  - Explicit implementations come from MethodImpl rows whose declaration
    belongs to one of the type's own interfaces.
  - Implicit implementations are found by name + signature against
    interfaces defined in this assembly, after substituting the
    interface's type arguments.

Interfaces defined in other assemblies can only be mapped explicitly:
their method tables are not part of this image.
"""
import logging
from typing import Dict, List, Optional, Tuple

from api_listing.core.metadata_loader import MetadataImage
from api_listing.core.metadata_tables import CodedIndex, TableId
from api_listing.core.signatures import GenericInstSig, TypeSig, substitute_method
from api_listing.core.type_names import format_type, method_signature_key

logger = logging.getLogger(__name__)


class InterfaceMap:
    """Memoised per-type interface implementation map."""

    def __init__(self, image: MetadataImage):
        self._image = image
        self._maps: Dict[int, Dict[int, str]] = {}
        self._interface_sigs: Dict[int, List[TypeSig]] = {}

    def interface_sigs(self, rid: int) -> List[TypeSig]:
        """Interfaces named by the type's own InterfaceImpl rows, in row order."""
        sigs = self._interface_sigs.get(rid)
        if sigs is None:
            sigs = [self._image.resolve_type(t) for t in self._image.interfaces(rid)]
            self._interface_sigs[rid] = sigs
        return sigs

    def interface_names(self, rid: int) -> List[str]:
        scope = self._image.type_scope(rid)
        return [format_type(sig, scope) for sig in self.interface_sigs(rid)]

    def implemented_interface(self, type_rid: int, method_rid: int) -> Optional[str]:
        return self.for_type(type_rid).get(method_rid)

    def for_type(self, rid: int) -> Dict[int, str]:
        cached = self._maps.get(rid)
        if cached is None:
            cached = self._build(rid)
            self._maps[rid] = cached
        return cached

    # -- construction ----------------------------------------------------------

    def _declaration(self, token: CodedIndex) -> Optional[Tuple[TypeSig, str, str]]:
        """Resolve a MethodImpl declaration to (interface sig, method name, signature key)."""
        image = self._image
        if token.table == TableId.MethodDef:
            owner = image.method_owner(token.rid)
            if owner is None:
                return None
            row = image.tables.row(TableId.MethodDef, token.rid)
            owner_sig = image.resolve_type(CodedIndex(TableId.TypeDef, owner))
            return owner_sig, row.Name, method_signature_key(image.method_sig(token.rid))
        if token.table == TableId.MemberRef:
            row = image.tables.row(TableId.MemberRef, token.rid)
            if row.Class.table not in (TableId.TypeDef, TableId.TypeRef, TableId.TypeSpec):
                return None
            owner_sig = image.resolve_type(row.Class)
            sig = image.decoder.method(row.Signature)
            if isinstance(owner_sig, GenericInstSig):
                sig = substitute_method(sig, owner_sig.arguments)
            return owner_sig, row.Name, method_signature_key(sig)
        return None

    def _build(self, rid: int) -> Dict[int, str]:
        image = self._image
        scope = image.type_scope(rid)
        declared = set(image.methods(rid))
        interfaces = self.interface_sigs(rid)
        names = {format_type(sig, scope): sig for sig in interfaces}

        mapping: Dict[int, str] = {}
        # (interface name, method name, signature key) already satisfied explicitly
        satisfied = set()

        for body, declaration in image.method_impls(rid):
            if body.table != TableId.MethodDef or body.rid not in declared:
                continue
            resolved = self._declaration(declaration)
            if resolved is None:
                continue
            owner_sig, method_name, key = resolved
            owner_name = format_type(owner_sig, scope)
            if owner_name not in names:
                continue
            mapping.setdefault(body.rid, owner_name)
            satisfied.add((owner_name, method_name, key))

        candidates: Dict[Tuple[str, str], List[int]] = {}
        for method_rid in image.methods(rid):
            row = image.tables.row(TableId.MethodDef, method_rid)
            if not row.Flags.mdVirtual or row.Flags.mdStatic:
                continue
            key = method_signature_key(image.method_sig(method_rid))
            candidates.setdefault((row.Name, key), []).append(method_rid)

        for interface_name, interface_sig in names.items():
            found = image.find_type_def(interface_sig)
            if found is None:
                logger.debug("interface %s is external; implicit mapping skipped", interface_name)
                continue
            interface_rid, arguments = found
            for interface_method in image.methods(interface_rid):
                row = image.tables.row(TableId.MethodDef, interface_method)
                if row.Flags.mdStatic:
                    continue
                sig = substitute_method(image.method_sig(interface_method), arguments)
                key = method_signature_key(sig)
                if (interface_name, row.Name, key) in satisfied:
                    continue
                for method_rid in candidates.get((row.Name, key), ()):
                    mapping.setdefault(method_rid, interface_name)

        return mapping
