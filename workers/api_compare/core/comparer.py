"""
Comparer — find breaking changes between a baseline listing and a new one.

Responsibilities:
  - Pair old and new types: identical ids first, then the handler chain
    over the still-unmatched new types, in old declaration order.
  - Compare each type pair, then pair and compare their members the same
    way.
  - Evaluate only the categories in the caller's ChangeTypes mask and
    emit at most one BreakingChange per (pair, category).
  - Drop changes matched by an exception predicate.

Elements present only in the new listing are additions and never
breaking.  Neither listing is modified.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from api_compare.core.handlers import (
    CorrelationContext,
    CorrelationHandler,
    Element,
    correlate,
    default_handlers,
    simple_name,
)
from api_compare.io.schema import ApiElementRef, BreakingChange
from api_compare.policy.change_types import ChangeKind, ChangeTypes, flag_for
from api_compare.policy.exceptions import ExceptionPredicate, apply_exceptions
from api_listing.io.schema import (
    ApiListing,
    GenericParameterDescriptor,
    MemberDescriptor,
    TypeDescriptor,
    TypeKind,
)
from api_listing.policy.visibility import is_narrowing

logger = logging.getLogger(__name__)

# Underlying type recorded as "no base type" on enums.
DEFAULT_ENUM_BASE = "System.Int32"

# A dotted type name token inside a formatted type (no brackets or separators).
_TYPE_TOKEN = re.compile(r"[A-Za-z_][\w.`]*")


@dataclass
class Pair:
    """An old element and its counterpart (None when removed)."""

    old: Element
    new: Optional[Element] = None
    # True when the match came from a handler rather than equal ids.
    correlated: bool = False


def pair_elements(
    old_elements: Sequence[Element],
    new_elements: Sequence[Element],
    handlers: Sequence[CorrelationHandler],
    old_type: Optional[TypeDescriptor] = None,
    new_type: Optional[TypeDescriptor] = None,
) -> List[Pair]:
    """Pair every old element with at most one new element, in old order."""
    new_by_id: Dict[str, Element] = {e.id: e for e in new_elements}
    matched: Set[str] = set()
    pairs: List[Pair] = []

    for old in old_elements:
        new = new_by_id.get(old.id)
        if new is not None:
            matched.add(new.id)
        pairs.append(Pair(old, new))

    pool = [e for e in new_elements if e.id not in matched]
    for pair in pairs:
        if pair.new is not None or not pool:
            continue
        context = CorrelationContext(
            old_element=pair.old,
            candidates=tuple(pool),
            old_type=old_type,
            new_type=new_type,
        )
        match = correlate(context, handlers)
        if match is None:
            continue
        pair.new = match
        pair.correlated = True
        pool = [e for e in pool if e.id != match.id]

    return pairs


# ── Shared rules ─────────────────────────────────────────────────────────────

def constraints_tightened(
    old: Sequence[GenericParameterDescriptor],
    new: Sequence[GenericParameterDescriptor],
) -> bool:
    """True when any parameter gained a constraint flag or a constraint type."""
    new_by_position = {p.parameter_position: p for p in new}
    for before in old:
        after = new_by_position.get(before.parameter_position)
        if after is None:
            continue
        if after.class_constraint and not before.class_constraint:
            return True
        if after.struct_constraint and not before.struct_constraint:
            return True
        if after.new_constraint and not before.new_constraint:
            return True
        if set(after.base_type_or_interfaces) - set(before.base_type_or_interfaces):
            return True
    return False


def _overridable(member: MemberDescriptor) -> bool:
    return not member.sealed and (member.virtual or member.abstract or member.override)


def parameter_difference(old: MemberDescriptor, new: MemberDescriptor) -> Optional[str]:
    """Describe the first breaking parameter difference, or None."""
    if len(old.parameters) != len(new.parameters):
        return f"parameter count {len(old.parameters)} -> {len(new.parameters)}"
    for position, (before, after) in enumerate(zip(old.parameters, new.parameters)):
        if before.type != after.type:
            return f"parameter {position} type {before.type} -> {after.type}"
        if before.direction != after.direction:
            return f"parameter {position} direction {before.direction.value} -> {after.direction.value}"
        if before.default_value is not None and after.default_value is None:
            return f"parameter {position} default value removed"
        if before.is_params != after.is_params:
            return f"parameter {position} params flag changed"
    return None


def split_generic(name: str) -> Tuple[str, List[str]]:
    """
    Split a type name into its generic definition and its type arguments.

    ``C.Base<System.Int32>`` gives ``("C.Base<>", ["System.Int32"])``; the
    definition keeps one comma per extra argument so ``Pair<,>`` and
    ``Box<>`` stay distinct.  Arguments of every generic segment
    (``Outer<A>+Inner<B>``) are returned in order.
    """
    definition: List[str] = []
    arguments: List[str] = []
    current: List[str] = []
    depth = 0
    for char in name:
        if char == "<":
            depth += 1
            if depth == 1:
                definition.append(char)
                current = []
                continue
        elif char == ">":
            depth -= 1
            if depth == 0:
                definition.append(char)
                arguments.append("".join(current).strip())
                continue
        elif char == "," and depth == 1:
            definition.append(char)
            arguments.append("".join(current).strip())
            current = []
            continue
        if depth == 0:
            definition.append(char)
        else:
            current.append(char)
    return "".join(definition), arguments


def _substitute(name: str, mapping: Dict[str, str]) -> str:
    if not mapping:
        return name
    return _TYPE_TOKEN.sub(lambda m: mapping.get(m.group(0), m.group(0)), name)


def _all_interfaces(listing: ApiListing, type_descriptor: TypeDescriptor) -> Set[str]:
    """
    Interfaces of a type including those its in-listing base types implement.

    Bases are looked up by generic definition, so ``C.Base<System.Int32>``
    finds the listed ``C.Base<T>``; the base's interfaces are reported with
    its type parameters replaced by the arguments the derived type supplies.
    """
    by_definition = {split_generic(t.name)[0]: t for t in listing.types}
    result: Set[str] = set()
    seen: Set[str] = set()
    current: Optional[TypeDescriptor] = type_descriptor
    mapping: Dict[str, str] = {}
    while current is not None and current.name not in seen:
        seen.add(current.name)
        result.update(_substitute(i, mapping) for i in current.implemented_interfaces)
        if not current.base_type:
            break
        base_name = _substitute(current.base_type, mapping)
        definition, arguments = split_generic(base_name)
        current = by_definition.get(definition)
        if current is None:
            break
        parameters = [p.parameter_name for p in current.generic_parameters]
        mapping = dict(zip(parameters, arguments)) if len(parameters) == len(arguments) else {}
    return result


def _effective_base(type_descriptor: TypeDescriptor) -> Optional[str]:
    if type_descriptor.kind == TypeKind.ENUM:
        return type_descriptor.base_type or DEFAULT_ENUM_BASE
    return type_descriptor.base_type


# ── Comparer ─────────────────────────────────────────────────────────────────

class _Collector:
    """Accumulates changes for the categories enabled in the mask."""

    def __init__(self, change_types: ChangeTypes):
        self.change_types = change_types
        self.changes: List[BreakingChange] = []

    def wants(self, kind: ChangeKind) -> bool:
        return bool(self.change_types & flag_for(kind))

    def emit(
        self,
        kind: ChangeKind,
        old: ApiElementRef,
        new: Optional[ApiElementRef],
        detail: Optional[str] = None,
    ) -> None:
        self.changes.append(BreakingChange(kind=kind, old_item=old, new_item=new, detail=detail))


def _compare_types(
    out: _Collector,
    old_listing: ApiListing,
    new_listing: ApiListing,
    pair: Pair,
) -> None:
    old: TypeDescriptor = pair.old
    new: TypeDescriptor = pair.new
    old_ref, new_ref = ApiElementRef.of(old), ApiElementRef.of(new)

    if out.wants(ChangeKind.KIND_CHANGED) and old.kind != new.kind:
        out.emit(ChangeKind.KIND_CHANGED, old_ref, new_ref, f"{old.kind.value} -> {new.kind.value}")

    if out.wants(ChangeKind.VISIBILITY_NARROWED) and is_narrowing(old.visibility, new.visibility):
        out.emit(ChangeKind.VISIBILITY_NARROWED, old_ref, new_ref)

    if out.wants(ChangeKind.MODIFIERS_CHANGED):
        added = [
            name for name in ("static", "abstract", "sealed")
            if getattr(new, name) and not getattr(old, name)
        ]
        if added:
            out.emit(ChangeKind.MODIFIERS_CHANGED, old_ref, new_ref, "added " + ", ".join(added))

    if out.wants(ChangeKind.BASE_TYPE_CHANGED):
        before, after = _effective_base(old), _effective_base(new)
        if before is not None and before != after:
            out.emit(ChangeKind.BASE_TYPE_CHANGED, old_ref, new_ref, f"{before} -> {after}")

    if out.wants(ChangeKind.INTERFACE_REMOVED):
        removed = set(old.implemented_interfaces) - _all_interfaces(new_listing, new)
        if removed:
            out.emit(ChangeKind.INTERFACE_REMOVED, old_ref, new_ref, ", ".join(sorted(removed)))

    if out.wants(ChangeKind.GENERIC_CONSTRAINTS_CHANGED):
        if constraints_tightened(old.generic_parameters, new.generic_parameters):
            out.emit(ChangeKind.GENERIC_CONSTRAINTS_CHANGED, old_ref, new_ref)

    if out.wants(ChangeKind.RENAMED) and pair.correlated and old.name != new.name:
        out.emit(ChangeKind.RENAMED, old_ref, new_ref, f"{old.name} -> {new.name}")


def _compare_members(
    out: _Collector,
    old_type: TypeDescriptor,
    new_type: TypeDescriptor,
    pair: Pair,
) -> None:
    old: MemberDescriptor = pair.old
    new: MemberDescriptor = pair.new
    old_ref = ApiElementRef.of(old, old_type)
    new_ref = ApiElementRef.of(new, new_type)

    if out.wants(ChangeKind.KIND_CHANGED) and old.kind != new.kind:
        out.emit(ChangeKind.KIND_CHANGED, old_ref, new_ref, f"{old.kind.value} -> {new.kind.value}")

    if out.wants(ChangeKind.VISIBILITY_NARROWED) and is_narrowing(old.visibility, new.visibility):
        out.emit(ChangeKind.VISIBILITY_NARROWED, old_ref, new_ref)

    if out.wants(ChangeKind.MODIFIERS_CHANGED):
        reasons = [
            f"added {name}" for name in ("sealed", "abstract")
            if getattr(new, name) and not getattr(old, name)
        ]
        if old.static != new.static:
            reasons.append("static -> instance" if old.static else "instance -> static")
        if _overridable(old) and not _overridable(new):
            reasons.append("no longer overridable")
        if reasons:
            out.emit(ChangeKind.MODIFIERS_CHANGED, old_ref, new_ref, "; ".join(reasons))

    if out.wants(ChangeKind.OVERRIDE_CHANGED) and old.override != new.override:
        out.emit(ChangeKind.OVERRIDE_CHANGED, old_ref, new_ref)

    if out.wants(ChangeKind.RETURN_TYPE_CHANGED) and old.return_type != new.return_type:
        out.emit(ChangeKind.RETURN_TYPE_CHANGED, old_ref, new_ref, f"{old.return_type} -> {new.return_type}")

    if out.wants(ChangeKind.PARAMETERS_CHANGED):
        difference = parameter_difference(old, new)
        if difference is not None:
            out.emit(ChangeKind.PARAMETERS_CHANGED, old_ref, new_ref, difference)

    if out.wants(ChangeKind.GENERIC_CONSTRAINTS_CHANGED):
        if constraints_tightened(old.generic_parameters, new.generic_parameters):
            out.emit(ChangeKind.GENERIC_CONSTRAINTS_CHANGED, old_ref, new_ref)

    if out.wants(ChangeKind.LITERAL_CHANGED) and old.literal is not None and old.literal != new.literal:
        out.emit(ChangeKind.LITERAL_CHANGED, old_ref, new_ref, f"{old.literal} -> {new.literal}")

    if out.wants(ChangeKind.RENAMED) and pair.correlated and simple_name(old) != simple_name(new):
        out.emit(ChangeKind.RENAMED, old_ref, new_ref, f"{simple_name(old)} -> {simple_name(new)}")


def find_changes(
    old: ApiListing,
    new: ApiListing,
    change_types: ChangeTypes = ChangeTypes.ALL,
    handlers: Optional[Sequence[CorrelationHandler]] = None,
) -> List[BreakingChange]:
    """All breaking changes in the mask, before exception predicates apply."""
    if handlers is None:
        handlers = default_handlers()
    out = _Collector(change_types)

    for type_pair in pair_elements(old.types, new.types, handlers):
        old_type: TypeDescriptor = type_pair.old
        if type_pair.new is None:
            if out.wants(ChangeKind.REMOVED):
                out.emit(ChangeKind.REMOVED, ApiElementRef.of(old_type), None)
            continue

        new_type: TypeDescriptor = type_pair.new
        _compare_types(out, old, new, type_pair)

        member_pairs = pair_elements(old_type.members, new_type.members, handlers, old_type, new_type)
        for member_pair in member_pairs:
            if member_pair.new is None:
                if out.wants(ChangeKind.REMOVED):
                    out.emit(ChangeKind.REMOVED, ApiElementRef.of(member_pair.old, old_type), None)
                continue
            _compare_members(out, old_type, new_type, member_pair)

    logger.debug("%d changes between %s and %s", len(out.changes), old.assembly_identity, new.assembly_identity)
    return out.changes


def compare(
    old: ApiListing,
    new: ApiListing,
    change_types: ChangeTypes = ChangeTypes.ALL,
    exceptions: Iterable[ExceptionPredicate] = (),
    handlers: Optional[Sequence[CorrelationHandler]] = None,
) -> Tuple[BreakingChange, ...]:
    """
    Compare *old* (the accepted baseline) against *new*.

    Returns the breaking changes in old declaration order (each type's own
    changes before its members'), without those matched by *exceptions*.
    *handlers* defaults to default_handlers().
    """
    changes = find_changes(old, new, change_types, handlers)
    kept, _suppressed = apply_exceptions(changes, exceptions)
    return kept
