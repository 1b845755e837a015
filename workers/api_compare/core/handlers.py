"""
Correlation handlers — match an old element to its counterpart in the new listing.

A handler is a plain function ``(CorrelationContext) -> element | None``.
The comparer tries handlers in caller order and the first match wins, so
callers put specific handlers (rename maps) ahead of the built-ins.

Handlers only run for old elements whose identity has no exact match in
the new listing; the context's candidates are the new elements at the
same scope that are still unmatched.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Sequence, Union

from api_listing.io.schema import MemberDescriptor, TypeDescriptor

Element = Union[TypeDescriptor, MemberDescriptor]


@dataclass(frozen=True)
class CorrelationContext:
    """What a handler may look at."""

    old_element: Element
    candidates: Sequence[Element]
    # Owning types at member scope; None at type scope.
    old_type: Optional[TypeDescriptor] = None
    new_type: Optional[TypeDescriptor] = None
    aux: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_member_scope(self) -> bool:
        return isinstance(self.old_element, MemberDescriptor)


CorrelationHandler = Callable[[CorrelationContext], Optional[Element]]


def simple_name(member: MemberDescriptor) -> str:
    """Member name without generic parameters or the parameter list."""
    return member.name.split("(", 1)[0].split("<", 1)[0]


def find_type_using_full_name(context: CorrelationContext) -> Optional[Element]:
    """Type scope: the candidate with the same full name (modifiers or supertypes may differ)."""
    old = context.old_element
    if not isinstance(old, TypeDescriptor):
        return None
    for candidate in context.candidates:
        if candidate.name == old.name:
            return candidate
    return None


def find_member_using_name(context: CorrelationContext) -> Optional[Element]:
    """
    Member scope: the single candidate of the same kind and simple name.

    Matches a member whose signature changed in place.  When several
    candidates share the name (overloads) there is no safe choice, so
    nothing matches.
    """
    old = context.old_element
    if not isinstance(old, MemberDescriptor):
        return None
    name = simple_name(old)
    matches = [
        c for c in context.candidates
        if isinstance(c, MemberDescriptor) and c.kind == old.kind and simple_name(c) == name
    ]
    if len(matches) == 1:
        return matches[0]
    return None


def rename_handler(renames: Mapping[str, str]) -> CorrelationHandler:
    """
    Handler for explicit renames: *renames* maps an old id to a new id.

    Applies at both scopes; a member entry only ever sees candidates
    from its own type.
    """
    renames = dict(renames)

    def _handler(context: CorrelationContext) -> Optional[Element]:
        target = renames.get(context.old_element.id)
        if target is None:
            return None
        for candidate in context.candidates:
            if candidate.id == target:
                return candidate
        return None

    return _handler


def default_handlers() -> List[CorrelationHandler]:
    return [find_type_using_full_name, find_member_using_name]


def correlate(context: CorrelationContext, handlers: Sequence[CorrelationHandler]) -> Optional[Element]:
    """Run *handlers* in order; the first non-None result wins."""
    for handler in handlers:
        match = handler(context)
        if match is not None:
            return match
    return None
