"""
Exception predicates — suppress deliberately accepted breaking changes.

A predicate receives a BreakingChange and returns True to drop it from
the report.  Any matching predicate suppresses the change.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from api_compare.io.schema import BreakingChange, ExceptionEntry, ExceptionList
from api_compare.policy.change_types import ChangeKind

ExceptionPredicate = Callable[[BreakingChange], bool]


@dataclass(frozen=True)
class AcceptedChange:
    """Matches changes whose old element has *old_id* (and *new_id* / *kind* when set)."""

    old_id: str
    new_id: Optional[str] = None
    kind: Optional[ChangeKind] = None

    def __call__(self, change: BreakingChange) -> bool:
        if change.old_item is None or change.old_item.id != self.old_id:
            return False
        if self.new_id is not None:
            if change.new_item is None or change.new_item.id != self.new_id:
                return False
        if self.kind is not None and change.kind != self.kind:
            return False
        return True

    @classmethod
    def from_entry(cls, entry: ExceptionEntry) -> "AcceptedChange":
        return cls(old_id=entry.old_id, new_id=entry.new_id, kind=entry.kind)


def predicates_from(exceptions: ExceptionList) -> List[ExceptionPredicate]:
    return [AcceptedChange.from_entry(e) for e in exceptions.exceptions]


def accept_changes(changes: Iterable[BreakingChange]) -> ExceptionList:
    """Exception list accepting exactly *changes* (for refreshing a baseline)."""
    entries = [
        ExceptionEntry(
            old_id=c.old_item.id,
            new_id=c.new_item.id if c.new_item is not None else None,
            kind=c.kind,
        )
        for c in changes
        if c.old_item is not None
    ]
    return ExceptionList(exceptions=entries)


def apply_exceptions(
    changes: Sequence[BreakingChange],
    predicates: Iterable[ExceptionPredicate],
) -> Tuple[Tuple[BreakingChange, ...], int]:
    """Return (remaining changes, number suppressed)."""
    predicates = list(predicates)
    kept = tuple(c for c in changes if not any(p(c) for p in predicates))
    return kept, len(changes) - len(kept)
