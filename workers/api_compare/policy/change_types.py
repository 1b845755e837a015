"""
Change types — the categories of difference the comparer can report.

``ChangeTypes`` is the caller's evaluation mask: a category absent from
the mask is never evaluated, even when the difference is present.
``ChangeKind`` is the category recorded on each BreakingChange; every
kind has exactly one mask bit of the same name.
"""
from enum import Enum, IntFlag, unique
from typing import Iterable, List


@unique
class ChangeKind(str, Enum):
    REMOVED = "REMOVED"
    KIND_CHANGED = "KIND_CHANGED"
    VISIBILITY_NARROWED = "VISIBILITY_NARROWED"
    MODIFIERS_CHANGED = "MODIFIERS_CHANGED"
    BASE_TYPE_CHANGED = "BASE_TYPE_CHANGED"
    INTERFACE_REMOVED = "INTERFACE_REMOVED"
    GENERIC_CONSTRAINTS_CHANGED = "GENERIC_CONSTRAINTS_CHANGED"
    RENAMED = "RENAMED"
    OVERRIDE_CHANGED = "OVERRIDE_CHANGED"
    RETURN_TYPE_CHANGED = "RETURN_TYPE_CHANGED"
    PARAMETERS_CHANGED = "PARAMETERS_CHANGED"
    LITERAL_CHANGED = "LITERAL_CHANGED"


class ChangeTypes(IntFlag):
    NONE = 0
    REMOVED = 1 << 0
    KIND_CHANGED = 1 << 1
    VISIBILITY_NARROWED = 1 << 2
    MODIFIERS_CHANGED = 1 << 3
    BASE_TYPE_CHANGED = 1 << 4
    INTERFACE_REMOVED = 1 << 5
    GENERIC_CONSTRAINTS_CHANGED = 1 << 6
    RENAMED = 1 << 7
    OVERRIDE_CHANGED = 1 << 8
    RETURN_TYPE_CHANGED = 1 << 9
    PARAMETERS_CHANGED = 1 << 10
    LITERAL_CHANGED = 1 << 11

    ALL = (1 << 12) - 1


def flag_for(kind: ChangeKind) -> ChangeTypes:
    return ChangeTypes[kind.name]


def parse_change_types(names: Iterable[str]) -> ChangeTypes:
    """
    Build a mask from category names (case-insensitive; ``ALL`` allowed).

    Raises ValueError on an unknown name.
    """
    mask = ChangeTypes.NONE
    for name in names:
        key = name.strip().upper()
        if key not in ChangeTypes.__members__:
            raise ValueError(f"unknown change type {name!r}")
        mask |= ChangeTypes[key]
    return mask


def change_type_names(mask: ChangeTypes) -> List[str]:
    """Names of the individual categories set in *mask*, in ChangeKind order."""
    return [kind.value for kind in ChangeKind if mask & flag_for(kind)]
