"""
Visibility — which metadata elements belong to the public surface.

A type is visible when it is public, or nested public / family /
family-or-assembly, and every enclosing type is visible too.  Members are
visible when public, family or family-or-assembly.  Family-flavoured
access is reported as ``protected``.

Policy rules read dnfile flag objects only; they never touch the tables.
"""
from typing import Iterable, Optional, Union

from dnfile.enums import ClrFieldAttr, ClrMethodAttr, ClrTypeAttr

from api_listing.io.schema import Visibility

MemberFlags = Union[ClrMethodAttr, ClrFieldAttr]


def type_visibility(flags: ClrTypeAttr) -> Optional[Visibility]:
    """Visibility of one TypeDef row in isolation, None when hidden."""
    if flags.tdPublic or flags.tdNestedPublic:
        return Visibility.PUBLIC
    if flags.tdNestedFamily or flags.tdNestedFamORAssem:
        return Visibility.PROTECTED
    return None


def chain_visibility(chain_flags: Iterable[ClrTypeAttr]) -> Optional[Visibility]:
    """
    Visibility of a nested type given the flags of its nesting chain
    (outermost first).  Hidden if any link is hidden, protected if any
    link is protected.
    """
    result = None
    for flags in chain_flags:
        level = type_visibility(flags)
        if level is None:
            return None
        if result != Visibility.PROTECTED:
            result = level
    return result


def member_visibility(flags: MemberFlags) -> Optional[Visibility]:
    if isinstance(flags, ClrFieldAttr):
        public, family = flags.fdPublic, flags.fdFamily or flags.fdFamORAssem
    else:
        public, family = flags.mdPublic, flags.mdFamily or flags.mdFamORAssem
    if public:
        return Visibility.PUBLIC
    return Visibility.PROTECTED if family else None


def is_narrowing(old: Optional[Visibility], new: Optional[Visibility]) -> bool:
    """Only public → protected narrows; absent visibility (interface members) never does."""
    return old == Visibility.PUBLIC and new == Visibility.PROTECTED
