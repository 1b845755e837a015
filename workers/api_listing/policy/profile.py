"""
Profile — reader profile descriptor and tunable parameters.

The profile holds every policy knob of the reader so that core
extraction logic contains no opinions about what to leave out.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, List

from api_listing.policy.filters import (
    ApiFilter,
    exclude_internal_namespaces,
    exclude_matching,
    exclude_namespace,
)


@dataclass(frozen=True)
class ReaderProfile:
    """Describes which parts of the public surface a listing records."""

    # Identity
    profile_id: str

    # Exclusions
    exclude_internal: bool = False
    excluded_namespaces: FrozenSet[str] = frozenset()
    excluded_patterns: List[str] = field(default_factory=list)

    def filters(self) -> List[ApiFilter]:
        result: List[ApiFilter] = []
        if self.exclude_internal:
            result.append(exclude_internal_namespaces())
        result.extend(exclude_namespace(ns) for ns in sorted(self.excluded_namespaces))
        result.extend(exclude_matching(p) for p in self.excluded_patterns)
        return result

    @classmethod
    def v0(cls) -> "ReaderProfile":
        """The locked v0 profile: everything public or protected."""
        return cls(profile_id="ecma335-public-surface-v0")

    @classmethod
    def without_internal(cls) -> "ReaderProfile":
        """v0 plus the ``*.Internal`` namespace exclusion."""
        return cls(profile_id="ecma335-public-surface-v0-nointernal", exclude_internal=True)
