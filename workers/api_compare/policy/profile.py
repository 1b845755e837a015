"""
Profile — comparison profile descriptor and tunable parameters.

The profile decides which change categories are evaluated and which
explicit renames are known, so the comparer itself holds no opinions.
"""
from dataclasses import dataclass, field
from typing import Dict, List

from api_compare.core.handlers import CorrelationHandler, default_handlers, rename_handler
from api_compare.policy.change_types import ChangeTypes


@dataclass(frozen=True)
class CompareProfile:
    """Describes how two listings are compared."""

    # Identity
    profile_id: str

    # Categories evaluated
    change_types: ChangeTypes = ChangeTypes.ALL

    # old id -> new id, tried before the built-in handlers
    renames: Dict[str, str] = field(default_factory=dict)

    def handlers(self) -> List[CorrelationHandler]:
        result: List[CorrelationHandler] = []
        if self.renames:
            result.append(rename_handler(self.renames))
        result.extend(default_handlers())
        return result

    @classmethod
    def v0(cls) -> "CompareProfile":
        """The locked v0 profile: every category, built-in handlers only."""
        return cls(profile_id="api-compare-all-v0")
