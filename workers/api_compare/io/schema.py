"""
Schema — Pydantic models for comparison results and exception lists.

Two documents:
  api_compare_report.json — every breaking change found between a
                            baseline listing and a new one.
  exceptions.json         — deliberately accepted breaking changes.

Runtime contract fields (present in every output):
  package_name, comparer_version, schema_version.
"""
from datetime import datetime, timezone
from enum import Enum, unique
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from api_compare import COMPARER_VERSION, PACKAGE_NAME, SCHEMA_VERSION
from api_compare.policy.change_types import ChangeKind
from api_listing.io.schema import MemberDescriptor, TypeDescriptor


# ── Element references ───────────────────────────────────────────────────────

@unique
class ElementScope(str, Enum):
    TYPE = "type"
    MEMBER = "member"


class ApiElementRef(BaseModel):
    """Identity of one side of a change; members carry their owning type's id."""

    model_config = ConfigDict(frozen=True)

    scope: ElementScope
    id: str
    declaring_type: Optional[str] = None

    @classmethod
    def of(
        cls,
        element: Union[TypeDescriptor, MemberDescriptor],
        owner: Optional[TypeDescriptor] = None,
    ) -> "ApiElementRef":
        if isinstance(element, TypeDescriptor):
            return cls(scope=ElementScope.TYPE, id=element.id)
        return cls(
            scope=ElementScope.MEMBER,
            id=element.id,
            declaring_type=owner.id if owner is not None else None,
        )


class BreakingChange(BaseModel):
    """One difference that may break consumers of the old surface."""

    model_config = ConfigDict(frozen=True)

    kind: ChangeKind
    old_item: Optional[ApiElementRef] = None
    new_item: Optional[ApiElementRef] = None
    detail: Optional[str] = None


# ── Report ───────────────────────────────────────────────────────────────────

@unique
class Verdict(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class ComparisonReport(BaseModel):
    """Top-level summary — api_compare_report.json."""

    package_name: str = PACKAGE_NAME
    comparer_version: str = COMPARER_VERSION
    schema_version: str = SCHEMA_VERSION
    profile_id: str

    old_assembly: str
    new_assembly: str
    change_types: List[str] = Field(default_factory=list)

    verdict: Verdict
    changes: List[BreakingChange] = Field(default_factory=list)
    suppressed: int = 0

    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


# ── Exception list ───────────────────────────────────────────────────────────

class ExceptionEntry(BaseModel):
    """An accepted change: by old id, optionally narrowed by new id and kind."""

    old_id: str
    new_id: Optional[str] = None
    kind: Optional[ChangeKind] = None
    reason: Optional[str] = None


class ExceptionList(BaseModel):
    schema_version: str = SCHEMA_VERSION
    exceptions: List[ExceptionEntry] = Field(default_factory=list)
