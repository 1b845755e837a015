"""
Schema — Pydantic models for package verification.

One output per assembly:
  verification_report.json — every rule issue raised for the assembly.

Runtime contract fields (present in every output):
  package_name, verifier_version, schema_version.
"""
from datetime import datetime, timezone
from enum import Enum, unique
from typing import List, Optional

from pydantic import BaseModel, Field

from package_verifier import PACKAGE_NAME, SCHEMA_VERSION, VERIFIER_VERSION


@unique
class IssueLevel(str, Enum):
    ERROR = "Error"
    WARNING = "Warning"
    INFO = "Info"


@unique
class Verdict(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"


class VerifierIssue(BaseModel):
    issue_id: str
    file_path: str
    level: IssueLevel
    message: str


class VerificationReport(BaseModel):
    """Per-assembly summary — verification_report.json."""

    package_name: str = PACKAGE_NAME
    verifier_version: str = VERIFIER_VERSION
    schema_version: str = SCHEMA_VERSION
    profile_id: str

    assembly_path: str
    assembly_identity: Optional[str] = None

    verdict: Verdict
    rules: List[str] = Field(default_factory=list)
    issues: List[VerifierIssue] = Field(default_factory=list)

    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
