"""
Verify Router
Assembly attribute rules over a single assembly or a package directory.
"""
import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from package_verifier import PACKAGE_NAME, SCHEMA_VERSION, VERIFIER_VERSION  # type: ignore
from package_verifier.io.schema import VerificationReport, Verdict  # type: ignore
from package_verifier.policy.profile import VerifierProfile  # type: ignore
from package_verifier.runner import run_verifier  # type: ignore

logger = logging.getLogger(__name__)


# =============================================================================
# Request/Response Models
# =============================================================================

class VerifyRunRequest(BaseModel):
    """Request to verify an assembly or every assembly below a directory."""
    path: str = Field(..., description="Assembly or package directory")
    output_dir: Optional[str] = Field(
        None,
        description="Root directory for verification reports",
    )


class VerifyRunResponse(BaseModel):
    """Response from a verification run."""
    package_name: str = PACKAGE_NAME
    verifier_version: str = VERIFIER_VERSION
    schema_version: str = SCHEMA_VERSION
    profile_id: str
    assemblies_checked: int = 0
    assemblies_failed: int = 0
    reports: List[VerificationReport] = Field(default_factory=list)


# =============================================================================
# Router
# =============================================================================

router = APIRouter()


@router.post(
    "/run",
    response_model=VerifyRunResponse,
    status_code=status.HTTP_200_OK,
    summary="Run package verification rules",
)
async def run_verify_endpoint(request: VerifyRunRequest):
    """Files below a directory that are not .NET assemblies are skipped."""
    profile = VerifierProfile.v0()
    target = Path(request.path)
    if not target.exists():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Path not found: {target}",
        )

    try:
        reports = run_verifier(
            str(target),
            profile=profile,
            output_dir=Path(request.output_dir) if request.output_dir else None,
        )
    except ValueError as e:
        logger.error("Verification failed on %s: %s", target, e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Cannot verify {target}: {e}",
        )

    return VerifyRunResponse(
        profile_id=profile.profile_id,
        assemblies_checked=len(reports),
        assemblies_failed=sum(1 for r in reports if r.verdict == Verdict.FAIL),
        reports=reports,
    )
