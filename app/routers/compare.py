"""
Compare Router
Breaking-change check of a new build against its accepted baseline.

Either side may be an assembly or a persisted api_listing.json.
"""
import logging
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from api_compare.io.schema import ComparisonReport  # type: ignore
from api_compare.policy.change_types import ChangeTypes, parse_change_types  # type: ignore
from api_compare.policy.profile import CompareProfile  # type: ignore
from api_compare.runner import run_compare  # type: ignore

logger = logging.getLogger(__name__)


# =============================================================================
# Request/Response Models
# =============================================================================

class CompareRunRequest(BaseModel):
    """Request to compare a new build against a baseline."""
    baseline_path: str = Field(..., description="Baseline assembly or api_listing.json")
    new_path: str = Field(..., description="New assembly or api_listing.json")
    change_types: List[str] = Field(
        default_factory=list,
        description="Change categories to evaluate (empty: all)",
    )
    exceptions_path: Optional[str] = Field(
        None,
        description="exceptions.json with accepted breaking changes",
    )
    renames: Dict[str, str] = Field(
        default_factory=dict,
        description="Known renames, old id -> new id",
    )
    output_dir: Optional[str] = Field(
        None,
        description="Directory to write api_compare_report.json into",
    )


# =============================================================================
# Router
# =============================================================================

router = APIRouter()


@router.post(
    "/run",
    response_model=ComparisonReport,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="Compare a new assembly or listing against its baseline",
)
async def run_compare_endpoint(request: CompareRunRequest):
    """
    Returns the comparison report; a FAIL verdict is a normal response.

    404 when an input path does not exist, 422 when an input cannot be
    read or a change category is unknown.
    """
    for path in (request.baseline_path, request.new_path, request.exceptions_path):
        if path is not None and not Path(path).exists():
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Input not found: {path}",
            )

    try:
        mask = parse_change_types(request.change_types) if request.change_types else ChangeTypes.ALL
        profile = CompareProfile(
            profile_id=CompareProfile.v0().profile_id,
            change_types=mask,
            renames=dict(request.renames),
        )
        return run_compare(
            request.baseline_path,
            request.new_path,
            profile=profile,
            exceptions_path=Path(request.exceptions_path) if request.exceptions_path else None,
            output_dir=Path(request.output_dir) if request.output_dir else None,
        )
    except ValueError as e:
        logger.error(
            "Comparison failed for %s -> %s: %s",
            request.baseline_path, request.new_path, e,
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
