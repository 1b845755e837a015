"""
Listing Router
Public API surface reader for compiled .NET assemblies.

Reads one assembly with the api_listing package and returns its
listing; optionally persists api_listing.json as a baseline artifact.
"""
import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from app.config import settings
from api_listing import PACKAGE_NAME, READER_VERSION, SCHEMA_VERSION  # type: ignore
from api_listing.io.schema import ApiListing  # type: ignore
from api_listing.policy.profile import ReaderProfile  # type: ignore
from api_listing.runner import run_reader  # type: ignore

logger = logging.getLogger(__name__)


# =============================================================================
# Request/Response Models
# =============================================================================

class ListingReadRequest(BaseModel):
    """Request to read the public surface of one assembly."""
    binary_path: str = Field(..., description="Path to the .dll / .exe")
    exclude_internal: Optional[bool] = Field(
        None,
        description="Drop *.Internal namespaces (default from settings)",
    )
    excluded_namespaces: List[str] = Field(
        default_factory=list,
        description="Namespaces dropped with everything below them",
    )
    output_dir: Optional[str] = Field(
        None,
        description="Directory to write api_listing.json into",
    )


class ListingReadResponse(BaseModel):
    """Listing plus run metadata."""
    package_name: str = PACKAGE_NAME
    reader_version: str = READER_VERSION
    schema_version: str = SCHEMA_VERSION
    profile_id: str
    type_count: int
    member_count: int
    output_dir: Optional[str] = None
    listing: ApiListing


# =============================================================================
# Router
# =============================================================================

router = APIRouter()


@router.post(
    "/read",
    response_model=ListingReadResponse,
    status_code=status.HTTP_200_OK,
    summary="Read the public API listing of an assembly",
)
async def read_listing_endpoint(request: ListingReadRequest):
    """
    Run the listing reader on ``binary_path``.

    Returns 404 when the file does not exist and 422 when it is not a
    readable .NET assembly.
    """
    exclude_internal = request.exclude_internal
    if exclude_internal is None:
        exclude_internal = settings.EXCLUDE_INTERNAL_NAMESPACES

    profile = ReaderProfile(
        profile_id=ReaderProfile.v0().profile_id,
        exclude_internal=exclude_internal,
        excluded_namespaces=frozenset(request.excluded_namespaces),
    )

    binary = Path(request.binary_path)
    if not binary.exists():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Binary not found: {binary}",
        )

    out_dir = Path(request.output_dir) if request.output_dir else None
    try:
        listing = run_reader(str(binary), profile=profile, output_dir=out_dir)
    except ValueError as e:
        logger.error("Listing reader failed on %s: %s", binary, e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Cannot read {binary}: {e}",
        )

    return ListingReadResponse(
        profile_id=profile.profile_id,
        type_count=len(listing.types),
        member_count=sum(len(t.members) for t in listing.types),
        output_dir=str(out_dir) if out_dir else None,
        listing=listing,
    )
