"""
Loader — read a persisted API listing (the accepted baseline).

Validates schema_version before handing the document to pydantic; the
computed ``id`` keys written alongside each descriptor are ignored on
input and recomputed from the fields.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Tuple

from pydantic import ValidationError

from api_listing.io.schema import ApiListing

logger = logging.getLogger(__name__)

# Minimum schema version accepted.
_LISTING_MIN_SCHEMA = (0, 1)

PE_MAGIC = b"MZ"


def _parse_version(v: str) -> Tuple[int, ...]:
    return tuple(int(p) for p in v.split("."))


def _check_version(
    data: dict,
    label: str,
    min_version: Tuple[int, ...],
) -> None:
    sv = data.get("schema_version", "0.0")
    parsed = _parse_version(sv)
    if parsed < min_version:
        min_str = ".".join(str(p) for p in min_version)
        raise ValueError(
            f"{label} schema_version {sv} < required {min_str}"
        )


def parse_listing(data: dict, label: str = "api listing") -> ApiListing:
    """
    Validate an already-decoded listing document.

    Raises ValueError on a schema-version mismatch or invalid content.
    """
    _check_version(data, label, _LISTING_MIN_SCHEMA)
    try:
        return ApiListing.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"{label} is not a valid listing: {exc}") from exc


def load_listing(path: Path) -> ApiListing:
    """
    Load and validate a persisted api_listing.json.

    Raises FileNotFoundError if *path* is missing, ValueError if it is not
    a listing this reader understands.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path} is not valid JSON: {exc}") from exc

    listing = parse_listing(data, label=str(path))
    logger.debug("loaded %d types from %s", len(listing.types), path)
    return listing


def is_binary(path: Path) -> bool:
    """True when *path* starts with the PE ``MZ`` magic."""
    with open(path, "rb") as f:
        return f.read(2) == PE_MAGIC
