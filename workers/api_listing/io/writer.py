"""
Writer — serialize an ApiListing to JSON.

Filesystem layout per assembly:
    <output_root>/<assembly_stem>/api_listing.json

Keys are sorted and the document ends with a newline, so two readings of
the same binary produce byte-identical files.
"""
import json
from pathlib import Path

from api_listing.io.schema import ApiListing

LISTING_FILENAME = "api_listing.json"


def dump_listing(listing: ApiListing) -> str:
    return (
        json.dumps(
            listing.model_dump(mode="json"),
            indent=2,
            sort_keys=True,
        )
        + "\n"
    )


def write_listing(listing: ApiListing, output_dir: Path) -> Path:
    """
    Write api_listing.json into *output_dir*.

    Creates *output_dir* if it does not exist.
    Returns the path of the written file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    listing_path = output_dir / LISTING_FILENAME
    listing_path.write_text(dump_listing(listing), encoding="utf-8")
    return listing_path
