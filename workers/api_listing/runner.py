"""
Listing runner — top-level orchestration: assembly → ApiListing.

This module ties PE reading, metadata parsing, descriptor construction
and IO together into a single ``run_reader`` function that can be called
from the API endpoint or from a CLI.
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from api_listing.core.metadata_loader import open_image
from api_listing.core.type_index import build_listing
from api_listing.io.loader import is_binary, load_listing
from api_listing.io.schema import ApiListing
from api_listing.io.writer import write_listing
from api_listing.policy.filters import ApiFilter
from api_listing.policy.profile import ReaderProfile

logger = logging.getLogger(__name__)


def read_listing(binary_path: str, filters: Iterable[ApiFilter] = ()) -> ApiListing:
    """
    Read the public surface of the assembly at *binary_path*.

    Raises
    ------
    FileNotFoundError
        If *binary_path* does not exist.
    NotAnAssemblyError, MetadataFormatError
        If the file is not a readable .NET assembly.
    UnsupportedMetadataError
        On a metadata shape the reader cannot describe.
    """
    image = open_image(binary_path)
    return build_listing(image, filters)


def read_any(path: str, filters: Iterable[ApiFilter] = ()) -> ApiListing:
    """
    Produce a listing from either an assembly or a persisted listing.

    Files starting with the PE ``MZ`` magic are read as assemblies; anything
    else is loaded as api_listing.json (filters do not apply to it).
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Input not found: {path}")
    if is_binary(p):
        return read_listing(str(p), filters)
    return load_listing(p)


def run_reader(
    binary_path: str,
    profile: ReaderProfile | None = None,
    output_dir: Path | None = None,
) -> ApiListing:
    """
    Run the listing reader on a single assembly.

    Parameters
    ----------
    binary_path : str
        Path to the compiled assembly (.dll / .exe).
    profile : ReaderProfile, optional
        Exclusion profile.  Defaults to ReaderProfile.v0().
    output_dir : Path, optional
        Directory to write api_listing.json.  If None, nothing is
        written to disk (useful for API responses).
    """
    if profile is None:
        profile = ReaderProfile.v0()

    # ── Step 1: read metadata + build descriptors ─────────────────────
    listing = read_listing(binary_path, profile.filters())
    logger.info(
        "%s: %d types, %d members (%s)",
        listing.assembly_identity,
        len(listing.types),
        sum(len(t.members) for t in listing.types),
        profile.profile_id,
    )

    # ── Step 2: persist ──────────────────────────────────────────────
    if output_dir:
        path = write_listing(listing, output_dir)
        logger.info("listing written to %s", path)

    return listing


# ── CLI ──────────────────────────────────────────────────────────────────────

def main(argv: Optional[list] = None):
    """CLI entry point for api_listing."""
    parser = argparse.ArgumentParser(
        description="api_listing — public API surface reader for .NET assemblies",
    )
    parser.add_argument(
        "binary",
        help="Path to the compiled assembly",
    )
    parser.add_argument(
        "-o", "--output-dir",
        type=Path,
        default=None,
        help="Directory to write api_listing.json",
    )
    parser.add_argument(
        "--exclude-internal",
        action="store_true",
        help="Drop types in *.Internal namespaces",
    )
    parser.add_argument(
        "--exclude-namespace",
        action="append",
        default=[],
        metavar="NS",
        help="Drop types in NS and below (repeatable)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not Path(args.binary).exists():
        logger.error("File not found: %s", args.binary)
        sys.exit(1)

    profile = ReaderProfile(
        profile_id=ReaderProfile.v0().profile_id,
        exclude_internal=args.exclude_internal,
        excluded_namespaces=frozenset(args.exclude_namespace),
    )

    try:
        listing = run_reader(args.binary, profile=profile, output_dir=args.output_dir)
    except ValueError as e:
        logger.error("Cannot read %s: %s", args.binary, e)
        sys.exit(2)

    print(f"Assembly: {listing.assembly_identity}")
    print(f"Types: {len(listing.types)}")
    print(f"Members: {sum(len(t.members) for t in listing.types)}")

    if args.output_dir:
        print(f"Outputs written to: {args.output_dir}")


if __name__ == "__main__":
    main()
