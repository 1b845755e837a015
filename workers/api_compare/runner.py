"""
Compare runner — top-level orchestration: (baseline, new) → ComparisonReport.

Either side may be a compiled assembly or a persisted api_listing.json;
assemblies are read with the api_listing reader first.  Exception lists
and the profile's mask and renames are applied here, so the comparer
itself stays a pure function of its inputs.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from api_compare.core.comparer import find_changes
from api_compare.io.loader import load_exceptions
from api_compare.io.schema import ComparisonReport, ExceptionList, Verdict
from api_compare.io.writer import EXCEPTIONS_FILENAME, write_exceptions, write_report
from api_compare.policy.change_types import change_type_names, parse_change_types
from api_compare.policy.exceptions import (
    ExceptionPredicate,
    accept_changes,
    apply_exceptions,
    predicates_from,
)
from api_compare.policy.profile import CompareProfile
from api_listing.io.schema import ApiListing
from api_listing.policy.filters import ApiFilter
from api_listing.runner import read_any

logger = logging.getLogger(__name__)

EXIT_MISSING_INPUT = 1
EXIT_UNREADABLE_INPUT = 2
EXIT_BREAKING_CHANGES = 3


def compare_listings(
    old: ApiListing,
    new: ApiListing,
    profile: CompareProfile | None = None,
    exceptions: Iterable[ExceptionPredicate] = (),
) -> ComparisonReport:
    """Compare two in-memory listings and wrap the result in a report."""
    if profile is None:
        profile = CompareProfile.v0()

    changes = find_changes(old, new, profile.change_types, profile.handlers())
    kept, suppressed = apply_exceptions(changes, exceptions)

    return ComparisonReport(
        profile_id=profile.profile_id,
        old_assembly=old.assembly_identity,
        new_assembly=new.assembly_identity,
        change_types=change_type_names(profile.change_types),
        verdict=Verdict.FAIL if kept else Verdict.PASS,
        changes=list(kept),
        suppressed=suppressed,
    )


def run_compare(
    old_path: str,
    new_path: str,
    profile: CompareProfile | None = None,
    exceptions_path: Path | None = None,
    output_dir: Path | None = None,
    filters: Iterable[ApiFilter] = (),
) -> ComparisonReport:
    """
    Compare a baseline against a new build.

    Parameters
    ----------
    old_path, new_path : str
        Assembly or api_listing.json for each side.
    profile : CompareProfile, optional
        Mask and renames.  Defaults to CompareProfile.v0().
    exceptions_path : Path, optional
        exceptions.json with accepted changes.
    output_dir : Path, optional
        Directory to write api_compare_report.json.  If None, nothing is
        written to disk (useful for API responses).
    filters : iterable of ApiFilter
        Exclusion filters applied when a side is read from an assembly.
    """
    if profile is None:
        profile = CompareProfile.v0()
    filters = list(filters)

    # ── Step 1: listings ─────────────────────────────────────────────
    old = read_any(old_path, filters)
    new = read_any(new_path, filters)
    logger.info("comparing %s -> %s", old.assembly_identity, new.assembly_identity)

    # ── Step 2: exceptions ───────────────────────────────────────────
    predicates = []
    if exceptions_path is not None:
        predicates = predicates_from(load_exceptions(exceptions_path))

    # ── Step 3: compare ──────────────────────────────────────────────
    report = compare_listings(old, new, profile, predicates)
    logger.info(
        "%s: %d breaking changes, %d suppressed",
        report.verdict.value,
        len(report.changes),
        report.suppressed,
    )

    # ── Step 4: persist ──────────────────────────────────────────────
    if output_dir:
        path = write_report(report, output_dir)
        logger.info("report written to %s", path)

    return report


# ── CLI ──────────────────────────────────────────────────────────────────────

def main(argv: Optional[list] = None):
    """CLI entry point for api_compare."""
    parser = argparse.ArgumentParser(
        description="api_compare — breaking-change check of a .NET assembly against its baseline",
        epilog="Exit status: 0 no breaking changes, 1 missing input, 2 unreadable input, 3 breaking changes.",
    )
    parser.add_argument(
        "baseline",
        help="Baseline assembly or api_listing.json",
    )
    parser.add_argument(
        "new",
        help="New assembly or api_listing.json",
    )
    parser.add_argument(
        "-e", "--exceptions",
        type=Path,
        default=None,
        help="exceptions.json with accepted breaking changes",
    )
    parser.add_argument(
        "--change-types",
        default="ALL",
        help="Comma-separated categories to evaluate (default: ALL)",
    )
    parser.add_argument(
        "--renames",
        type=Path,
        default=None,
        help="JSON object mapping old ids to new ids",
    )
    parser.add_argument(
        "--accept",
        action="store_true",
        help="Write exceptions.json accepting every change found",
    )
    parser.add_argument(
        "-o", "--output-dir",
        type=Path,
        default=None,
        help="Directory to write api_compare_report.json",
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

    for path in (args.baseline, args.new, args.exceptions, args.renames):
        if path is not None and not Path(path).exists():
            logger.error("File not found: %s", path)
            sys.exit(EXIT_MISSING_INPUT)

    try:
        renames = json.loads(args.renames.read_text(encoding="utf-8")) if args.renames else {}
        profile = CompareProfile(
            profile_id=CompareProfile.v0().profile_id,
            change_types=parse_change_types(args.change_types.split(",")),
            renames=renames,
        )
        report = run_compare(
            args.baseline,
            args.new,
            profile=profile,
            exceptions_path=args.exceptions,
            output_dir=args.output_dir,
        )
    except ValueError as e:
        logger.error("Cannot compare: %s", e)
        sys.exit(EXIT_UNREADABLE_INPUT)

    print(f"Baseline: {report.old_assembly}")
    print(f"New: {report.new_assembly}")
    print(f"Verdict: {report.verdict.value}")
    print(f"Breaking changes: {len(report.changes)} ({report.suppressed} suppressed)")
    for change in report.changes:
        old_id = change.old_item.id if change.old_item else "-"
        new_id = change.new_item.id if change.new_item else "-"
        print(f"  {change.kind.value}: {old_id} -> {new_id}")

    if args.accept and report.changes:
        target = args.exceptions or (args.output_dir or Path(".")) / EXCEPTIONS_FILENAME
        accepted = accept_changes(report.changes)
        if args.exceptions:
            previous = load_exceptions(args.exceptions)
            accepted = ExceptionList(exceptions=previous.exceptions + accepted.exceptions)
        write_exceptions(accepted, target)
        print(f"Accepted changes written to: {target}")

    if args.output_dir:
        print(f"Outputs written to: {args.output_dir}")

    if report.verdict == Verdict.FAIL and not args.accept:
        sys.exit(EXIT_BREAKING_CHANGES)


if __name__ == "__main__":
    main()
