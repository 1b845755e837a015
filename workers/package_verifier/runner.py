"""
Verifier runner — top-level orchestration: assembly → VerificationReport.

Verifies a single assembly, or every assembly below a package directory
(files that are not .NET assemblies are skipped there, as a package
may ship native binaries).
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from api_listing.core.errors import NotAnAssemblyError
from api_listing.core.metadata_loader import open_image
from package_verifier.io.schema import IssueLevel, VerificationReport, Verdict, VerifierIssue
from package_verifier.io.writer import write_report
from package_verifier.policy.profile import VerifierProfile
from package_verifier.policy.rules import AssemblyRule

logger = logging.getLogger(__name__)


def verify_assembly(
    path: str,
    rules: Iterable[AssemblyRule],
    profile_id: str = "",
) -> VerificationReport:
    """
    Run *rules* against the assembly at *path*.

    Raises FileNotFoundError, NotAnAssemblyError or MetadataFormatError
    when *path* is not a readable assembly.
    """
    rules = list(rules)
    image = open_image(path)

    issues: List[VerifierIssue] = []
    for rule in rules:
        found = list(rule.validate(path, image))
        logger.debug("%s: %s raised %d issues", path, rule.name, len(found))
        issues.extend(found)

    failed = any(issue.level == IssueLevel.ERROR for issue in issues)
    return VerificationReport(
        profile_id=profile_id,
        assembly_path=path,
        assembly_identity=image.assembly_identity(),
        verdict=Verdict.FAIL if failed else Verdict.PASS,
        rules=[rule.name for rule in rules],
        issues=issues,
    )


def iter_assemblies(root: Path, suffixes: Iterable[str]) -> List[Path]:
    suffixes = {s.lower() for s in suffixes}
    return sorted(p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in suffixes)


def run_verifier(
    path: str,
    profile: VerifierProfile | None = None,
    output_dir: Path | None = None,
) -> List[VerificationReport]:
    """
    Verify one assembly, or every assembly below a directory.

    Parameters
    ----------
    path : str
        Assembly file or package directory.
    profile : VerifierProfile, optional
        Rules to run.  Defaults to VerifierProfile.v0().
    output_dir : Path, optional
        Root directory for reports (one <stem>/ folder per assembly).
    """
    if profile is None:
        profile = VerifierProfile.v0()
    rules = profile.rules()

    # ── Step 1: collect targets ──────────────────────────────────────
    root = Path(path)
    if not root.exists():
        raise FileNotFoundError(f"Input not found: {path}")
    targets = iter_assemblies(root, profile.assembly_suffixes) if root.is_dir() else [root]

    # ── Step 2: verify ───────────────────────────────────────────────
    reports: List[VerificationReport] = []
    for target in targets:
        try:
            report = verify_assembly(str(target), rules, profile.profile_id)
        except NotAnAssemblyError:
            if not root.is_dir():
                raise
            logger.debug("skipping %s: not a .NET assembly", target)
            continue
        logger.info("%s: %s (%d issues)", target, report.verdict.value, len(report.issues))
        reports.append(report)

        # ── Step 3: persist ──────────────────────────────────────────
        if output_dir:
            write_report(report, output_dir / target.stem)

    return reports


# ── CLI ──────────────────────────────────────────────────────────────────────

def main(argv: Optional[list] = None):
    """CLI entry point for package_verifier."""
    parser = argparse.ArgumentParser(
        description="package_verifier — assembly attribute rules",
    )
    parser.add_argument(
        "path",
        help="Assembly or package directory",
    )
    parser.add_argument(
        "-o", "--output-dir",
        type=Path,
        default=None,
        help="Directory to write verification reports",
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

    if not Path(args.path).exists():
        logger.error("File not found: %s", args.path)
        sys.exit(1)

    try:
        reports = run_verifier(args.path, output_dir=args.output_dir)
    except ValueError as e:
        logger.error("Cannot verify %s: %s", args.path, e)
        sys.exit(2)

    issues = [issue for report in reports for issue in report.issues]
    print(f"Assemblies: {len(reports)}")
    print(f"Issues: {len(issues)}")
    for issue in issues:
        print(f"  {issue.level.value} {issue.issue_id}: {issue.file_path}")

    if args.output_dir:
        print(f"Outputs written to: {args.output_dir}")

    if any(report.verdict == Verdict.FAIL for report in reports):
        sys.exit(3)


if __name__ == "__main__":
    main()
