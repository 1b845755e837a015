"""
Writer — serialize verification reports to JSON.

Filesystem layout per assembly:
    <output_root>/<assembly_stem>/verification_report.json
"""
import json
from pathlib import Path

from package_verifier.io.schema import VerificationReport

REPORT_FILENAME = "verification_report.json"


def write_report(report: VerificationReport, output_dir: Path) -> Path:
    """
    Write verification_report.json into *output_dir*.

    Creates *output_dir* if it does not exist.
    Returns the path of the written file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    report_path = output_dir / REPORT_FILENAME
    report_path.write_text(
        json.dumps(report.model_dump(mode="json"), indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return report_path
