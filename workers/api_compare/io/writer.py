"""
Writer — serialize comparison outputs to JSON.

Filesystem layout:
    <output_dir>/api_compare_report.json
    <output_dir>/exceptions.json          (only when accepting changes)
"""
import json
from pathlib import Path

from pydantic import BaseModel

from api_compare.io.schema import ComparisonReport, ExceptionList

REPORT_FILENAME = "api_compare_report.json"
EXCEPTIONS_FILENAME = "exceptions.json"


def _dump(model: BaseModel) -> str:
    return (
        json.dumps(
            model.model_dump(mode="json", exclude_none=True),
            indent=2,
            sort_keys=True,
        )
        + "\n"
    )


def write_report(report: ComparisonReport, output_dir: Path) -> Path:
    """
    Write api_compare_report.json into *output_dir*.

    Creates *output_dir* if it does not exist.
    Returns the path of the written file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    report_path = output_dir / REPORT_FILENAME
    report_path.write_text(_dump(report), encoding="utf-8")
    return report_path


def write_exceptions(exceptions: ExceptionList, path: Path) -> Path:
    """Write an exception list to *path* (a file name, not a directory)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_dump(exceptions), encoding="utf-8")
    return path
