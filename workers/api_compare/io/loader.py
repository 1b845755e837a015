"""
Loader — read exception lists and comparison reports back from disk.

Listings themselves are read through api_listing (assembly or
api_listing.json).
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Tuple

from pydantic import ValidationError

from api_compare.io.schema import ComparisonReport, ExceptionList

logger = logging.getLogger(__name__)

# Minimum schema versions accepted.
_EXCEPTIONS_MIN_SCHEMA = (0, 1)
_REPORT_MIN_SCHEMA = (0, 1)


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


def _read_json(path: Path) -> dict:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path} is not valid JSON: {exc}") from exc


def parse_exceptions(data: dict, label: str = "exception list") -> ExceptionList:
    _check_version(data, label, _EXCEPTIONS_MIN_SCHEMA)
    try:
        return ExceptionList.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"{label} is not a valid exception list: {exc}") from exc


def load_exceptions(path: Path) -> ExceptionList:
    """
    Load exceptions.json.

    Raises FileNotFoundError if missing, ValueError if malformed.
    """
    exceptions = parse_exceptions(_read_json(path), label=str(path))
    logger.debug("loaded %d exceptions from %s", len(exceptions.exceptions), path)
    return exceptions


def load_report(path: Path) -> ComparisonReport:
    """Load a previously written api_compare_report.json."""
    data = _read_json(path)
    _check_version(data, str(path), _REPORT_MIN_SCHEMA)
    try:
        return ComparisonReport.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"{path} is not a valid comparison report: {exc}") from exc
