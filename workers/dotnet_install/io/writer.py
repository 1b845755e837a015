"""
Writer — serialize the installer result to JSON.

Filesystem layout:
    <output_dir>/install_result.json
"""
import json
from pathlib import Path

from dotnet_install.io.schema import InstallResult

RESULT_FILENAME = "install_result.json"


def write_result(result: InstallResult, output_dir: Path) -> Path:
    """
    Write install_result.json into *output_dir*.

    Creates *output_dir* if it does not exist.
    Returns the path of the written file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    result_path = output_dir / RESULT_FILENAME
    result_path.write_text(
        json.dumps(result.model_dump(mode="json"), indent=2, sort_keys=True) + "\n",
        encoding="utf-8",
    )
    return result_path
