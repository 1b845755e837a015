"""Helpers shared by installer tests."""
import shutil
from pathlib import Path

import pytest

requires_bash = pytest.mark.skipif(shutil.which("bash") is None, reason="bash not available")


def mark_installed(home: Path, version: str, shared_runtime: bool) -> Path:
    """Create the file whose presence marks *version* as installed."""
    if shared_runtime:
        path = home / "shared" / "Microsoft.NETCore.App" / version / ".version"
    else:
        path = home / "sdk" / version / "dotnet.dll"
    path.parent.mkdir(parents=True)
    path.write_text(version)
    return path
