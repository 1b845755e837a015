"""
Shared pytest fixtures for dotnet_install tests.

Scripts are throwaway bash files standing in for dotnet-install.sh; each
appends its arguments to calls.log next to itself before running the
given body.
"""
from pathlib import Path

import pytest


@pytest.fixture
def make_script(tmp_path):
    """Factory: make_script(body) -> (script path, calls.log path)."""

    def _make(body: str = "exit 0", name: str = "dotnet-install.sh"):
        script = tmp_path / name
        log = tmp_path / "calls.log"
        script.write_text(
            "#!/usr/bin/env bash\n"
            f"printf '%s\\n' \"$*\" >> '{log}'\n"
            f"{body}\n"
        )
        return script, log

    return _make


@pytest.fixture
def dotnet_home(tmp_path) -> Path:
    home = tmp_path / "dotnet"
    home.mkdir()
    return home
