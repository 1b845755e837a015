"""
Schema — Pydantic models for the runtime installer.

Inputs:
  DotNetAsset — one runtime or SDK to install.

One output per run:
  install_result.json — per-asset outcome, warnings and the first error.

Runtime contract fields (present in every output):
  package_name, installer_version, schema_version.
"""
from datetime import datetime, timezone
from enum import Enum, unique
from typing import List, Optional

from pydantic import BaseModel, Field

from dotnet_install import INSTALLER_VERSION, PACKAGE_NAME, SCHEMA_VERSION


# ═══════════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════════

@unique
class AssetStatus(str, Enum):
    INSTALLED = "INSTALLED"
    SKIPPED = "SKIPPED"        # already present in the install dir
    FAILED = "FAILED"          # nonzero exit
    TIMED_OUT = "TIMED_OUT"
    CANCELLED = "CANCELLED"


@unique
class InstallWarningId(str, Enum):
    DOTNET_ASSET_VERSION_IS_FLOATING = "DOTNET_ASSET_VERSION_IS_FLOATING"


# ═══════════════════════════════════════════════════════════════════════════════
# Models
# ═══════════════════════════════════════════════════════════════════════════════

class DotNetAsset(BaseModel):
    """A runtime or SDK request.  Empty strings mean "use the default"."""

    version: str
    shared_runtime: bool = False
    channel: str = ""
    arch: str = ""
    install_dir: str = ""


class InstallWarning(BaseModel):
    warning_id: InstallWarningId
    message: str


class AssetOutcome(BaseModel):
    asset_name: str
    install_dir: str
    status: AssetStatus
    command: List[str] = Field(default_factory=list)
    output: List[str] = Field(default_factory=list)
    exit_code: Optional[int] = None


class InstallResult(BaseModel):
    """Run summary — install_result.json."""

    package_name: str = PACKAGE_NAME
    installer_version: str = INSTALLER_VERSION
    schema_version: str = SCHEMA_VERSION
    profile_id: str

    install_script: str
    success: bool
    error: Optional[str] = None

    outcomes: List[AssetOutcome] = Field(default_factory=list)
    warnings: List[InstallWarning] = Field(default_factory=list)

    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
