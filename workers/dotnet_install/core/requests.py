"""
Asset requests — turn DotNetAssets into dotnet-install invocations.

Responsibilities:
  - Order requests: SDKs first (they usually bundle a shared runtime,
    which then no longer needs a download), shared runtimes after.
  - Pick the script interpreter from the script extension.
  - Resolve the install directory of each request.
  - Detect assets that are already installed.
  - Assemble the argument list of one invocation.
"""
from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from dotnet_install.io.schema import DotNetAsset

logger = logging.getLogger(__name__)

FLOATING_VERSIONS = frozenset({"latest", "coherent"})


@dataclass(frozen=True)
class InstallRequest:
    """A DotNetAsset with its defaults resolved."""

    version: str
    shared_runtime: bool
    channel: str
    arch: str
    install_dir: str

    @property
    def is_floating(self) -> bool:
        return self.version.lower() in FLOATING_VERSIONS

    @property
    def asset_name(self) -> str:
        kind = "runtime" if self.shared_runtime else "sdk"
        name = f".NET Core {kind} ({self.arch}) {self.version}"
        if self.channel:
            name += f"/{self.channel}"
        return name

    def expected_path(self) -> Path:
        """File whose presence means the asset is already installed."""
        if self.shared_runtime and not self.is_floating:
            return Path(self.install_dir, "shared", "Microsoft.NETCore.App", self.version, ".version")
        return Path(self.install_dir, "sdk", self.version, "dotnet.dll")

    def is_installed(self) -> bool:
        return self.expected_path().is_file()


def order_assets(assets: Sequence[DotNetAsset]) -> List[DotNetAsset]:
    """SDKs first, then shared runtimes; order within each group is kept."""
    return [a for a in assets if not a.shared_runtime] + [a for a in assets if a.shared_runtime]


def script_command(install_script: str, default_args: Sequence[str]) -> Tuple[str, List[str]]:
    """
    Executable and leading arguments for *install_script*.

    Raises
    ------
    ValueError
        If the script is neither ``.sh`` nor ``.cmd``.
    """
    ext = Path(install_script).suffix.lower()
    if ext == ".sh":
        return "bash", [install_script, *default_args]
    if ext == ".cmd":
        return install_script, list(default_args)
    raise ValueError(f"Unexpected dotnet-install script type: {install_script}")


def muxer_dir() -> Optional[str]:
    """Directory of the dotnet executable on PATH, if any."""
    muxer = shutil.which("dotnet")
    if muxer is None:
        return None
    return str(Path(os.path.realpath(muxer)).parent)


def resolve_install_dir(
    arch: str,
    dotnet_home: Optional[str],
    is_windows: Optional[bool] = None,
) -> Optional[str]:
    """
    Default install directory for *arch*.

    Uses *dotnet_home* when given, else the location of the running
    dotnet.  On Windows every architecture gets its own subdirectory.
    Returns None when neither is known.
    """
    if is_windows is None:
        is_windows = os.name == "nt"

    if dotnet_home:
        return str(Path(dotnet_home, arch)) if is_windows else dotnet_home

    dotnet_dir = muxer_dir()
    if dotnet_dir is None:
        return None
    return str(Path(dotnet_dir).parent / arch) if is_windows else dotnet_dir


def resolve_request(asset: DotNetAsset, dotnet_home: Optional[str], default_arch: str) -> InstallRequest:
    """
    Raises
    ------
    ValueError
        If no install directory can be determined.
    """
    arch = asset.arch or default_arch
    install_dir = asset.install_dir or resolve_install_dir(arch, dotnet_home)
    if not install_dir:
        raise ValueError(
            f"Cannot determine where to install {asset.version}: "
            "no install dir, no dotnet home and no dotnet on PATH"
        )
    return InstallRequest(
        version=asset.version,
        shared_runtime=asset.shared_runtime,
        channel=asset.channel,
        arch=arch,
        install_dir=install_dir,
    )


def request_arguments(request: InstallRequest) -> List[str]:
    """Per-request arguments appended after the script's default ones."""
    args = ["-Architecture", request.arch, "-InstallDir", request.install_dir]
    if request.shared_runtime:
        args.append("-SharedRuntime")
    args += ["-Version", request.version]
    if request.channel:
        args += ["-Channel", request.channel]
    return args
