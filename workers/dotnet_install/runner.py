"""
Installer runner — top-level orchestration: assets → InstallResult.

Runs the dotnet-install script once per requested runtime or SDK,
sequentially, stopping at the first failure.  ``install_assets`` is a
coroutine driven by an explicit cancel event; ``run_install`` wraps it
for synchronous callers and persists the result.
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from dotnet_install.core.process import run_process
from dotnet_install.core.requests import (
    order_assets,
    request_arguments,
    resolve_request,
    script_command,
)
from dotnet_install.io.schema import (
    AssetOutcome,
    AssetStatus,
    DotNetAsset,
    InstallResult,
    InstallWarning,
    InstallWarningId,
)
from dotnet_install.io.writer import write_result
from dotnet_install.policy.profile import InstallProfile

logger = logging.getLogger(__name__)


def _floating_warning(asset_name: str) -> InstallWarning:
    return InstallWarning(
        warning_id=InstallWarningId.DOTNET_ASSET_VERSION_IS_FLOATING,
        message=(
            f"The version of {asset_name} being installed is a floating version. "
            "This may result in irreproducible builds. "
            "Consider specifying an exact version number instead."
        ),
    )


async def install_assets(
    assets: Sequence[DotNetAsset],
    install_script: str,
    dotnet_home: Optional[str] = None,
    timeout_seconds: Optional[float] = None,
    cancel_event: Optional[asyncio.Event] = None,
    profile: InstallProfile | None = None,
) -> InstallResult:
    """
    Install *assets* with *install_script*.

    Parameters
    ----------
    assets : sequence of DotNetAsset
        Runtimes and SDKs to install.  SDKs run first.
    install_script : str
        Path to dotnet-install.sh or dotnet-install.cmd.
    dotnet_home : str, optional
        Default install root for assets without an install dir.
    timeout_seconds : float, optional
        Per-request timeout.  Defaults to the profile's.
    cancel_event : asyncio.Event, optional
        When set, the running script is terminated and no further
        request starts.

    Raises
    ------
    ValueError
        If the script type is not supported or an install dir cannot
        be determined.
    """
    if profile is None:
        profile = InstallProfile.v0()
    if timeout_seconds is None:
        timeout_seconds = profile.timeout_seconds
    if cancel_event is None:
        cancel_event = asyncio.Event()

    result = InstallResult(profile_id=profile.profile_id, install_script=install_script, success=True)
    if not assets:
        return result

    if not Path(install_script).is_file():
        result.success = False
        result.error = f"Could not install .NET Core. Expected the install script to be in '{install_script}'"
        logger.error(result.error)
        return result

    # ── Step 1: requests ─────────────────────────────────────────────
    exe, default_args = script_command(install_script, profile.default_args)
    requests = [resolve_request(a, dotnet_home, profile.default_arch) for a in order_assets(assets)]

    # ── Step 2: run each request ─────────────────────────────────────
    for request in requests:
        if cancel_event.is_set():
            result.success = False
            result.error = "Installation cancelled"
            logger.info("cancelled before %s", request.asset_name)
            return result

        name = request.asset_name
        if request.is_installed():
            logger.info("%s is already installed. Skipping installation.", name)
            result.outcomes.append(
                AssetOutcome(asset_name=name, install_dir=request.install_dir, status=AssetStatus.SKIPPED)
            )
            continue

        logger.info("Installing %s", name)
        if request.is_floating:
            warning = _floating_warning(name)
            logger.warning("%s: %s", warning.warning_id.value, warning.message)
            result.warnings.append(warning)

        argv = [exe, *default_args, *request_arguments(request)]
        logger.debug("Executing %s", " ".join(argv))
        outcome = await run_process(argv, timeout_seconds, cancel_event, profile.terminate_grace_seconds)

        if outcome.cancelled:
            status = AssetStatus.CANCELLED
            error = f"dotnet-install of {name} was cancelled."
        elif outcome.timed_out:
            status = AssetStatus.TIMED_OUT
            error = f"dotnet-install of {name} timed out after {timeout_seconds} seconds."
        elif outcome.exit_code != 0:
            status = AssetStatus.FAILED
            error = f"dotnet-install failed on {name}.\nArguments: {' '.join(argv)}"
        else:
            status = AssetStatus.INSTALLED
            error = None

        result.outcomes.append(
            AssetOutcome(
                asset_name=name,
                install_dir=request.install_dir,
                status=status,
                command=argv,
                output=outcome.output,
                exit_code=outcome.exit_code,
            )
        )
        if error is not None:
            result.success = False
            result.error = error + "\nOutput:\n" + "\n".join(outcome.output)
            logger.error(result.error)
            return result

    return result


def run_install(
    assets: Sequence[DotNetAsset],
    install_script: str,
    dotnet_home: Optional[str] = None,
    profile: InstallProfile | None = None,
    output_dir: Path | None = None,
) -> InstallResult:
    """Synchronous wrapper around install_assets; writes install_result.json."""
    result = asyncio.run(install_assets(assets, install_script, dotnet_home, profile=profile))
    if output_dir:
        path = write_result(result, output_dir)
        logger.info("result written to %s", path)
    return result


# ── CLI ──────────────────────────────────────────────────────────────────────

def _assets_from_args(args) -> List[DotNetAsset]:
    common = dict(channel=args.channel or "", arch=args.arch or "", install_dir=args.install_dir or "")
    return [
        *(DotNetAsset(version=v, **common) for v in args.sdk),
        *(DotNetAsset(version=v, shared_runtime=True, **common) for v in args.runtime),
    ]


def main(argv: Optional[list] = None):
    """CLI entry point for dotnet_install."""
    parser = argparse.ArgumentParser(
        description="dotnet_install — install .NET runtimes and SDKs via dotnet-install",
    )
    parser.add_argument(
        "script",
        help="Path to dotnet-install.sh or dotnet-install.cmd",
    )
    parser.add_argument(
        "--sdk",
        action="append",
        default=[],
        metavar="VERSION",
        help="SDK version to install (repeatable)",
    )
    parser.add_argument(
        "--runtime",
        action="append",
        default=[],
        metavar="VERSION",
        help="Shared runtime version to install (repeatable)",
    )
    parser.add_argument("--channel", default=None, help="Channel passed to every request")
    parser.add_argument("--arch", default=None, help="Architecture (default: x64)")
    parser.add_argument("--install-dir", default=None, help="Install dir for every request")
    parser.add_argument("--dotnet-home", default=None, help="Default install root")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds (default: 240)",
    )
    parser.add_argument(
        "-o", "--output-dir",
        type=Path,
        default=None,
        help="Directory to write install_result.json",
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

    profile = InstallProfile.v0()
    if args.timeout is not None:
        profile = InstallProfile(profile_id=profile.profile_id, timeout_seconds=args.timeout)

    try:
        result = run_install(
            _assets_from_args(args),
            args.script,
            dotnet_home=args.dotnet_home,
            profile=profile,
            output_dir=args.output_dir,
        )
    except ValueError as e:
        logger.error("Cannot install: %s", e)
        sys.exit(2)

    for outcome in result.outcomes:
        print(f"{outcome.status.value:<10} {outcome.asset_name}")
    print(f"Warnings: {len(result.warnings)}")

    if args.output_dir:
        print(f"Outputs written to: {args.output_dir}")

    if not result.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
