"""
Profile — installer profile descriptor and tunable parameters.
"""
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class InstallProfile:
    """Describes how dotnet-install is invoked."""

    # Identity
    profile_id: str

    # Per-request timeout
    timeout_seconds: float = 240

    # Passed to every script invocation:
    #   -SkipNonVersionedFiles  never overwrite the running dotnet executable
    #   -NoPath                 leave PATH untouched
    #   -Verbose                output is captured, not shown
    default_args: Tuple[str, ...] = ("-SkipNonVersionedFiles", "-NoPath", "-Verbose")

    default_arch: str = "x64"

    # Grace period between terminate and kill of a stopped script
    terminate_grace_seconds: float = 5.0

    @classmethod
    def v0(cls) -> "InstallProfile":
        """The locked v0 profile."""
        return cls(profile_id="dotnet-install-v0")
