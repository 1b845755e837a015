"""
Profile — verifier profile descriptor.

Names the rules to run and the files a package directory contributes.
"""
from dataclasses import dataclass, field
from typing import List

from package_verifier.policy.rules import AssemblyRule, rules_by_name


@dataclass(frozen=True)
class VerifierProfile:
    """Describes which rules run against which files."""

    # Identity
    profile_id: str

    rule_names: List[str] = field(default_factory=list)
    assembly_suffixes: List[str] = field(default_factory=lambda: [".dll", ".exe"])

    def rules(self) -> List[AssemblyRule]:
        return rules_by_name(self.rule_names)

    @classmethod
    def v0(cls) -> "VerifierProfile":
        """The locked v0 profile: the copyright attribute rule."""
        return cls(
            profile_id="package-attributes-v0",
            rule_names=["AssemblyHasCopyrightAttributeRule"],
        )
