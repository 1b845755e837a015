"""
Rules — checks applied to each assembly of a package.

A rule receives the assembly's path and metadata image and yields
VerifierIssues.  Attribute rules share one base that hands them the
assembly-level attributes.
"""
from typing import Dict, Iterable, List, Type

from api_listing.core.metadata_loader import MetadataImage
from package_verifier.core.attributes import AssemblyAttribute, assembly_attributes, string_argument
from package_verifier.io.schema import IssueLevel, VerifierIssue

COPYRIGHT_ATTRIBUTE = "System.Reflection.AssemblyCopyrightAttribute"


# ── Issues ───────────────────────────────────────────────────────────────────

def assembly_missing_copyright(file_path: str) -> VerifierIssue:
    return VerifierIssue(
        issue_id="ASSEMBLY_MISSING_COPYRIGHT",
        file_path=file_path,
        level=IssueLevel.ERROR,
        message=f"The assembly '{file_path}' is missing the copyright attribute.",
    )


# ── Rules ────────────────────────────────────────────────────────────────────

class AssemblyRule:
    """Base class of assembly rules."""

    name = "AssemblyRule"

    def validate(self, file_path: str, image: MetadataImage) -> Iterable[VerifierIssue]:
        raise NotImplementedError


class AssemblyHasAttributeRuleBase(AssemblyRule):
    """Rules that inspect only the assembly-level custom attributes."""

    def validate(self, file_path: str, image: MetadataImage) -> Iterable[VerifierIssue]:
        return self.validate_attributes(file_path, assembly_attributes(image))

    def validate_attributes(
        self,
        file_path: str,
        attributes: List[AssemblyAttribute],
    ) -> Iterable[VerifierIssue]:
        raise NotImplementedError


class AssemblyHasCopyrightAttributeRule(AssemblyHasAttributeRuleBase):
    """The assembly carries a copyright attribute with a non-empty text."""

    name = "AssemblyHasCopyrightAttributeRule"

    def validate_attributes(self, file_path, attributes):
        if not has_copyright(attributes):
            yield assembly_missing_copyright(file_path)


def has_copyright(attributes: List[AssemblyAttribute]) -> bool:
    found = [a for a in attributes if a.type_name == COPYRIGHT_ATTRIBUTE]
    if len(found) != 1:
        return False
    return bool(string_argument(found[0].value))


RULES: Dict[str, Type[AssemblyRule]] = {
    AssemblyHasCopyrightAttributeRule.name: AssemblyHasCopyrightAttributeRule,
}


def rules_by_name(names: Iterable[str]) -> List[AssemblyRule]:
    """Instantiate registered rules; raises ValueError on an unknown name."""
    result = []
    for name in names:
        if name not in RULES:
            raise ValueError(f"unknown rule {name!r}")
        result.append(RULES[name]())
    return result
