"""
Requirement string updates.

Given a dependency's requirements and a target version, produce new
requirement strings by substituting the version token in place. Ranges,
requirements without a version and git or path sources are left as they
are, and every other character of the string is preserved.
"""

import re
from typing import ClassVar, List, Optional, Pattern, Sequence

from .dependency import GitSource, PathSource, RegistrySource, Requirement
from .ecosystem import Ecosystem
from .go_version import GoVersion


class RequirementsUpdater:
    """
    Shared update policy; subclasses supply the version token pattern.

    Args:
        requirements: The dependency's current requirements
        target_version: Version to move to, or None for no change
        source_url: Registry the target version was found in (provenance)
    """

    ecosystem: ClassVar[Ecosystem]
    VERSION_PATTERN: ClassVar[Pattern[str]]
    REPLACE_COUNT: ClassVar[int] = 0

    def __init__(
        self,
        requirements: Sequence[Requirement],
        target_version: Optional[str],
        source_url: Optional[str] = None,
    ):
        self.requirements = list(requirements)
        self.target_version = target_version
        self.source_url = source_url

    def updated_requirements(self) -> List[Requirement]:
        if self.target_version is None:
            return list(self.requirements)
        return [self._update(requirement) for requirement in self.requirements]

    def format_version(self) -> str:
        return self.target_version

    def _update(self, requirement: Requirement) -> Requirement:
        text = requirement.requirement
        if text is None or not re.search(r"\d", text):
            return requirement
        # Ranges cannot take a single version losslessly
        if "," in text:
            return requirement
        if isinstance(requirement.source, (GitSource, PathSource)):
            return requirement

        new_version = self.format_version()
        new_text = self.VERSION_PATTERN.sub(lambda _: new_version, text, count=self.REPLACE_COUNT)
        return requirement.with_requirement(new_text, source=self._updated_source())

    def _updated_source(self) -> Optional[RegistrySource]:
        return RegistrySource(url=self.source_url) if self.source_url else None


class GoRequirementsUpdater(RequirementsUpdater):
    """go.mod requirements are a single ``v``-prefixed version."""

    ecosystem = Ecosystem.GO_MODULES
    VERSION_PATTERN = re.compile(r"v?\d+\.\d+\.\d+(?:-[0-9A-Za-z.\-]+)?(?:\+[0-9A-Za-z.\-]+)?")
    REPLACE_COUNT = 1

    def format_version(self) -> str:
        return GoVersion(self.target_version).go_string()


class MavenRequirementsUpdater(RequirementsUpdater):
    """Every version-looking token in a Maven requirement is replaced."""

    ecosystem = Ecosystem.MAVEN
    VERSION_PATTERN = re.compile(r"[0-9]+(?:\.[a-zA-Z0-9\-]+)*")
