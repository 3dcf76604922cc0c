"""
User-supplied rules for versions an update must skip.

A condition names a dependency (``fnmatch`` wildcards allowed) and either
explicit requirement strings in the ecosystem's grammar, semver update types
(``version-update:semver-major`` and friends), or neither, which ignores
every version.
"""

import fnmatch
from dataclasses import dataclass
from typing import Optional, Tuple

from .ecosystem import Ecosystem
from .error_handling import ErrorCategory, get_error_handler
from .errors import InvalidRequirement, InvalidVersion
from .schemes import get_requirement_scheme, get_version_scheme

MAJOR = "version-update:semver-major"
MINOR = "version-update:semver-minor"
PATCH = "version-update:semver-patch"
UPDATE_TYPES = (MAJOR, MINOR, PATCH)


def update_type(ecosystem: Ecosystem, current_version: str, candidate: str) -> Optional[str]:
    """
    Classify the move from ``current_version`` to ``candidate``.

    Returns:
        Optional[str]: One of ``UPDATE_TYPES``, or None if the candidate is not newer
    """
    scheme = get_version_scheme(ecosystem)
    if scheme.compare(candidate, current_version) <= 0:
        return None

    current = scheme.release_segments(current_version)
    new = scheme.release_segments(candidate)
    width = max(len(current), len(new), 3)
    current = current + [0] * (width - len(current))
    new = new + [0] * (width - len(new))

    if new[0] != current[0]:
        return MAJOR
    if new[1] != current[1]:
        return MINOR
    return PATCH


@dataclass(frozen=True)
class IgnoreCondition:
    dependency_name: str
    versions: Tuple[str, ...] = ()
    update_types: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "versions", tuple(self.versions))
        object.__setattr__(self, "update_types", tuple(self.update_types))
        unknown = [t for t in self.update_types if t not in UPDATE_TYPES]
        if unknown:
            raise ValueError(f"Unknown update types: {', '.join(unknown)}")

    def applies_to(self, dependency_name: str) -> bool:
        return fnmatch.fnmatchcase(dependency_name, self.dependency_name)

    def ignores(self, ecosystem: Ecosystem, current_version: Optional[str], candidate: str) -> bool:
        if not self.versions and not self.update_types:
            return True

        requirement_scheme = get_requirement_scheme(ecosystem)
        for requirement in self.versions:
            try:
                if requirement_scheme.satisfied_by(requirement, candidate):
                    return True
            except (InvalidRequirement, InvalidVersion) as e:
                get_error_handler().warning(
                    ErrorCategory.CONFIGURATION,
                    f"Ignoring unusable ignore condition {requirement!r} for {self.dependency_name}",
                    "ignore_conditions",
                    "ignores",
                    exception=e,
                )

        if current_version is not None and self.update_types:
            return update_type(ecosystem, current_version, candidate) in self.update_types
        return False
