"""
Static registry of per-ecosystem version and requirement schemes.

Every supported ecosystem is wired here explicitly. The two capability sets
are expressed as protocols; implementations share no base class.
"""

from typing import Any, Dict, List, Optional, Protocol

from .ecosystem import Ecosystem
from .errors import InvalidVersion
from .go_version import GoRequirementScheme, GoVersionScheme
from .maven_version import MavenRequirementScheme, MavenVersionScheme


class VersionScheme(Protocol):
    """Ordering over one ecosystem's version strings."""

    def parse(self, version: str) -> Any: ...

    def is_valid(self, version: Optional[str]) -> bool: ...

    def compare(self, a: str, b: str) -> int: ...

    def is_prerelease(self, version: str) -> bool: ...

    def release_segments(self, version: str) -> List[int]: ...


class RequirementScheme(Protocol):
    """Grammar for one ecosystem's requirement strings."""

    def parse(self, requirement: str) -> Any: ...

    def satisfied_by(self, requirement: str, version: str) -> bool: ...

    def render(self, version: str) -> str: ...


VERSION_SCHEMES: Dict[Ecosystem, VersionScheme] = {
    Ecosystem.GO_MODULES: GoVersionScheme(),
    Ecosystem.MAVEN: MavenVersionScheme(),
}

REQUIREMENT_SCHEMES: Dict[Ecosystem, RequirementScheme] = {
    Ecosystem.GO_MODULES: GoRequirementScheme(),
    Ecosystem.MAVEN: MavenRequirementScheme(),
}


def get_version_scheme(ecosystem) -> VersionScheme:
    return VERSION_SCHEMES[Ecosystem.from_value(ecosystem)]


def get_requirement_scheme(ecosystem) -> RequirementScheme:
    return REQUIREMENT_SCHEMES[Ecosystem.from_value(ecosystem)]


def compare_versions(ecosystem, a: str, b: str) -> Optional[int]:
    """
    Compare two versions under an ecosystem's scheme.

    Returns:
        -1, 0 or 1, or None when either version is malformed and no
        ordering can be established
    """
    try:
        result = get_version_scheme(ecosystem).compare(a, b)
    except InvalidVersion:
        return None
    return (result > 0) - (result < 0)


def versions_equal(ecosystem, a: Optional[str], b: Optional[str]) -> bool:
    """Equality under the scheme, falling back to raw string equality for malformed input."""
    if a is None or b is None:
        return a == b
    result = compare_versions(ecosystem, a, b)
    if result is None:
        return a == b
    return result == 0
