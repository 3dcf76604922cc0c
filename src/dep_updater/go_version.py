"""
Go module versions and requirements.

Go versions are semantic versions with a mandatory ``v`` prefix in go.mod
(``v1.4.0``, ``v2.3.1+incompatible``, pseudo-versions such as
``v0.0.0-20180617042118-027cca12c2d6``). Internally the prefix is optional
and the canonical string form omits it.
"""

import re
from typing import List, Optional, Union

import semver

from .comparison import clauses_satisfied, parse_clauses, predecessor_segments
from .errors import InvalidRequirement, InvalidVersion

VERSION_PATTERN = re.compile(
    r"^v?\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$"
)
PSEUDO_VERSION_PATTERN = re.compile(
    r"^v?\d+\.\d+\.\d+-(?:[0-9A-Za-z.-]*\.)?(?P<timestamp>\d{14})-(?P<sha>[0-9a-f]{12})"
    r"(?:\+incompatible)?$"
)


class GoVersion:
    """A parsed Go module version."""

    def __init__(self, version: str):
        if not isinstance(version, str):
            raise InvalidVersion(f"Malformed version: {version!r}")
        raw = version.strip()
        if not VERSION_PATTERN.match(raw):
            raise InvalidVersion(f"Malformed version: {version!r}")
        try:
            self._semver = semver.Version.parse(raw[1:] if raw.startswith("v") else raw)
        except ValueError as e:
            raise InvalidVersion(f"Malformed version: {version!r}") from e
        self.original = raw

    @classmethod
    def correct(cls, version: Optional[str]) -> bool:
        if version is None:
            return False
        try:
            cls(version)
        except InvalidVersion:
            return False
        return True

    @property
    def major(self) -> int:
        return self._semver.major

    @property
    def release_segments(self) -> List[int]:
        return [self._semver.major, self._semver.minor, self._semver.patch]

    @property
    def prerelease(self) -> Optional[str]:
        return self._semver.prerelease

    @property
    def is_pseudo_version(self) -> bool:
        return bool(PSEUDO_VERSION_PATTERN.match(self.original))

    @property
    def pseudo_version_sha(self) -> Optional[str]:
        match = PSEUDO_VERSION_PATTERN.match(self.original)
        return match.group("sha") if match else None

    @property
    def is_prerelease(self) -> bool:
        return self._semver.prerelease is not None and not self.is_pseudo_version

    @property
    def is_incompatible(self) -> bool:
        return self._semver.build == "incompatible"

    @property
    def path_major(self) -> int:
        """Major version as reflected in the module path (v0, v1 and +incompatible share one)."""
        if self.major <= 1 or self.is_incompatible:
            return 1
        return self.major

    def compare(self, other: "GoVersion") -> int:
        return self._semver.compare(other._semver)

    def go_string(self) -> str:
        return f"v{self}"

    def __str__(self) -> str:
        return str(self._semver)

    def __repr__(self) -> str:
        return f"GoVersion({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GoVersion):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: "GoVersion") -> bool:
        return self.compare(other) < 0

    def __le__(self, other: "GoVersion") -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: "GoVersion") -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: "GoVersion") -> bool:
        return self.compare(other) >= 0

    def __hash__(self) -> int:
        return hash((self._semver.major, self._semver.minor, self._semver.patch, self._semver.prerelease))


class GoRequirement:
    """
    A Go requirement.

    A bare version (``v1.4.0``) is a go.mod minimum: it is satisfied by that
    version or any later one reachable under the same module path. Anything
    else is a comma-separated list of comparison clauses.
    """

    def __init__(self, requirement: str):
        text = (requirement or "").strip()
        if not text:
            raise InvalidRequirement("Empty requirement")
        self.original = text
        self.minimum: Optional[GoVersion] = None

        if GoVersion.correct(text):
            self.minimum = GoVersion(text)
            self.clauses = [(">=", self.minimum)]
        else:
            self.clauses = parse_clauses(text, GoVersion)

    def satisfied_by(self, version: Union[str, GoVersion]) -> bool:
        candidate = version if isinstance(version, GoVersion) else GoVersion(version)
        if self.minimum is not None and candidate.path_major != self.minimum.path_major:
            return False
        return clauses_satisfied(self.clauses, candidate, lambda a, b: a.compare(b))

    def upper_bound_display(self) -> Optional[str]:
        """Largest version this requirement admits, for display only."""
        if self.minimum is not None:
            ceiling = [self.minimum.path_major + 1, 0, 0]
        else:
            exclusive = [bound for op, bound in self.clauses if op == "<"]
            if not exclusive:
                return None
            ceiling = min(exclusive).release_segments
        segments = predecessor_segments(ceiling, extend=False)
        if segments is None:
            return None
        return "v" + ".".join(str(s) for s in segments)

    def __str__(self) -> str:
        return self.original

    def __repr__(self) -> str:
        return f"GoRequirement({self.original!r})"


class GoVersionScheme:
    """Version capability set for Go modules."""

    def parse(self, version: str) -> GoVersion:
        return GoVersion(version)

    def is_valid(self, version: Optional[str]) -> bool:
        return GoVersion.correct(version)

    def compare(self, a: str, b: str) -> int:
        return GoVersion(a).compare(GoVersion(b))

    def is_prerelease(self, version: str) -> bool:
        return GoVersion(version).is_prerelease

    def release_segments(self, version: str) -> List[int]:
        return GoVersion(version).release_segments


class GoRequirementScheme:
    """Requirement capability set for Go modules."""

    def parse(self, requirement: str) -> GoRequirement:
        return GoRequirement(requirement)

    def satisfied_by(self, requirement: str, version: str) -> bool:
        return GoRequirement(requirement).satisfied_by(version)

    def render(self, version: str) -> str:
        return GoVersion(version).go_string()
