"""
Maven versions and requirements.

Ordering follows Maven's ComparableVersion rules: versions are split into
numeric and qualifier items, with each ``-`` (and each switch between digits
and letters) opening a nested sub-list. Trailing "null" items (``0``, ``ga``,
``final``, ``release``, empty sub-lists) are dropped, numbers outrank
sub-lists which outrank qualifiers, and known qualifiers sort
``alpha < beta < milestone < rc < snapshot < release < sp`` with unknown
qualifiers after all of them in lexical order. So ``1-1 < 1.1``.
"""

import re
from typing import Iterator, List, Optional, Tuple, Union

from .comparison import clauses_satisfied, parse_clauses, predecessor_segments
from .errors import InvalidRequirement, InvalidVersion

VERSION_PATTERN = re.compile(r"^\d[0-9A-Za-z._+\-]*$")
RANGE_PATTERN = re.compile(r"(?P<open>[\[(])(?P<body>[^\])]*)(?P<close>[\])])")

# Single letters only expand when a number follows ("1.0-m1", not "1.0-m")
SHORT_QUALIFIERS = {"a": "alpha", "b": "beta", "m": "milestone"}
QUALIFIER_ALIASES = {
    "cr": "rc",
    "ga": "",
    "final": "",
    "release": "",
}
QUALIFIER_ORDER = ["alpha", "beta", "milestone", "rc", "snapshot", "", "sp"]
PRERELEASE_QUALIFIERS = {
    "alpha", "beta", "milestone", "rc", "snapshot", "preview", "pre", "dev", "ea",
}

Item = Union[int, str, Tuple]


def _parse_item(is_digit: bool, text: str, followed_by_digit: bool = False) -> Item:
    if is_digit:
        return int(text)
    if followed_by_digit and len(text) == 1:
        text = SHORT_QUALIFIERS.get(text, text)
    return QUALIFIER_ALIASES.get(text, text)


def _is_null(item) -> bool:
    if isinstance(item, list):
        return not item
    return item == 0 or item == ""


def _normalize(items: list) -> None:
    """Drop null items from the end, looking through trailing sub-lists."""
    for index in range(len(items) - 1, -1, -1):
        item = items[index]
        if _is_null(item):
            del items[index]
        elif not isinstance(item, list):
            break


def _freeze(items: list) -> Tuple:
    return tuple(_freeze(item) if isinstance(item, list) else item for item in items)


def _tokenize(version: str) -> Tuple:
    version = version.lower()
    root: list = []
    current = root
    opened = [root]
    start = 0
    is_digit = False

    def open_sublist() -> None:
        nonlocal current
        sublist: list = []
        current.append(sublist)
        current = sublist
        opened.append(sublist)

    for index, char in enumerate(version):
        if char in ".-":
            current.append(0 if index == start else _parse_item(is_digit, version[start:index]))
            start = index + 1
            if char == "-":
                open_sublist()
        elif char.isdigit():
            if not is_digit and index > start:
                current.append(_parse_item(False, version[start:index], followed_by_digit=True))
                start = index
                open_sublist()
            is_digit = True
        else:
            if is_digit and index > start:
                current.append(_parse_item(True, version[start:index]))
                start = index
                open_sublist()
            is_digit = False
    if len(version) > start:
        current.append(_parse_item(is_digit, version[start:]))

    # Innermost first
    for items in reversed(opened):
        _normalize(items)
    return _freeze(root)


def _qualifier_key(qualifier: str) -> Tuple[int, str]:
    if qualifier in QUALIFIER_ORDER:
        return (QUALIFIER_ORDER.index(qualifier), "")
    return (len(QUALIFIER_ORDER), qualifier)


def _compare_items(a: Optional[Item], b: Optional[Item]) -> int:
    if a is None:
        return 0 if b is None else -_compare_items(b, None)

    if isinstance(a, int):
        if b is None:
            return 0 if a == 0 else 1
        if isinstance(b, int):
            return (a > b) - (a < b)
        return 1

    if isinstance(a, str):
        if b is None:
            b = ""
        elif not isinstance(b, str):
            return -1
        key_a, key_b = _qualifier_key(a), _qualifier_key(b)
        return (key_a > key_b) - (key_a < key_b)

    if b is None:
        return _compare_items(a[0], None) if a else 0
    if isinstance(b, int):
        return -1
    if isinstance(b, str):
        return 1
    return _compare_sequences(a, b)


def _compare_sequences(a: Tuple, b: Tuple) -> int:
    for index in range(max(len(a), len(b))):
        left = a[index] if index < len(a) else None
        right = b[index] if index < len(b) else None
        result = _compare_items(left, right)
        if result:
            return result
    return 0


def _qualifiers(items: Tuple) -> Iterator[str]:
    for item in items:
        if isinstance(item, tuple):
            yield from _qualifiers(item)
        elif isinstance(item, str):
            yield item


class MavenVersion:
    """A parsed Maven artifact version."""

    def __init__(self, version: str):
        if not isinstance(version, str) or not VERSION_PATTERN.match(version.strip()):
            raise InvalidVersion(f"Malformed version: {version!r}")
        self.original = version.strip()
        self.items = _tokenize(self.original)

    @classmethod
    def correct(cls, version: Optional[str]) -> bool:
        return isinstance(version, str) and bool(VERSION_PATTERN.match(version.strip()))

    @property
    def release_segments(self) -> List[int]:
        segments = []
        for item in self.items:
            if not isinstance(item, int):
                break
            segments.append(item)
        return segments or [0]

    @property
    def major(self) -> int:
        return self.release_segments[0]

    @property
    def is_prerelease(self) -> bool:
        return any(qualifier in PRERELEASE_QUALIFIERS for qualifier in _qualifiers(self.items))

    def compare(self, other: "MavenVersion") -> int:
        return _compare_sequences(self.items, other.items)

    def __str__(self) -> str:
        return self.original

    def __repr__(self) -> str:
        return f"MavenVersion({self.original!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MavenVersion):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: "MavenVersion") -> bool:
        return self.compare(other) < 0

    def __le__(self, other: "MavenVersion") -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: "MavenVersion") -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: "MavenVersion") -> bool:
        return self.compare(other) >= 0

    def __hash__(self) -> int:
        return hash(self.items)


def _parse_range(open_bracket: str, body: str, close_bracket: str, requirement: str):
    bounds = [part.strip() for part in body.split(",")]
    try:
        if len(bounds) == 1:
            if open_bracket != "[" or close_bracket != "]" or not bounds[0]:
                raise InvalidRequirement(f"Illformed requirement [{requirement!r}]")
            return [("=", MavenVersion(bounds[0]))]
        if len(bounds) != 2:
            raise InvalidRequirement(f"Illformed requirement [{requirement!r}]")

        lower, upper = bounds
        clauses = []
        if lower:
            clauses.append((">=" if open_bracket == "[" else ">", MavenVersion(lower)))
        if upper:
            clauses.append(("<=" if close_bracket == "]" else "<", MavenVersion(upper)))
        return clauses
    except InvalidVersion as e:
        raise InvalidRequirement(f"Illformed requirement [{requirement!r}]: {e}") from e


class MavenRequirement:
    """
    A Maven version requirement.

    Supports bracket ranges (``[1.0,2.0)``, ``(,1.0]``, ``[1.0]``) and unions
    of them (``[1,2),[3,4)``), bare versions, which match exactly, and
    comma-separated operator clauses (``>= 1.0, < 2.0``).
    """

    def __init__(self, requirement: str):
        text = (requirement or "").strip()
        if not text:
            raise InvalidRequirement("Empty requirement")
        self.original = text

        if text[0] in "[(":
            self.alternatives = self._parse_ranges(text)
        elif MavenVersion.correct(text):
            self.alternatives = [[("=", MavenVersion(text))]]
        else:
            self.alternatives = [parse_clauses(text, MavenVersion)]

    @staticmethod
    def _parse_ranges(text: str):
        alternatives = []
        position = 0
        while position < len(text):
            match = RANGE_PATTERN.match(text, position)
            if not match:
                raise InvalidRequirement(f"Illformed requirement [{text!r}]")
            alternatives.append(
                _parse_range(match.group("open"), match.group("body"), match.group("close"), text)
            )
            position = match.end()
            while position < len(text) and text[position] in ", ":
                position += 1
        return alternatives

    def satisfied_by(self, version: Union[str, MavenVersion]) -> bool:
        candidate = version if isinstance(version, MavenVersion) else MavenVersion(version)
        return any(
            clauses_satisfied(clauses, candidate, lambda a, b: a.compare(b))
            for clauses in self.alternatives
        )

    def upper_bound_display(self) -> Optional[str]:
        """Largest version this requirement admits below an exclusive bound, for display only."""
        exclusive = [
            bound for clauses in self.alternatives for op, bound in clauses if op == "<"
        ]
        if not exclusive:
            return None
        segments = predecessor_segments(max(exclusive).release_segments, extend=True)
        if segments is None:
            return None
        return ".".join(str(s) for s in segments)

    def __str__(self) -> str:
        return self.original

    def __repr__(self) -> str:
        return f"MavenRequirement({self.original!r})"


class MavenVersionScheme:
    """Version capability set for Maven."""

    def parse(self, version: str) -> MavenVersion:
        return MavenVersion(version)

    def is_valid(self, version: Optional[str]) -> bool:
        return MavenVersion.correct(version)

    def compare(self, a: str, b: str) -> int:
        return MavenVersion(a).compare(MavenVersion(b))

    def is_prerelease(self, version: str) -> bool:
        return MavenVersion(version).is_prerelease

    def release_segments(self, version: str) -> List[int]:
        return MavenVersion(version).release_segments


class MavenRequirementScheme:
    """Requirement capability set for Maven."""

    def parse(self, requirement: str) -> MavenRequirement:
        return MavenRequirement(requirement)

    def satisfied_by(self, requirement: str, version: str) -> bool:
        return MavenRequirement(requirement).satisfied_by(version)

    def render(self, version: str) -> str:
        return str(MavenVersion(version))
