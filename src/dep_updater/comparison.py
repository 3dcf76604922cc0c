"""
Operator-clause grammar shared by the per-ecosystem requirement schemes.

Both Go and Maven requirements accept comma-separated comparison clauses such
as ``>= 1.2, < 2``. Each scheme supplies its own version parser and ordering;
only the clause syntax lives here.
"""

import re
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from .errors import InvalidRequirement

V = TypeVar("V")

# Exclusive upper bounds are displayed as the largest version below them,
# with every freed-up segment set to this value.
MAX_DISPLAY_SEGMENT = 999999

CLAUSE_PATTERN = re.compile(r"^\s*(?P<op>==|!=|>=|<=|=|>|<)?\s*(?P<version>\S+)\s*$")

OPERATORS: dict = {
    "=": lambda cmp: cmp == 0,
    "==": lambda cmp: cmp == 0,
    "!=": lambda cmp: cmp != 0,
    ">": lambda cmp: cmp > 0,
    ">=": lambda cmp: cmp >= 0,
    "<": lambda cmp: cmp < 0,
    "<=": lambda cmp: cmp <= 0,
}


def parse_clauses(
    requirement: str, parse_version: Callable[[str], V], default_op: str = "="
) -> List[Tuple[str, V]]:
    """
    Split a comma-separated clause list into (operator, version) pairs.

    Raises:
        InvalidRequirement: If a clause is empty or its version is invalid
    """
    clauses = []
    for raw_clause in requirement.split(","):
        match = CLAUSE_PATTERN.match(raw_clause)
        if not match:
            raise InvalidRequirement(f"Illformed requirement [{requirement!r}]")
        try:
            version = parse_version(match.group("version"))
        except ValueError as e:
            raise InvalidRequirement(f"Illformed requirement [{requirement!r}]: {e}") from e
        clauses.append((match.group("op") or default_op, version))
    return clauses


def clauses_satisfied(
    clauses: Sequence[Tuple[str, V]], version: V, compare: Callable[[V, V], int]
) -> bool:
    """True when ``version`` satisfies every clause."""
    return all(OPERATORS[op](compare(version, bound)) for op, bound in clauses)


def predecessor_segments(segments: Sequence[int], extend: bool) -> Optional[List[int]]:
    """
    Largest release-segment list strictly below ``segments``.

    The last non-zero segment is decremented and every later segment is set
    to ``MAX_DISPLAY_SEGMENT``. When the decremented segment is the final one
    and ``extend`` is set, a trailing ``MAX_DISPLAY_SEGMENT`` is appended
    (``2.1`` -> ``2.0.999999``); fixed-width schemes pass ``extend=False``.
    Returns None when no release version is below the bound (``0.0.0``).
    """
    result = list(segments)
    for index in range(len(result) - 1, -1, -1):
        if result[index] > 0:
            result[index] -= 1
            for later in range(index + 1, len(result)):
                result[later] = MAX_DISPLAY_SEGMENT
            if extend and index == len(result) - 1:
                result.append(MAX_DISPLAY_SEGMENT)
            return result
    return None
