"""Version ordering used to pick the newest version any channel can offer.

The session treats the comparator as an opaque total order: it only ever asks
for the maximum of a handful of version strings.  :func:`compare_versions` is the
default, Maven-flavoured order (numeric release components followed by a
qualifier such as ``Beta1``, ``CR2``, ``Final`` or ``SP1``).  Callers with a
different version grammar pass their own ``cmp``-style callable instead.
"""

from __future__ import annotations

import re
from functools import cmp_to_key, lru_cache
from typing import Any, Callable, Iterable, List, Optional, Tuple

__all__ = [
    "VersionComparator",
    "compare_versions",
    "version_key",
    "version_sort_key",
    "latest_version",
]

VersionComparator = Callable[[str, str], int]

_TOKEN_PATTERN = re.compile(r"\d+|[A-Za-z]+")

# Release and its aliases share a rank; unknown qualifiers sort just below it.
_RELEASE_RANK = 6
_UNKNOWN_RANK = 5
_QUALIFIER_RANKS = {
    "alpha": 0,
    "a": 0,
    "beta": 1,
    "b": 1,
    "milestone": 2,
    "m": 2,
    "rc": 3,
    "cr": 3,
    "snapshot": 4,
    "": _RELEASE_RANK,
    "ga": _RELEASE_RANK,
    "final": _RELEASE_RANK,
    "release": _RELEASE_RANK,
    "sp": 7,
}

_QualifierItem = Tuple[int, int, str]


def _qualifier_item(token: str) -> _QualifierItem:
    if token.isdigit():
        return (1, int(token), "")
    lowered = token.lower()
    rank = _QUALIFIER_RANKS.get(lowered)
    if rank is None:
        return (0, _UNKNOWN_RANK, lowered)
    return (0, rank, "")


@lru_cache(maxsize=4096)
def version_key(version: str) -> Tuple[Tuple[int, ...], Tuple[_QualifierItem, ...], str]:
    """Return a sortable key implementing the default version order.

    Examples:
        >>> version_key("1.0.Final") == version_key("1.0")[:2] + ("1.0.Final",)
        True
    """

    tokens = _TOKEN_PATTERN.findall(version)
    numeric: List[int] = []
    index = 0
    while index < len(tokens) and tokens[index].isdigit():
        numeric.append(int(tokens[index]))
        index += 1
    while numeric and numeric[-1] == 0:
        numeric.pop()

    qualifier = [_qualifier_item(token) for token in tokens[index:]]
    while qualifier and qualifier[-1] == (1, 0, ""):
        qualifier.pop()
    if not qualifier:
        qualifier = [(0, _RELEASE_RANK, "")]

    return (tuple(numeric), tuple(qualifier), version)


def compare_versions(left: str, right: str) -> int:
    """Compare two version strings; negative, zero or positive like ``cmp``.

    Distinct strings never compare equal: when the release components and the
    qualifier tie (``1.0`` vs ``1.0.0``) the raw text decides, keeping the
    order total.
    """

    left_key = version_key(left)
    right_key = version_key(right)
    return (left_key > right_key) - (left_key < right_key)


def version_sort_key(comparator: VersionComparator = compare_versions) -> Callable[[str], Any]:
    """Wrap ``comparator`` for use as a ``key=`` argument."""

    return cmp_to_key(comparator)


def latest_version(
    versions: Iterable[str],
    comparator: VersionComparator = compare_versions,
) -> Optional[str]:
    """Return the greatest version under ``comparator`` or ``None`` when empty."""

    candidates = [version for version in versions if version]
    if not candidates:
        return None
    return max(candidates, key=version_sort_key(comparator))
