"""
Version comparison for catalog entries.

Versions are dot-delimited strings that need not be strict semver; any component
that is not an integer counts as 0. Comparison never raises.
"""

import re
from enum import IntEnum
from typing import List, Optional


class Ordering(IntEnum):
    LESS = -1
    EQUAL = 0
    GREATER = 1


_INTEGER_RX = re.compile(r"[+-]?\d+")


def _component_value(component: str) -> int:
    text = component.strip()
    return int(text) if _INTEGER_RX.fullmatch(text) else 0


def _components(version: Optional[str]) -> List[int]:
    return [_component_value(part) for part in (version or "").split(".")]


def compare_versions(a: Optional[str], b: Optional[str]) -> Ordering:
    """
    Compare two version strings component by component.

    The shorter version is padded with zero components, so "1.0" equals "1.0.0", and
    "1.2.0" is less than "1.10.0". Non-numeric components such as "abc" count as 0.

    Returns:
        Ordering: LESS, EQUAL or GREATER describing `a` relative to `b`.
    """
    left = _components(a)
    right = _components(b)
    width = max(len(left), len(right))
    left.extend([0] * (width - len(left)))
    right.extend([0] * (width - len(right)))

    for x, y in zip(left, right):
        if x < y:
            return Ordering.LESS
        if x > y:
            return Ordering.GREATER
    return Ordering.EQUAL


def has_update(installed_version: Optional[str], latest_version: Optional[str]) -> bool:
    """Return True if `latest_version` is newer than `installed_version`."""
    return compare_versions(installed_version, latest_version) is Ordering.LESS
