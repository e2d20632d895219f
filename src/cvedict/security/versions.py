#!/usr/bin/env python3
"""
Version ordering for affected ranges.

A version is a dotted numeric part optionally followed by ``-`` and a
prerelease tag (``8.0.0-preview.7.23375.6``). Numeric parts are compared
with ``packaging``; a release sorts after every prerelease of the same
numeric version; prerelease tags compare case-insensitively, identifier
by identifier, with numeric identifiers compared as numbers.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import total_ordering

from packaging.version import InvalidVersion, Version

from cvedict.security.types import Finding, ImpactEntry

logger = logging.getLogger(__name__)

_NUMERIC_PART = re.compile(r"^[0-9]+(\.[0-9]+)*$")
_NUMERIC_IDENT = re.compile(r"^[0-9]+$")


def _prerelease_key(tag: str) -> tuple[tuple[int, int, str], ...]:
    # Numeric identifiers sort before alphanumeric ones, as in SemVer
    key: list[tuple[int, int, str]] = []
    for ident in tag.lower().split("."):
        if _NUMERIC_IDENT.match(ident):
            key.append((0, int(ident), ""))
        else:
            key.append((1, 0, ident))
    return tuple(key)


@total_ordering
@dataclass(frozen=True)
class ParsedVersion:
    """A parsed ``numeric[-prerelease]`` version string."""

    text: str
    numeric: Version
    prerelease: str | None = None

    def _key(self) -> tuple:
        if self.prerelease is None:
            return (self.numeric, 1, ())
        return (self.numeric, 0, _prerelease_key(self.prerelease))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParsedVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: ParsedVersion) -> bool:
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())


def parse_version(text: str | None) -> ParsedVersion | None:
    """Parse ``text`` or return ``None`` when it is not a usable version."""
    if text is None:
        return None
    raw = text.strip()
    if not raw:
        return None
    numeric, sep, prerelease = raw.partition("-")
    if not _NUMERIC_PART.match(numeric):
        return None
    if sep and not prerelease:
        return None
    try:
        parsed = Version(numeric)
    except InvalidVersion:  # pragma: no cover - regex already rejects these
        return None
    return ParsedVersion(text=raw, numeric=parsed, prerelease=prerelease if sep else None)


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 comparing ``a`` with ``b``.

    Raises ``ValueError`` if either string does not parse.
    """
    left = parse_version(a)
    right = parse_version(b)
    if left is None:
        raise ValueError(f"Invalid version: {a!r}")
    if right is None:
        raise ValueError(f"Invalid version: {b!r}")
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def is_coherent(min_vulnerable: str, max_vulnerable: str, fixed: str) -> bool | None:
    """Check ``min <= max < fixed``; ``None`` when any bound is unparseable."""
    low = parse_version(min_vulnerable)
    high = parse_version(max_vulnerable)
    fix = parse_version(fixed)
    if low is None or high is None or fix is None:
        return None
    return low <= high < fix


def check_version_coherence(collection: str, index: int, entry: ImpactEntry) -> Finding | None:
    """Return a finding when the entry's affected range is incoherent."""
    coherent = is_coherent(entry.min_vulnerable, entry.max_vulnerable, entry.fixed)
    if coherent is None:
        logger.debug(
            "Skipping version check for %s[%d] (%s for %s): unparseable version",
            collection,
            index,
            entry.name,
            entry.cve_id,
        )
        return None
    if coherent:
        return None
    return Finding(
        f"versions: {collection}[{index}] ('{entry.name}' for {entry.cve_id}) has incoherent "
        f"range min_vulnerable={entry.min_vulnerable}, max_vulnerable={entry.max_vulnerable}, "
        f"fixed={entry.fixed} (expected min <= max < fixed)"
    )
