#!/usr/bin/env python3
"""
Derived lookup dictionaries for CVE documents.

The dictionaries stored alongside the normalized data are fully
recomputable: ``build_dictionaries`` derives them, ``validate_dictionaries``
compares persisted content against a fresh build.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any

from cvedict.constants import PRODUCT_DISPLAY_NAMES
from cvedict.security.types import CveRecords, Finding, StrListDict

logger = logging.getLogger(__name__)

_DISPLAY_NAMES_LOWER = {k.lower(): v for k, v in PRODUCT_DISPLAY_NAMES.items()}


@dataclass(frozen=True)
class GeneratedDictionaries:
    product_name: dict[str, str]
    product_cves: StrListDict
    package_cves: StrListDict
    release_cves: StrListDict
    cve_releases: StrListDict
    cve_commits: StrListDict | None


def get_product_display_name(name: str) -> str:
    """Map a known product identifier to its display name, else echo it."""
    return _DISPLAY_NAMES_LOWER.get(name.lower(), name)


def _add(index: dict[str, set[str]], key: str, value: str) -> None:
    index.setdefault(key, set()).add(value)


def _finalize(index: Mapping[str, Iterable[str]]) -> StrListDict:
    return {key: sorted(set(index[key])) for key in sorted(index)}


def build_dictionaries(records: CveRecords) -> GeneratedDictionaries:
    """Derive all lookup dictionaries from disclosures and impact entries.

    Entries that reference a CVE missing from ``disclosures`` contribute
    nothing; the integrity checker reports them separately.
    """
    known_cves = records.disclosure_ids
    commits = records.commits or {}

    product_name: dict[str, str] = {}
    product_cves: dict[str, set[str]] = {}
    package_cves: dict[str, set[str]] = {}
    release_cves: dict[str, set[str]] = {}
    cve_releases: dict[str, set[str]] = {}
    cve_commits: dict[str, set[str]] = {}

    for _collection, _index, entry in records.impact_entries():
        if entry.name not in product_name:
            product_name[entry.name] = get_product_display_name(entry.name)

        if entry.cve_id not in known_cves:
            logger.debug("Excluding %s '%s': unknown CVE %s", entry.kind, entry.name, entry.cve_id)
            continue

        target = product_cves if entry.kind == "product" else package_cves
        _add(target, entry.name, entry.cve_id)

        if entry.release:
            _add(release_cves, entry.release, entry.cve_id)
            _add(cve_releases, entry.cve_id, entry.release)

        for commit_hash in entry.commits or ():
            if commit_hash in commits:
                _add(cve_commits, entry.cve_id, commit_hash)

    return GeneratedDictionaries(
        product_name={key: product_name[key] for key in sorted(product_name)},
        product_cves=_finalize(product_cves),
        package_cves=_finalize(package_cves),
        release_cves=_finalize(release_cves),
        cve_releases=_finalize(cve_releases),
        cve_commits=_finalize(cve_commits) if commits else None,
    )


def apply_dictionaries(records: CveRecords, generated: GeneratedDictionaries) -> CveRecords:
    """Return a copy of ``records`` carrying the generated dictionaries."""
    return replace(
        records,
        product_name=generated.product_name,
        product_cves=generated.product_cves,
        package_cves=generated.package_cves,
        release_cves=generated.release_cves,
        cve_releases=generated.cve_releases,
        cve_commits=generated.cve_commits,
    )


def _render(values: Iterable[str]) -> str:
    return "[" + ", ".join(values) + "]"


def validate_dictionary(
    actual: Mapping[str, Any] | None,
    expected: Mapping[str, Any] | None,
    name: str,
) -> list[Finding]:
    """Compare a persisted dictionary with the freshly built one.

    List values are compared as sorted sets, so persisted order does not
    matter; anything else is compared by equality.
    """
    if actual is None and expected is None:
        return []
    if actual is None:
        return [Finding(f"{name}: Dictionary is missing")]
    if expected is None:
        return [Finding(f"{name}: Dictionary is unexpected")]

    findings: list[Finding] = []
    for key in expected:
        if key not in actual:
            findings.append(Finding(f"{name}: Missing key '{key}'"))
    for key in actual:
        if key not in expected:
            findings.append(Finding(f"{name}: Unexpected key '{key}'"))

    for key in expected:
        if key not in actual:
            continue
        expected_value = expected[key]
        actual_value = actual[key]
        if isinstance(expected_value, list) and isinstance(actual_value, list):
            expected_sorted = sorted(set(expected_value))
            actual_sorted = sorted(set(actual_value))
            if expected_sorted == actual_sorted:
                continue
            missing = [v for v in expected_sorted if v not in actual_sorted]
            extra = [v for v in actual_sorted if v not in expected_sorted]
            details: list[str] = []
            if missing:
                details.append(f"missing {', '.join(missing)}")
            if extra:
                details.append(f"unexpected {', '.join(extra)}")
            findings.append(
                Finding(
                    f"{name}['{key}']: Value mismatch ({'; '.join(details)})",
                    context=(
                        f"Expected: {_render(expected_sorted)}",
                        f"Actual:   {_render(actual_sorted)}",
                    ),
                )
            )
        elif expected_value != actual_value:
            findings.append(
                Finding(
                    f"{name}['{key}']: Value mismatch",
                    context=(f"Expected: {expected_value}", f"Actual:   {actual_value}"),
                )
            )
    return findings


def validate_dictionaries(records: CveRecords) -> list[Finding]:
    """Validate every persisted dictionary against a fresh build."""
    expected = build_dictionaries(records)
    findings: list[Finding] = []
    findings += validate_dictionary(records.product_name, expected.product_name, "product_name")
    findings += validate_dictionary(records.product_cves, expected.product_cves, "product_cves")
    findings += validate_dictionary(records.package_cves, expected.package_cves, "package_cves")
    findings += validate_dictionary(records.release_cves, expected.release_cves, "release_cves")
    findings += validate_dictionary(records.cve_releases, expected.cve_releases, "cve_releases")
    if records.cve_commits or expected.cve_commits:
        findings += validate_dictionary(records.cve_commits, expected.cve_commits, "cve_commits")
    return findings
