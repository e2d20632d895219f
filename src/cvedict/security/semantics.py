#!/usr/bin/env python3
"""
Semantic consistency checks: taxonomy, problem wording, release format and
commit/branch correspondence.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from cvedict.constants import (
    ARCHITECTURE_TAXONOMY,
    CNA_TAXONOMY,
    DEPRECATED_TERMS,
    PLATFORM_TAXONOMY,
    PROBLEM_KEYWORDS,
    PRODUCT_TAXONOMY,
    SEVERITY_TAXONOMY,
)
from cvedict.security.types import CveRecords, Finding, FindingLevel

_RELEASE_FORMAT = re.compile(r"^\d+\.\d+$")


def _unknown(values: Iterable[str], allowed: frozenset[str]) -> list[str]:
    return [v for v in values if v.lower() not in allowed]


def check_taxonomy(records: CveRecords) -> list[Finding]:
    """Report enumerated values that are not part of the taxonomy."""
    findings: list[Finding] = []
    # Only product names are closed; package names are open-ended NuGet ids and are not checked
    for index, product in enumerate(records.products):
        if product.name.lower() not in PRODUCT_TAXONOMY:
            findings.append(
                Finding(
                    f"taxonomy: products[{index}] has unknown product name "
                    f"'{product.name}' ({product.cve_id})"
                )
            )
    for cve in records.disclosures:
        for platform in _unknown(cve.platforms, PLATFORM_TAXONOMY):
            findings.append(Finding(f"taxonomy: {cve.id} has unknown platform '{platform}'"))
        for arch in _unknown(cve.architectures, ARCHITECTURE_TAXONOMY):
            findings.append(Finding(f"taxonomy: {cve.id} has unknown architecture '{arch}'"))
        severity = cve.cvss.severity
        if severity and severity.lower() not in SEVERITY_TAXONOMY:
            findings.append(Finding(f"taxonomy: {cve.id} has unknown severity '{severity}'"))
        if cve.cna is not None and cve.cna.name.lower() not in CNA_TAXONOMY:
            findings.append(Finding(f"taxonomy: {cve.id} has unknown CNA '{cve.cna.name}'"))
    return findings


def detect_problem_category(problem: str) -> str | None:
    """Return the first category phrase contained in ``problem``."""
    text = problem.lower()
    for phrase in PROBLEM_KEYWORDS:
        if phrase in text:
            return phrase
    return None


def check_problem_keywords(records: CveRecords) -> list[Finding]:
    """Check that the description backs up the problem category.

    This is a coarse lexical heuristic with no negation handling.
    """
    findings: list[Finding] = []
    for cve in records.disclosures:
        description = " ".join(cve.description)
        category = detect_problem_category(cve.problem)
        if category is not None:
            lowered = description.lower()
            if not any(term in lowered for term in PROBLEM_KEYWORDS[category]):
                findings.append(
                    Finding(
                        f"problem: {cve.id} problem suggests '{category}' but the "
                        "description mentions none of its terms",
                        context=(f"Problem: {cve.problem}", f"Description: {description}"),
                    )
                )
        for term, preferred in DEPRECATED_TERMS.items():
            pattern = re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)
            if pattern.search(cve.problem) or pattern.search(description):
                findings.append(
                    Finding(
                        f"wording: {cve.id} uses '{term.upper()}'; prefer '{preferred}'",
                        level=FindingLevel.ADVISORY,
                    )
                )
    return findings


def check_release_format(records: CveRecords) -> list[Finding]:
    """Product releases must be exactly ``major.minor``; packages are exempt."""
    findings: list[Finding] = []
    for index, product in enumerate(records.products):
        if not product.release:
            findings.append(
                Finding(
                    f"release: products[{index}] ('{product.name}' for {product.cve_id}) "
                    "has an empty release"
                )
            )
        elif not _RELEASE_FORMAT.match(product.release):
            findings.append(
                Finding(
                    f"release: products[{index}] ('{product.name}' for {product.cve_id}) "
                    f"has release '{product.release}', expected '<major>.<minor>'"
                )
            )
    return findings


def check_commit_branches(records: CveRecords) -> list[Finding]:
    """Commits fixing a release must live on that release's branch.

    One finding per mismatched commit; each carries the correct commits of
    the same CVE as context so the expected pattern is visible next to it.
    """
    commits = records.commits or {}
    mismatches: dict[str, list[str]] = {}
    matches: dict[str, list[str]] = {}

    for _collection, _index, entry in records.impact_entries():
        if not entry.release or not entry.commits:
            continue
        expected = f"release/{entry.release}"
        for commit_hash in entry.commits:
            info = commits.get(commit_hash)
            if info is None:
                continue
            line = (
                f"{commit_hash} ('{entry.name}' release {entry.release}) "
                f"is on '{info.branch}' in {info.org}/{info.repo}"
            )
            if info.branch.lower() == expected.lower():
                matches.setdefault(entry.cve_id, []).append(line)
            else:
                mismatches.setdefault(entry.cve_id, []).append(
                    f"{line}, expected '{expected}'"
                )

    findings: list[Finding] = []
    for cve_id in sorted(mismatches):
        context = tuple(f"ok: {line}" for line in matches.get(cve_id, []))
        for line in mismatches[cve_id]:
            findings.append(Finding(f"branches: {cve_id} commit {line}", context=context))
    return findings
