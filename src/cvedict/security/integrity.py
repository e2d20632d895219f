#!/usr/bin/env python3
"""
Referential integrity checks over the raw normalized data.

These checks never consult the derived dictionaries, except for the
commit reachability check which walks ``cve_commits`` as persisted, so
they stay meaningful when the dictionaries are stale or absent.
"""

from __future__ import annotations

import logging

from cvedict.security.types import CveRecords, Finding
from cvedict.security.versions import check_version_coherence

logger = logging.getLogger(__name__)


def check_unknown_cves(records: CveRecords) -> list[Finding]:
    """Every impact entry must reference a disclosed CVE."""
    known = records.disclosure_ids
    findings: list[Finding] = []
    for collection, index, entry in records.impact_entries():
        if entry.cve_id not in known:
            findings.append(
                Finding(
                    f"integrity: {collection}[{index}] ('{entry.name}') references "
                    f"{entry.cve_id}, which is not in disclosures"
                )
            )
    return findings


def check_commit_lists(records: CveRecords) -> list[Finding]:
    """With a non-empty commit dictionary, every entry needs commits."""
    if not records.commits:
        return []
    findings: list[Finding] = []
    for collection, index, entry in records.impact_entries():
        label = f"{collection}[{index}] ('{entry.name}' for {entry.cve_id})"
        if entry.commits is None:
            findings.append(
                Finding(
                    f"commits: {label} has null commits "
                    "(should be non-null when commits dictionary exists)"
                )
            )
        elif len(entry.commits) == 0:
            findings.append(
                Finding(
                    f"commits: {label} has empty commits array "
                    "(should reference commits or be populated)"
                )
            )
        elif any(not c or not c.strip() for c in entry.commits):
            findings.append(Finding(f"commits: {label} has a blank commit entry"))
    return findings


def check_commit_references(records: CveRecords) -> list[Finding]:
    """Every commit hash referenced by an entry must exist in ``commits``."""
    commits = records.commits or {}
    findings: list[Finding] = []
    for collection, index, entry in records.impact_entries():
        for commit_hash in entry.commits or ():
            if not commit_hash or not commit_hash.strip():
                continue
            if commit_hash not in commits:
                findings.append(
                    Finding(
                        f"commits: {collection}[{index}] ('{entry.name}' for {entry.cve_id}) "
                        f"references commit {commit_hash}, which is not in commits"
                    )
                )
    return findings


def check_orphan_disclosures(records: CveRecords) -> list[Finding]:
    """Every disclosed CVE must be referenced by a product or package."""
    referenced = {entry.cve_id for _, _, entry in records.impact_entries()}
    return [
        Finding(f"integrity: {cve.id} is not referenced by any product or package")
        for cve in records.disclosures
        if cve.id not in referenced
    ]


def check_orphan_commits(records: CveRecords) -> list[Finding]:
    """Every commit in ``commits`` must appear in ``cve_commits``."""
    if not records.commits:
        return []
    referenced: set[str] = set()
    for hashes in (records.cve_commits or {}).values():
        referenced.update(hashes)
    return [
        Finding(f"commits: commit {commit_hash} is not referenced by any CVE in cve_commits")
        for commit_hash in records.commits
        if commit_hash not in referenced
    ]


def check_commit_keys(records: CveRecords) -> list[Finding]:
    """Commit dictionary keys must match the ``hash`` of their record."""
    findings: list[Finding] = []
    for key, info in (records.commits or {}).items():
        if info.hash != key:
            findings.append(
                Finding(f"commits: key {key} holds a record for a different hash ({info.hash})")
            )
    return findings


def check_integrity(records: CveRecords) -> list[Finding]:
    """Run all referential integrity checks in a stable order."""
    findings: list[Finding] = []
    findings += check_unknown_cves(records)
    findings += check_commit_lists(records)
    findings += check_commit_references(records)
    findings += check_orphan_disclosures(records)
    findings += check_orphan_commits(records)
    findings += check_commit_keys(records)
    logger.debug("Integrity checks produced %d finding(s)", len(findings))
    return findings


def check_version_ranges(records: CveRecords) -> list[Finding]:
    """Apply the ``min <= max < fixed`` rule to every impact entry."""
    findings: list[Finding] = []
    for collection, index, entry in records.impact_entries():
        finding = check_version_coherence(collection, index, entry)
        if finding is not None:
            findings.append(finding)
    return findings
