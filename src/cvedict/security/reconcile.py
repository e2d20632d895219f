#!/usr/bin/env python3
"""
Reconcile local disclosures with externally maintained advisory data.

The advisory mapping is produced elsewhere (MSRC bulletin, NVD lookups)
and handed over as plain ``cve_id -> fields`` data; nothing here touches
the network.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from cvedict.constants import CVSS_SEVERITY_THRESHOLDS, DEFAULT_CNA_NAME
from cvedict.security.types import Advisory, Cna, CnaFaq, Cve, CveRecords, Finding

logger = logging.getLogger(__name__)


def severity_for_score(score: float) -> str:
    """Map a CVSS base score to its qualitative severity label."""
    for threshold, label in CVSS_SEVERITY_THRESHOLDS:
        if score >= threshold:
            return label
    return "low"


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def advisory_from_mapping(cve_id: str, data: Mapping[str, Any]) -> Advisory:
    """Coerce loosely typed advisory data into an ``Advisory``."""
    score_raw = data.get("score")
    score: float | None
    try:
        score = float(score_raw) if score_raw not in (None, "") else None
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric score %r for %s", score_raw, cve_id)
        score = None

    faq_items: list[CnaFaq] = []
    for item in data.get("faq") or data.get("faqs") or ():
        if isinstance(item, CnaFaq):
            faq_items.append(item)
        elif isinstance(item, Mapping) and item.get("question"):
            faq_items.append(CnaFaq(str(item["question"]), str(item.get("answer", ""))))

    return Advisory(
        cve_id=cve_id,
        score=score,
        vector=_text(data.get("vector")),
        weakness=_text(data.get("weakness")),
        cna_severity=_text(data.get("cna_severity", data.get("cnaSeverity"))),
        impact=_text(data.get("impact")),
        acknowledgments=tuple(str(a) for a in data.get("acknowledgments") or () if str(a).strip()),
        faq=tuple(faq_items),
    )


def normalize_advisories(advisories: Mapping[str, Any]) -> dict[str, Advisory]:
    """Accept ``Advisory`` values or plain mappings keyed by CVE id."""
    result: dict[str, Advisory] = {}
    for cve_id, value in advisories.items():
        if isinstance(value, Advisory):
            result[cve_id] = value
        elif isinstance(value, Mapping):
            result[cve_id] = advisory_from_mapping(cve_id, value)
        else:
            logger.warning("Ignoring advisory for %s with unsupported shape %s", cve_id, type(value))
    return result


def _mismatch(cve_id: str, field: str, local: Any, external: Any) -> Finding:
    shown = "(empty)" if local in (None, "") else local
    return Finding(f"advisory: {cve_id} {field} mismatch: {shown} (current) vs {external} (external)")


def compare_cve(cve: Cve, advisory: Advisory) -> list[Finding]:
    """Compare one disclosure with its advisory; empty external values are ignored."""
    findings: list[Finding] = []
    if advisory.score is not None and cve.cvss.score != advisory.score:
        findings.append(_mismatch(cve.id, "score", cve.cvss.score or None, advisory.score))
    if advisory.score is not None:
        expected_severity = severity_for_score(advisory.score)
        if cve.cvss.severity.lower() != expected_severity:
            findings.append(
                _mismatch(cve.id, "CVSS severity", cve.cvss.severity, expected_severity)
            )
    if advisory.vector and cve.cvss.vector != advisory.vector:
        findings.append(_mismatch(cve.id, "vector", cve.cvss.vector, advisory.vector))
    if advisory.weakness and cve.weakness != advisory.weakness:
        findings.append(_mismatch(cve.id, "weakness", cve.weakness, advisory.weakness))

    if cve.cna is None:
        if advisory.impact or advisory.cna_severity:
            findings.append(Finding(f"advisory: {cve.id} has no CNA block but the external source does"))
        return findings
    if advisory.impact and cve.cna.impact != advisory.impact:
        findings.append(_mismatch(cve.id, "impact", cve.cna.impact, advisory.impact))
    if advisory.cna_severity and cve.cna.severity != advisory.cna_severity:
        findings.append(_mismatch(cve.id, "CNA severity", cve.cna.severity, advisory.cna_severity))
    return findings


def reconcile(records: CveRecords, advisories: Mapping[str, Any]) -> list[Finding]:
    """Diff every disclosure present in ``advisories`` against it."""
    normalized = normalize_advisories(advisories)
    findings: list[Finding] = []
    for cve in records.disclosures:
        advisory = normalized.get(cve.id)
        if advisory is not None:
            findings += compare_cve(cve, advisory)
    return findings


def merge_cve(cve: Cve, advisory: Advisory) -> Cve:
    """Return ``cve`` with authoritative fields taken from ``advisory``."""
    cvss = cve.cvss
    if advisory.score is not None and cvss.score != advisory.score:
        cvss = replace(cvss, score=advisory.score)
    if advisory.score is not None:
        severity = severity_for_score(advisory.score)
        if cvss.severity.lower() != severity:
            cvss = replace(cvss, severity=severity)
    if advisory.vector and cvss.vector != advisory.vector:
        cvss = replace(cvss, vector=advisory.vector)

    weakness = cve.weakness
    if advisory.weakness and weakness != advisory.weakness:
        weakness = advisory.weakness

    cna = cve.cna
    if cna is None and (advisory.impact or advisory.cna_severity):
        cna = Cna(DEFAULT_CNA_NAME)
    if cna is not None:
        if advisory.cna_severity and cna.severity != advisory.cna_severity:
            cna = replace(cna, severity=advisory.cna_severity)
        if advisory.impact and cna.impact != advisory.impact:
            cna = replace(cna, impact=advisory.impact)
        if advisory.acknowledgments and cna.acknowledgments != advisory.acknowledgments:
            cna = replace(cna, acknowledgments=advisory.acknowledgments)
        if advisory.faq and cna.faq != advisory.faq:
            cna = replace(cna, faq=advisory.faq)

    if cvss is cve.cvss and weakness == cve.weakness and cna is cve.cna:
        return cve
    return replace(cve, cvss=cvss, weakness=weakness, cna=cna)


def merge_advisories(records: CveRecords, advisories: Mapping[str, Any]) -> CveRecords:
    """Return a new aggregate with advisory fields merged into disclosures."""
    normalized = normalize_advisories(advisories)
    updated: list[Cve] = []
    changed = 0
    for cve in records.disclosures:
        advisory = normalized.get(cve.id)
        merged = merge_cve(cve, advisory) if advisory is not None else cve
        if merged is not cve:
            changed += 1
        updated.append(merged)
    if changed:
        logger.info("🔄 Updated advisory fields for %d disclosure(s)", changed)
    return replace(records, disclosures=tuple(updated))
