#!/usr/bin/env python3
"""
MSRC security bulletin (CVRF) client.

The monthly bulletin is a CVRF XML document. Scores and vectors live in an
HTML table embedded (escaped) in a document note; impact, severity, CWE,
acknowledgments and FAQs live in the per-vulnerability CVRF elements.
"""

from __future__ import annotations

import calendar
import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path

import aiohttp
from bs4 import BeautifulSoup

from cvedict.constants import CVRF_VULN_NAMESPACE, MSRC_BASE_URL, USER_AGENT
from cvedict.security.types import Advisory, CnaFaq

logger = logging.getLogger(__name__)

_PATH_MONTH = re.compile(r"(\d{4})[/\\](\d{2})[/\\]cve\.json$")
_V = f"{{{CVRF_VULN_NAMESPACE}}}"


class MsrcFormatError(ValueError):
    pass


def msrc_id_for_path(path: str | Path) -> str | None:
    """Derive the bulletin id (``2024-Jan``) from ``.../2024/01/cve.json``."""
    match = _PATH_MONTH.search(str(path))
    if not match:
        return None
    month = int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return f"{match.group(1)}-{calendar.month_abbr[month]}"


def _html_text(fragment: str | None) -> str:
    if not fragment:
        return ""
    return BeautifulSoup(fragment, "html.parser").get_text(" ", strip=True)


def parse_score_table(html: str) -> dict[str, tuple[float, str]]:
    """Parse ``CVE -> (score, vector)`` rows from the bulletin's HTML table."""
    soup = BeautifulSoup(html, "html.parser")
    rows: dict[str, tuple[float, str]] = {}
    for tr in soup.find_all("tr"):
        cells = [td.get_text(strip=True) for td in tr.find_all("td")]
        if len(cells) < 4 or not cells[1].startswith("CVE-"):
            continue
        try:
            score = float(cells[2])
        except ValueError:
            logger.debug("Skipping row for %s with score %r", cells[1], cells[2])
            continue
        rows[cells[1]] = (score, cells[3])
    return rows


def parse_faq(html: str) -> list[CnaFaq]:
    """Split an FAQ note into question/answer pairs.

    Questions are paragraphs containing ``<strong>``; the paragraphs that
    follow form the answer.
    """
    soup = BeautifulSoup(html, "html.parser")
    items: list[CnaFaq] = []
    question: str | None = None
    answer: list[str] = []
    for para in soup.find_all("p"):
        text = para.get_text(" ", strip=True)
        if not text:
            continue
        if para.find("strong") is not None:
            if question:
                items.append(CnaFaq(question, " ".join(answer)))
            question = text
            answer = []
        elif question:
            answer.append(text)
    if question:
        items.append(CnaFaq(question, " ".join(answer)))
    return items


def _threat(vuln: ET.Element, threat_type: str) -> str | None:
    for threat in vuln.iter(f"{_V}Threat"):
        if threat.get("Type") == threat_type:
            desc = threat.find(f"{_V}Description")
            if desc is not None and desc.text:
                return desc.text.strip()
    return None


def parse_cvrf(xml_text: str) -> dict[str, Advisory]:
    """Parse a CVRF bulletin into advisories keyed by CVE id."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise MsrcFormatError(f"Invalid CVRF document: {e}") from e

    scores: dict[str, tuple[float, str]] = {}
    for element in root.iter():
        if element.tag.endswith("}Note") and element.text and "<table" in element.text:
            scores.update(parse_score_table(element.text))

    advisories: dict[str, Advisory] = {}
    for vuln in root.iter(f"{_V}Vulnerability"):
        cve_elem = vuln.find(f"{_V}CVE")
        if cve_elem is None or not cve_elem.text:
            continue
        cve_id = cve_elem.text.strip()

        cwe = vuln.find(f"{_V}CWE")
        acknowledgments = [
            _html_text(name.text)
            for name in vuln.iter(f"{_V}Name")
            if _html_text(name.text)
        ]
        faq: list[CnaFaq] = []
        for note in vuln.iter(f"{_V}Note"):
            if note.get("Type") == "FAQ" and note.text:
                faq.extend(parse_faq(note.text))

        score, vector = scores.get(cve_id, (None, None))
        advisories[cve_id] = Advisory(
            cve_id=cve_id,
            score=score,
            vector=vector,
            weakness=cwe.get("ID") if cwe is not None else None,
            cna_severity=_threat(vuln, "Severity"),
            impact=_threat(vuln, "Impact"),
            acknowledgments=tuple(acknowledgments),
            faq=tuple(faq),
        )
    return advisories


class MsrcClient:
    """Async client for the MSRC CVRF v2.0 API."""

    def __init__(self, base_url: str = MSRC_BASE_URL) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = {"User-Agent": USER_AGENT, "Accept": "application/xml"}

    def bulletin_url(self, msrc_id: str) -> str:
        return f"{self.base_url}/cvrf/v2.0/cvrf/{msrc_id}"

    async def fetch(
        self, session: aiohttp.ClientSession, msrc_id: str, timeout_s: float = 30
    ) -> str:
        async with session.get(
            self.bulletin_url(msrc_id),
            headers=self.headers,
            timeout=aiohttp.ClientTimeout(total=timeout_s),
        ) as resp:
            resp.raise_for_status()
            return await resp.text()

    async def fetch_advisories(self, msrc_id: str, timeout_s: float = 30) -> dict[str, Advisory]:
        logger.info(f"🌐 Fetching MSRC bulletin {msrc_id}")
        async with aiohttp.ClientSession() as session:
            xml_text = await self.fetch(session, msrc_id, timeout_s)
        advisories = parse_cvrf(xml_text)
        logger.info(f"📦 Parsed {len(advisories)} advisories from {msrc_id}")
        return advisories
