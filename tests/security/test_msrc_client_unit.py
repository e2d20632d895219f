#!/usr/bin/env python3

from __future__ import annotations

from html import escape

import pytest

from cvedict.security.msrc_client import (
    MsrcClient,
    MsrcFormatError,
    msrc_id_for_path,
    parse_cvrf,
    parse_faq,
)
from cvedict.security.types import CnaFaq

_TABLE = (
    "<table><tr><th>Product</th><th>CVE</th><th>Score</th><th>Vector</th></tr>"
    "<tr><td>.NET 8.0</td><td>CVE-2024-0056</td><td>8.7</td>"
    "<td>CVSS:3.1/AV:N/AC:H/PR:N/UI:N/S:U/C:H/I:H/A:N</td></tr>"
    "<tr><td>.NET 6.0</td><td>CVE-2024-0057</td><td>n/a</td><td>-</td></tr>"
    "</table>"
)

_FAQ = (
    "<p><strong>How could an attacker exploit this?</strong></p>"
    "<p>By sending a crafted request.</p><p>No user interaction is needed.</p>"
    "<p><strong>Is a fix available?</strong></p><p>Yes.</p>"
)

CVRF = f"""<?xml version="1.0" encoding="utf-8"?>
<cvrfdoc xmlns="http://www.icasi.org/CVRF/schema/cvrf/1.1"
         xmlns:vuln="http://www.icasi.org/CVRF/schema/vuln/1.1">
  <DocumentNotes>
    <Note Type="Details" Ordinal="1">{escape(_TABLE)}</Note>
  </DocumentNotes>
  <vuln:Vulnerability Ordinal="1">
    <vuln:Notes>
      <vuln:Note Type="FAQ" Ordinal="10">{escape(_FAQ)}</vuln:Note>
    </vuln:Notes>
    <vuln:CVE>CVE-2024-0056</vuln:CVE>
    <vuln:CWE ID="CWE-295">Improper Certificate Validation</vuln:CWE>
    <vuln:Threats>
      <vuln:Threat Type="Impact"><vuln:Description>Security Feature Bypass</vuln:Description></vuln:Threat>
      <vuln:Threat Type="Severity"><vuln:Description>Critical</vuln:Description></vuln:Threat>
    </vuln:Threats>
    <vuln:Acknowledgments>
      <vuln:Acknowledgment>
        <vuln:Name>{escape('<a href="https://example.com">Jane Researcher</a>')}</vuln:Name>
      </vuln:Acknowledgment>
    </vuln:Acknowledgments>
  </vuln:Vulnerability>
  <vuln:Vulnerability Ordinal="2">
    <vuln:CVE>CVE-2024-0057</vuln:CVE>
  </vuln:Vulnerability>
</cvrfdoc>
"""


@pytest.mark.parametrize(
    "path,expected",
    [
        ("release-notes/2024/01/cve.json", "2024-Jan"),
        ("C:\\notes\\2023\\11\\cve.json", "2023-Nov"),
        ("release-notes/2024/13/cve.json", None),
        ("cve.json", None),
    ],
)
def test_msrc_id_for_path(path: str, expected: str | None) -> None:
    assert msrc_id_for_path(path) == expected


def test_parse_cvrf_extracts_advisory_fields() -> None:
    advisories = parse_cvrf(CVRF)
    assert set(advisories) == {"CVE-2024-0056", "CVE-2024-0057"}

    first = advisories["CVE-2024-0056"]
    assert first.score == 8.7
    assert first.vector == "CVSS:3.1/AV:N/AC:H/PR:N/UI:N/S:U/C:H/I:H/A:N"
    assert first.weakness == "CWE-295"
    assert first.impact == "Security Feature Bypass"
    assert first.cna_severity == "Critical"
    assert first.acknowledgments == ("Jane Researcher",)
    assert first.faq[0] == CnaFaq(
        "How could an attacker exploit this?",
        "By sending a crafted request. No user interaction is needed.",
    )

    # Non-numeric score rows are skipped and missing elements stay empty
    second = advisories["CVE-2024-0057"]
    assert second.score is None
    assert second.vector is None
    assert second.impact is None
    assert second.acknowledgments == ()


def test_parse_faq_pairs() -> None:
    assert parse_faq(_FAQ) == [
        CnaFaq(
            "How could an attacker exploit this?",
            "By sending a crafted request. No user interaction is needed.",
        ),
        CnaFaq("Is a fix available?", "Yes."),
    ]


def test_parse_cvrf_rejects_malformed_xml() -> None:
    with pytest.raises(MsrcFormatError):
        parse_cvrf("<cvrfdoc>")


def test_bulletin_url() -> None:
    client = MsrcClient("https://example.test/")
    assert client.bulletin_url("2024-Jan") == "https://example.test/cvrf/v2.0/cvrf/2024-Jan"
