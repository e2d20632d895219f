#!/usr/bin/env python3

from __future__ import annotations

from typing import Any

import aiohttp

from cvedict.security import nvd_client
from cvedict.security.nvd_client import fetch_nvd_advisories, parse_nvd_advisory


def _payload(cve_id: str) -> dict[str, Any]:
    return {
        "totalResults": 1,
        "vulnerabilities": [
            {
                "cve": {
                    "id": cve_id,
                    "metrics": {
                        "cvssMetricV31": [
                            {
                                "type": "Primary",
                                "cvssData": {
                                    "baseScore": 5.0,
                                    "vectorString": "CVSS:3.1/AV:L/AC:L/PR:N/UI:N/S:U/C:L/I:N/A:N",
                                },
                            },
                            {
                                "type": "Secondary",
                                "cvssData": {
                                    "baseScore": 7.5,
                                    "vectorString": "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:N/I:N/A:H",
                                },
                            },
                        ]
                    },
                    "weaknesses": [
                        {"description": [{"lang": "en", "value": "NVD-CWE-noinfo"}]},
                        {"description": [{"lang": "en", "value": "CWE-400"}]},
                    ],
                }
            }
        ],
    }


def test_parse_prefers_secondary_metric_and_first_cwe() -> None:
    advisory = parse_nvd_advisory("CVE-2024-0056", _payload("CVE-2024-0056"))
    assert advisory is not None
    assert advisory.score == 7.5
    assert advisory.vector == "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:N/I:N/A:H"
    assert advisory.weakness == "CWE-400"


def test_parse_returns_none_for_other_ids() -> None:
    assert parse_nvd_advisory("CVE-2024-9999", _payload("CVE-2024-0056")) is None
    assert parse_nvd_advisory("CVE-2024-9999", {}) is None


async def test_fetch_sequential_with_failures(monkeypatch) -> None:
    calls: list[str] = []

    async def fake_fetch(self, session, params, on_rate_limit, timeout_s=30):
        cve_id = params["cveId"]
        calls.append(cve_id)
        if cve_id == "CVE-2024-0002":
            raise aiohttp.ClientConnectionError("connection reset")
        if cve_id == "CVE-2024-0003":
            return {"vulnerabilities": []}
        return _payload(cve_id)

    monkeypatch.setattr(nvd_client.NVDClient, "fetch", fake_fetch)

    advisories, findings = await fetch_nvd_advisories(
        ["CVE-2024-0003", "CVE-2024-0001", "CVE-2024-0002", "CVE-2024-0001"], delay_s=0
    )

    assert calls == ["CVE-2024-0001", "CVE-2024-0002", "CVE-2024-0003"]
    assert list(advisories) == ["CVE-2024-0001"]
    assert [f.message for f in findings] == [
        "advisory: NVD lookup for CVE-2024-0002 failed: connection reset"
    ]


async def test_fetch_retries_once_after_rate_limit(monkeypatch) -> None:
    attempts: list[str] = []

    async def fake_fetch(self, session, params, on_rate_limit, timeout_s=30):
        attempts.append(params["cveId"])
        if len(attempts) == 1:
            return None
        return _payload(params["cveId"])

    monkeypatch.setattr(nvd_client.NVDClient, "fetch", fake_fetch)
    advisories, findings = await fetch_nvd_advisories(["CVE-2024-0001"], delay_s=0)
    assert attempts == ["CVE-2024-0001", "CVE-2024-0001"]
    assert "CVE-2024-0001" in advisories
    assert findings == []


def test_api_key_is_sent_as_header() -> None:
    assert nvd_client.NVDClient("k").headers["apiKey"] == "k"
    assert "apiKey" not in nvd_client.NVDClient().headers
