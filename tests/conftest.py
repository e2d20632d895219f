"""Shared fixtures: a small, internally consistent cve.json document."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

import pytest

from cvedict.data.document import records_from_dict

SAMPLE_DOCUMENT: dict[str, Any] = {
    "last_updated": "2024-01-09T00:00:00Z",
    "title": "January 2024 .NET Security Updates",
    "disclosures": [
        {
            "id": "CVE-2024-0056",
            "problem": ".NET Denial of Service Vulnerability",
            "description": [
                "A crafted request can cause the server process to hang.",
            ],
            "cvss": {
                "version": "3.1",
                "vector": "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:N/I:N/A:H",
                "score": 7.5,
                "severity": "high",
            },
            "timeline": {
                "disclosure": {"date": "2024-01-09", "description": "Publicly disclosed"},
                "fixed": {"date": "2024-01-09", "description": "Fixed in servicing release"},
            },
            "platforms": ["all"],
            "architectures": ["all"],
            "references": ["https://github.com/dotnet/announcements/issues/290"],
            "weakness": "CWE-400",
            "cna": {
                "name": "microsoft",
                "severity": "Important",
                "impact": "Denial of Service",
            },
        }
    ],
    "products": [
        {
            "cve_id": "CVE-2024-0056",
            "name": "dotnet-runtime",
            "min_vulnerable": "8.0.0",
            "max_vulnerable": "8.0.0",
            "fixed": "8.0.1",
            "release": "8.0",
            "commits": ["abc123"],
        }
    ],
    "packages": [
        {
            "cve_id": "CVE-2024-0056",
            "name": "System.Data.SqlClient",
            "min_vulnerable": "4.8.0",
            "max_vulnerable": "4.8.5",
            "fixed": "4.8.6",
            "commits": ["def456"],
        }
    ],
    "commits": {
        "abc123": {
            "repo": "runtime",
            "branch": "release/8.0",
            "hash": "abc123",
            "org": "dotnet",
            "url": "https://github.com/dotnet/runtime/commit/abc123",
        },
        "def456": {
            "repo": "SqlClient",
            "branch": "main",
            "hash": "def456",
            "org": "dotnet",
            "url": "https://github.com/dotnet/SqlClient/commit/def456",
        },
    },
    "product_name": {
        "System.Data.SqlClient": "System.Data.SqlClient",
        "dotnet-runtime": ".NET Runtime Libraries",
    },
    "product_cves": {"dotnet-runtime": ["CVE-2024-0056"]},
    "package_cves": {"System.Data.SqlClient": ["CVE-2024-0056"]},
    "release_cves": {"8.0": ["CVE-2024-0056"]},
    "cve_releases": {"CVE-2024-0056": ["8.0"]},
    "cve_commits": {"CVE-2024-0056": ["abc123", "def456"]},
}


@pytest.fixture
def sample_document() -> dict[str, Any]:
    return copy.deepcopy(SAMPLE_DOCUMENT)


@pytest.fixture
def sample_records(sample_document):
    return records_from_dict(sample_document)


@pytest.fixture
def write_document(tmp_path: Path):
    """Write a document dict to ``<tmp>/<rel>`` and return the path."""

    def _write(document: dict[str, Any], rel: str = "2024/01/cve.json") -> Path:
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
        return path

    return _write
