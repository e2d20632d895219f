#!/usr/bin/env python3

from __future__ import annotations

import json
from dataclasses import replace

import pytest

from cvedict.data.document import load_records
from cvedict.pipeline import manager
from cvedict.pipeline.manager import (
    Command,
    RunOptions,
    find_cve_files,
    generate_records,
    process_path,
    update_records,
    validate_records,
)
from cvedict.security.types import Advisory, Finding

OFFLINE = RunOptions(skip_network=True)


def _stale(document: dict) -> dict:
    document["product_cves"] = {"dotnet-runtime": ["CVE-2024-0056", "CVE-2024-9999"]}
    document.pop("cve_commits")
    return document


def test_handler_table_covers_every_command() -> None:
    assert set(manager._HANDLERS) == set(Command)


def test_validate_records_is_clean_for_sample(sample_records) -> None:
    result = validate_records(sample_records, OFFLINE)
    assert result.findings == []
    assert result.ok


def test_validate_records_orders_checker_output(sample_records) -> None:
    bad_product = replace(sample_records.products[0], cve_id="CVE-2030-0001", release="8")
    records = replace(sample_records, products=(bad_product,))
    messages = [f.message for f in validate_records(records, OFFLINE).findings]
    prefixes = [m.split(":", 1)[0] for m in messages]
    # integrity first, release format after dictionary findings
    assert prefixes[0] == "integrity"
    assert prefixes.index("release") > prefixes.index("product_cves")


def test_validate_of_generate_has_no_dictionary_findings(sample_document) -> None:
    from cvedict.data.document import records_from_dict

    records = records_from_dict(_stale(sample_document))
    assert validate_records(records, OFFLINE).findings
    regenerated = generate_records(records)
    assert validate_records(regenerated, OFFLINE).findings == []
    # Input aggregate is not modified
    assert records.cve_commits is None


def test_update_records_merges_then_regenerates(sample_document) -> None:
    from cvedict.data.document import records_from_dict

    records = records_from_dict(_stale(sample_document))
    advisory = Advisory(cve_id="CVE-2024-0056", score=9.1)
    updated = update_records(records, {"CVE-2024-0056": advisory})
    assert updated.disclosures[0].cvss.score == 9.1
    assert updated.disclosures[0].cvss.severity == "critical"
    assert updated.cve_commits == {"CVE-2024-0056": ["abc123", "def456"]}


def test_validate_with_network_appends_url_package_and_reconcile_findings(
    monkeypatch, sample_records, write_document, sample_document
) -> None:
    path = write_document(sample_document)
    monkeypatch.setattr(manager, "check_urls", lambda urls, **kw: [Finding("urls: x returned HTTP 404")])
    monkeypatch.setattr(manager, "check_packages", lambda names, **kw: [])
    monkeypatch.setattr(
        manager,
        "collect_advisories",
        lambda records, p, settings, use_nvd: (
            {"CVE-2024-0056": Advisory(cve_id="CVE-2024-0056", weakness="CWE-20")},
            [],
        ),
    )
    summary = process_path(path, Command.VALIDATE, RunOptions(skip_network=False, quiet=True))
    messages = [f.message for f in summary.results[0].findings]
    assert messages == [
        "urls: x returned HTTP 404",
        "advisory: CVE-2024-0056 weakness mismatch: CWE-400 (current) vs CWE-20 (external)",
    ]
    assert summary.failed == 1


def test_skip_network_never_touches_network(monkeypatch, write_document, sample_document) -> None:
    def _boom(*args, **kwargs):
        raise AssertionError("network used")

    monkeypatch.setattr(manager, "check_urls", _boom)
    monkeypatch.setattr(manager, "check_packages", _boom)
    monkeypatch.setattr(manager, "collect_advisories", _boom)
    path = write_document(sample_document)
    for command in Command:
        assert process_path(path, command, OFFLINE).exit_code == 0


def test_process_path_validate_single_file(capsys, write_document, sample_document) -> None:
    path = write_document(sample_document)
    summary = process_path(path, Command.VALIDATE, OFFLINE)
    assert summary.exit_code == 0
    out = capsys.readouterr().out
    assert f"✓ {path}: ok" in out
    assert "Processing complete: 1 succeeded, 0 failed" in out


def test_process_path_continues_after_bad_file(capsys, tmp_path, write_document, sample_document) -> None:
    write_document(sample_document, "2024/01/cve.json")
    broken = tmp_path / "2024" / "02" / "cve.json"
    broken.parent.mkdir(parents=True)
    broken.write_text("{ not json", encoding="utf-8")

    summary = process_path(tmp_path, Command.VALIDATE, OFFLINE)
    assert [r.path for r in summary.results] == sorted([broken, tmp_path / "2024/01/cve.json"])
    assert summary.succeeded == 1
    assert summary.failed == 1
    assert summary.exit_code == 1
    out = capsys.readouterr().out
    assert "Failed to parse JSON" in out
    assert "Processing complete: 1 succeeded, 1 failed" in out


def test_findings_are_printed_with_context(capsys, write_document, sample_document) -> None:
    path = write_document(_stale(sample_document))
    summary = process_path(path, Command.VALIDATE, OFFLINE)
    assert summary.failed == 1
    out = capsys.readouterr().out
    assert "✗ product_cves['dotnet-runtime']: Value mismatch (unexpected CVE-2024-9999)" in out
    assert "· Expected: [CVE-2024-0056]" in out
    assert "cve_commits: Dictionary is missing" in out


def test_advisory_findings_do_not_fail_file(capsys, write_document, sample_document) -> None:
    sample_document["disclosures"][0]["description"] = ["A MITM attacker can make the process hang."]
    path = write_document(sample_document)
    summary = process_path(path, Command.VALIDATE, OFFLINE)
    assert summary.exit_code == 0
    assert "⚠ wording: CVE-2024-0056 uses 'MITM'" in capsys.readouterr().out


def test_quiet_hides_clean_files(capsys, write_document, sample_document) -> None:
    write_document(sample_document)
    summary = process_path(write_document(sample_document), Command.VALIDATE, RunOptions(True, True))
    assert summary.exit_code == 0
    out = capsys.readouterr().out.strip().splitlines()
    assert out == ["Processing complete: 1 succeeded, 0 failed"]


def test_generate_rewrites_stale_file(write_document, sample_document) -> None:
    path = write_document(_stale(sample_document))
    summary = process_path(path, Command.GENERATE, OFFLINE)
    assert summary.exit_code == 0
    assert summary.results[0].changed
    records = load_records(path)
    assert records.product_cves == {"dotnet-runtime": ["CVE-2024-0056"]}
    assert validate_records(records, OFFLINE).findings == []

    # A second run finds nothing to change
    again = process_path(path, Command.GENERATE, OFFLINE)
    assert not again.results[0].changed


def test_update_without_network_only_regenerates(write_document, sample_document) -> None:
    path = write_document(_stale(sample_document))
    summary = process_path(path, Command.UPDATE, OFFLINE)
    assert summary.exit_code == 0
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["cve_commits"] == {"CVE-2024-0056": ["abc123", "def456"]}
    assert data["disclosures"][0]["cvss"]["score"] == 7.5


def test_update_with_advisories(monkeypatch, write_document, sample_document) -> None:
    path = write_document(sample_document)
    monkeypatch.setattr(
        manager,
        "collect_advisories",
        lambda records, p, settings, use_nvd: (
            {"CVE-2024-0056": Advisory(cve_id="CVE-2024-0056", score=5.3, impact="Tampering")},
            [Finding("advisory: NVD lookup for CVE-2024-0099 was rate limited")],
        ),
    )
    summary = process_path(path, Command.UPDATE, RunOptions(skip_network=False, quiet=True))
    assert summary.exit_code == 0
    cve = load_records(path).disclosures[0]
    assert cve.cvss.score == 5.3
    assert cve.cvss.severity == "medium"
    assert cve.cna is not None and cve.cna.impact == "Tampering"


def test_failed_write_leaves_original(monkeypatch, write_document, sample_document) -> None:
    path = write_document(_stale(sample_document))
    before = path.read_text(encoding="utf-8")

    def _fail(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(manager, "save_records", _fail)
    summary = process_path(path, Command.GENERATE, OFFLINE)
    assert summary.failed == 1
    assert summary.results[0].error == "disk full"
    assert path.read_text(encoding="utf-8") == before


def test_generate_refuses_document_with_unknown_fields(capsys, write_document, sample_document) -> None:
    sample_document["products"][0]["component"] = "runtime"
    path = write_document(_stale(sample_document))
    before = path.read_text(encoding="utf-8")
    summary = process_path(path, Command.GENERATE, OFFLINE)
    assert summary.exit_code == 1
    assert not summary.results[0].changed
    assert "products[0] has unknown field(s): component" in capsys.readouterr().out
    assert path.read_text(encoding="utf-8") == before


@pytest.mark.parametrize("target", ["missing-dir", "empty-dir"])
def test_no_documents_is_failure(tmp_path, target) -> None:
    path = tmp_path / target
    if target == "empty-dir":
        path.mkdir()
    summary = process_path(path, Command.VALIDATE, OFFLINE)
    assert summary.results == []
    assert summary.exit_code == 1
    assert find_cve_files(path) == []
