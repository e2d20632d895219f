#!/usr/bin/env python3
"""
CVE document orchestrator.

Runs validate, generate and update over one record set or over every
``cve.json`` beneath a directory. Each file is processed independently: a
failure in one file is reported and counted, and the run moves on.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from cvedict.constants import CVE_JSON_FILENAME, STATUS_ICONS
from cvedict.data.document import dumps, loads, save_records
from cvedict.security.advisories import collect_advisories
from cvedict.security.dictionaries import (
    apply_dictionaries,
    build_dictionaries,
    validate_dictionaries,
)
from cvedict.security.integrity import check_integrity, check_version_ranges
from cvedict.security.probes import (
    check_packages,
    check_urls,
    collect_package_names,
    collect_urls,
)
from cvedict.security.reconcile import merge_advisories, reconcile
from cvedict.security.semantics import (
    check_commit_branches,
    check_problem_keywords,
    check_release_format,
    check_taxonomy,
)
from cvedict.security.types import CveRecords, Finding
from cvedict.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


class Command(Enum):
    """Operation applied to each document."""

    VALIDATE = "validate"
    GENERATE = "generate"
    UPDATE = "update"


@dataclass(frozen=True)
class RunOptions:
    """Per-run switches.

    ``skip_network`` disables URL/package probes and advisory reconciliation
    entirely. ``use_nvd`` additionally consults NVD for disclosures the MSRC
    bulletin does not cover.
    """

    skip_network: bool = False
    quiet: bool = False
    use_nvd: bool = False
    settings: Settings = field(default_factory=Settings)


@dataclass
class ValidationResult:
    findings: list[Finding] = field(default_factory=list)

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.findings if f.is_error]

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class FileResult:
    """Outcome of one command applied to one file."""

    path: Path
    command: Command
    findings: list[Finding] = field(default_factory=list)
    changed: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and not any(f.is_error for f in self.findings)


@dataclass
class RunSummary:
    results: list[FileResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded

    @property
    def exit_code(self) -> int:
        return 0 if self.results and self.failed == 0 else 1


def validate_records(
    records: CveRecords,
    options: RunOptions | None = None,
    advisories: Mapping[str, Any] | None = None,
) -> ValidationResult:
    """Run every checker against ``records`` without modifying them.

    Findings are concatenated in a fixed order: integrity, version ranges,
    dictionaries, taxonomy, release format, commit branches, problem
    keywords, then network probes and reconciliation.
    """
    options = options or RunOptions(skip_network=True)
    findings: list[Finding] = []
    findings.extend(check_integrity(records))
    findings.extend(check_version_ranges(records))
    findings.extend(validate_dictionaries(records))
    findings.extend(check_taxonomy(records))
    findings.extend(check_release_format(records))
    findings.extend(check_commit_branches(records))
    findings.extend(check_problem_keywords(records))

    if not options.skip_network:
        settings = options.settings
        progress = settings.progress and not options.quiet
        findings.extend(
            check_urls(
                collect_urls(records),
                timeout_s=settings.http_timeout,
                max_concurrency=settings.max_concurrency,
                progress=progress,
            )
        )
        findings.extend(
            check_packages(
                collect_package_names(records),
                base_url=settings.nuget_base_url,
                timeout_s=settings.http_timeout,
                max_concurrency=settings.max_concurrency,
                progress=progress,
            )
        )
        if advisories is not None:
            findings.extend(reconcile(records, advisories))

    return ValidationResult(findings)


def generate_records(records: CveRecords) -> CveRecords:
    """Return ``records`` with all derived dictionaries rebuilt."""
    return apply_dictionaries(records, build_dictionaries(records))


def update_records(records: CveRecords, advisories: Mapping[str, Any]) -> CveRecords:
    """Merge advisory fields, then rebuild the derived dictionaries."""
    return generate_records(merge_advisories(records, advisories))


def _validate_file(
    path: Path, records: CveRecords, original: str, options: RunOptions
) -> FileResult:
    advisories = None
    findings: list[Finding] = []
    if not options.skip_network:
        advisories, findings = collect_advisories(records, path, options.settings, options.use_nvd)
    result = validate_records(records, options, advisories)
    return FileResult(path, Command.VALIDATE, findings=result.findings + findings)


def _write_if_changed(path: Path, original: str, records: CveRecords) -> bool:
    if dumps(records) == original:
        return False
    save_records(path, records)
    logger.info(f"💾 Wrote {path}")
    return True


def _generate_file(
    path: Path, records: CveRecords, original: str, options: RunOptions
) -> FileResult:
    updated = generate_records(records)
    changed = _write_if_changed(path, original, updated)
    return FileResult(path, Command.GENERATE, changed=changed)


def _update_file(
    path: Path, records: CveRecords, original: str, options: RunOptions
) -> FileResult:
    advisories: dict[str, Any] = {}
    if options.skip_network:
        logger.warning(f"⚠️  Network disabled; {path} gets dictionaries only")
    else:
        advisories, problems = collect_advisories(records, path, options.settings, options.use_nvd)
        for finding in problems:
            logger.warning(f"⚠️  {finding.message}")
    updated = update_records(records, advisories)
    changed = _write_if_changed(path, original, updated)
    return FileResult(path, Command.UPDATE, changed=changed)


_HANDLERS: dict[Command, Callable[[Path, CveRecords, str, RunOptions], FileResult]] = {
    Command.VALIDATE: _validate_file,
    Command.GENERATE: _generate_file,
    Command.UPDATE: _update_file,
}


def find_cve_files(path: str | Path) -> list[Path]:
    """Return ``path`` itself when it is a file, else every ``cve.json`` below it."""
    root = Path(path)
    if root.is_file():
        return [root]
    if root.is_dir():
        return sorted(root.rglob(CVE_JSON_FILENAME))
    return []


def process_file(path: Path, command: Command, options: RunOptions) -> FileResult:
    try:
        original = path.read_text(encoding="utf-8")
        return _HANDLERS[command](path, loads(original), original, options)
    except Exception as e:
        logger.error(f"❌ {command.value} failed for {path}: {e}")
        logger.debug("Traceback", exc_info=True)
        return FileResult(path, command, error=str(e) or type(e).__name__)


def print_file_result(result: FileResult, quiet: bool = False) -> None:
    if quiet and result.ok and not result.findings:
        return
    icon = STATUS_ICONS["success"] if result.ok else STATUS_ICONS["error"]
    if result.error is not None:
        print(f"{icon} {result.path}: {result.error}")
        return
    if result.command is Command.VALIDATE:
        label = f"{len(result.findings)} finding(s)" if result.findings else "ok"
    else:
        label = "updated" if result.changed else "unchanged"
    print(f"{icon} {result.path}: {label}")
    for finding in result.findings:
        mark = STATUS_ICONS["error"] if finding.is_error else STATUS_ICONS["advisory"]
        print(f"    {mark} {finding.message}")
        for line in finding.context:
            print(f"        {STATUS_ICONS['context']} {line}")


def process_path(
    path: str | Path, command: Command, options: RunOptions | None = None
) -> RunSummary:
    """Apply ``command`` to every document at ``path`` and print the outcome."""
    options = options or RunOptions()
    summary = RunSummary()
    files = find_cve_files(path)
    if not files:
        logger.error(f"❌ No {CVE_JSON_FILENAME} found at {path}")
        return summary

    logger.info(f"🚀 {command.value}: {len(files)} file(s)")
    for file_path in files:
        result = process_file(file_path, command, options)
        summary.results.append(result)
        print_file_result(result, options.quiet)

    print(f"Processing complete: {summary.succeeded} succeeded, {summary.failed} failed")
    return summary


def default_options(
    skip_network: bool = False, quiet: bool = False, use_nvd: bool = False
) -> RunOptions:
    """Build options with settings read from the environment."""
    return RunOptions(
        skip_network=skip_network, quiet=quiet, use_nvd=use_nvd, settings=get_settings()
    )
