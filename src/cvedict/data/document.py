#!/usr/bin/env python3
"""
Decode and encode ``cve.json`` documents.

Decoding turns the snake_case JSON document into the frozen records in
``cvedict.security.types`` and raises ``RecordFormatError`` for structural
problems (bad JSON, missing or mistyped required fields, unknown fields on
closed records). The legacy bare-string CNA shape is normalized here so
nothing downstream sees it.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from cvedict.security.types import (
    Cna,
    CnaFaq,
    CommitInfo,
    Cve,
    CveRecords,
    Cvss,
    Event,
    Package,
    Product,
    Timeline,
)

_TOP_LEVEL_KEYS = {
    "last_updated",
    "title",
    "disclosures",
    "products",
    "packages",
    "commits",
    "product_name",
    "product_cves",
    "package_cves",
    "release_cves",
    "cve_releases",
    "cve_commits",
}
_EVENT_KEYS = {"date", "description"}
_TIMELINE_KEYS = {"disclosure", "fixed", "other"}
_CVSS_KEYS = {"version", "vector", "score", "severity", "source", "temporal_score"}
_FAQ_KEYS = {"question", "answer"}
_ENTRY_KEYS = {"cve_id", "name", "min_vulnerable", "max_vulnerable", "fixed", "release", "commits"}
_COMMIT_KEYS = {"repo", "branch", "hash", "org", "url"}


class RecordFormatError(ValueError):
    pass


def _reject_unknown(obj: Mapping[str, Any], allowed: set[str], where: str) -> None:
    # Disclosures and CNA objects tolerate extra members; every other record is closed
    unknown = sorted(set(obj) - allowed)
    if unknown:
        raise RecordFormatError(f"{where} has unknown field(s): {', '.join(unknown)}")


def _require(obj: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in obj or obj[key] is None:
        raise RecordFormatError(f"{where} is missing required field '{key}'")
    return obj[key]


def _str(obj: Mapping[str, Any], key: str, where: str) -> str:
    value = _require(obj, key, where)
    if not isinstance(value, str):
        raise RecordFormatError(f"{where}.{key} must be a string")
    return value


def _opt_str(obj: Mapping[str, Any], key: str, where: str) -> str | None:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise RecordFormatError(f"{where}.{key} must be a string")
    return value


def _str_list(value: Any, where: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise RecordFormatError(f"{where} must be a list of strings")
    return tuple(value)


def _opt_str_list(obj: Mapping[str, Any], key: str, where: str) -> tuple[str, ...] | None:
    value = obj.get(key)
    if value is None:
        return None
    return _str_list(value, f"{where}.{key}")


def _obj(value: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise RecordFormatError(f"{where} must be an object")
    return value


def _number(value: Any, where: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise RecordFormatError(f"{where} must be a number")
    return float(value)


def _event(value: Any, where: str) -> Event:
    obj = _obj(value, where)
    _reject_unknown(obj, _EVENT_KEYS, where)
    return Event(date=_str(obj, "date", where), description=_str(obj, "description", where))


def _timeline(value: Any, where: str) -> Timeline:
    obj = _obj(value, where)
    _reject_unknown(obj, _TIMELINE_KEYS, where)
    fixed = obj.get("fixed")
    other = obj.get("other")
    if other is not None and not isinstance(other, list):
        raise RecordFormatError(f"{where}.other must be a list")
    return Timeline(
        disclosure=_event(_require(obj, "disclosure", where), f"{where}.disclosure"),
        fixed=_event(fixed, f"{where}.fixed") if fixed is not None else None,
        other=(
            tuple(_event(e, f"{where}.other[{i}]") for i, e in enumerate(other))
            if other is not None
            else None
        ),
    )


def _cvss(value: Any, where: str) -> Cvss:
    obj = _obj(value, where)
    _reject_unknown(obj, _CVSS_KEYS, where)
    temporal = obj.get("temporal_score")
    return Cvss(
        version=_str(obj, "version", where),
        vector=_str(obj, "vector", where),
        score=_number(obj["score"], f"{where}.score") if obj.get("score") is not None else 0.0,
        severity=_opt_str(obj, "severity", where) or "",
        source=_opt_str(obj, "source", where),
        temporal_score=_number(temporal, f"{where}.temporal_score") if temporal is not None else None,
    )


def decode_cna(value: Any, where: str = "cna") -> Cna | None:
    """Decode both CNA shapes: legacy ``"microsoft"`` and the object form."""
    if value is None:
        return None
    if isinstance(value, str):
        return Cna(name=value)
    if not isinstance(value, Mapping):
        raise RecordFormatError(f"{where} must be a string or an object")
    faq_raw = value.get("faq")
    faq: tuple[CnaFaq, ...] | None = None
    if faq_raw is not None:
        if not isinstance(faq_raw, list):
            raise RecordFormatError(f"{where}.faq must be a list")
        items: list[CnaFaq] = []
        for i, item in enumerate(faq_raw):
            entry = _obj(item, f"{where}.faq[{i}]")
            _reject_unknown(entry, _FAQ_KEYS, f"{where}.faq[{i}]")
            items.append(
                CnaFaq(
                    question=_str(entry, "question", f"{where}.faq[{i}]"),
                    answer=_str(entry, "answer", f"{where}.faq[{i}]"),
                )
            )
        faq = tuple(items)
    return Cna(
        name=_opt_str(value, "name", where) or "",
        severity=_opt_str(value, "severity", where),
        impact=_opt_str(value, "impact", where),
        acknowledgments=_opt_str_list(value, "acknowledgments", where),
        faq=faq,
    )


def _cve(value: Any, where: str) -> Cve:
    obj = _obj(value, where)
    description = _require(obj, "description", where)
    if isinstance(description, str):
        description = [description]
    return Cve(
        id=_str(obj, "id", where),
        problem=_str(obj, "problem", where),
        description=_str_list(description, f"{where}.description"),
        cvss=_cvss(_require(obj, "cvss", where), f"{where}.cvss"),
        timeline=_timeline(_require(obj, "timeline", where), f"{where}.timeline"),
        platforms=_str_list(obj.get("platforms") or [], f"{where}.platforms"),
        architectures=_str_list(obj.get("architectures") or [], f"{where}.architectures"),
        references=_str_list(obj.get("references") or [], f"{where}.references"),
        mitigation=_opt_str_list(obj, "mitigation", where),
        weakness=_opt_str(obj, "weakness", where),
        cna=decode_cna(obj.get("cna"), f"{where}.cna"),
    )


def _product(value: Any, where: str) -> Product:
    obj = _obj(value, where)
    _reject_unknown(obj, _ENTRY_KEYS, where)
    return Product(
        cve_id=_str(obj, "cve_id", where),
        name=_str(obj, "name", where),
        min_vulnerable=_str(obj, "min_vulnerable", where),
        max_vulnerable=_str(obj, "max_vulnerable", where),
        fixed=_str(obj, "fixed", where),
        release=_str(obj, "release", where),
        commits=_opt_str_list(obj, "commits", where),
    )


def _package(value: Any, where: str) -> Package:
    obj = _obj(value, where)
    _reject_unknown(obj, _ENTRY_KEYS, where)
    return Package(
        cve_id=_str(obj, "cve_id", where),
        name=_str(obj, "name", where),
        min_vulnerable=_str(obj, "min_vulnerable", where),
        max_vulnerable=_str(obj, "max_vulnerable", where),
        fixed=_str(obj, "fixed", where),
        release=_opt_str(obj, "release", where),
        commits=_opt_str_list(obj, "commits", where),
    )


def _commit(value: Any, where: str) -> CommitInfo:
    obj = _obj(value, where)
    _reject_unknown(obj, _COMMIT_KEYS, where)
    return CommitInfo(
        repo=_str(obj, "repo", where),
        branch=_str(obj, "branch", where),
        hash=_str(obj, "hash", where),
        org=_str(obj, "org", where),
        url=_str(obj, "url", where),
    )


def _list_dict(obj: Mapping[str, Any], key: str) -> dict[str, list[str]] | None:
    value = obj.get(key)
    if value is None:
        return None
    mapping = _obj(value, key)
    return {k: list(_str_list(v, f"{key}['{k}']")) for k, v in mapping.items()}


def _array(obj: Mapping[str, Any], key: str) -> list[Any]:
    value = obj.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise RecordFormatError(f"'{key}' must be a list")
    return value


def records_from_dict(data: Any) -> CveRecords:
    """Build ``CveRecords`` from parsed JSON."""
    obj = _obj(data, "document")
    _reject_unknown(obj, _TOP_LEVEL_KEYS, "document")

    commits_raw = obj.get("commits")
    commits = (
        {k: _commit(v, f"commits['{k}']") for k, v in _obj(commits_raw, "commits").items()}
        if commits_raw is not None
        else None
    )
    product_name_raw = obj.get("product_name")
    product_name = None
    if product_name_raw is not None:
        names = _obj(product_name_raw, "product_name")
        product_name = {k: _str(names, k, "product_name") for k in names}

    return CveRecords(
        last_updated=_str(obj, "last_updated", "document"),
        title=_str(obj, "title", "document"),
        disclosures=tuple(
            _cve(v, f"disclosures[{i}]") for i, v in enumerate(_array(obj, "disclosures"))
        ),
        products=tuple(_product(v, f"products[{i}]") for i, v in enumerate(_array(obj, "products"))),
        packages=tuple(_package(v, f"packages[{i}]") for i, v in enumerate(_array(obj, "packages"))),
        commits=commits,
        product_name=product_name,
        product_cves=_list_dict(obj, "product_cves"),
        package_cves=_list_dict(obj, "package_cves"),
        release_cves=_list_dict(obj, "release_cves"),
        cve_releases=_list_dict(obj, "cve_releases"),
        cve_commits=_list_dict(obj, "cve_commits"),
    )


def _drop_none(obj: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in obj.items() if v is not None}


def _event_to_dict(event: Event) -> dict[str, Any]:
    return {"date": event.date, "description": event.description}


def _score_to_json(score: float) -> float:
    # Always a decimal literal: 10.0 stays "10.0"
    return float(score)


def cna_to_dict(cna: Cna) -> dict[str, Any]:
    return _drop_none(
        {
            "name": cna.name,
            "severity": cna.severity,
            "impact": cna.impact,
            "acknowledgments": list(cna.acknowledgments) if cna.acknowledgments else None,
            "faq": (
                [{"question": f.question, "answer": f.answer} for f in cna.faq] if cna.faq else None
            ),
        }
    )


def _cve_to_dict(cve: Cve) -> dict[str, Any]:
    cvss = cve.cvss
    timeline = cve.timeline
    return _drop_none(
        {
            "id": cve.id,
            "problem": cve.problem,
            "description": list(cve.description),
            "cvss": _drop_none(
                {
                    "version": cvss.version,
                    "vector": cvss.vector,
                    "score": _score_to_json(cvss.score) if cvss.score else None,
                    "severity": cvss.severity or None,
                    "source": cvss.source,
                    "temporal_score": (
                        _score_to_json(cvss.temporal_score)
                        if cvss.temporal_score is not None
                        else None
                    ),
                }
            ),
            "timeline": _drop_none(
                {
                    "disclosure": _event_to_dict(timeline.disclosure),
                    "fixed": _event_to_dict(timeline.fixed) if timeline.fixed else None,
                    "other": (
                        [_event_to_dict(e) for e in timeline.other]
                        if timeline.other is not None
                        else None
                    ),
                }
            ),
            "platforms": list(cve.platforms),
            "architectures": list(cve.architectures),
            "references": list(cve.references),
            "mitigation": list(cve.mitigation) if cve.mitigation is not None else None,
            "weakness": cve.weakness,
            "cna": cna_to_dict(cve.cna) if cve.cna is not None else None,
        }
    )


def _entry_to_dict(entry: Product | Package) -> dict[str, Any]:
    return _drop_none(
        {
            "cve_id": entry.cve_id,
            "name": entry.name,
            "min_vulnerable": entry.min_vulnerable,
            "max_vulnerable": entry.max_vulnerable,
            "fixed": entry.fixed,
            "release": entry.release,
            "commits": list(entry.commits) if entry.commits is not None else None,
        }
    )


def _commit_to_dict(info: CommitInfo) -> dict[str, Any]:
    return {
        "repo": info.repo,
        "branch": info.branch,
        "hash": info.hash,
        "org": info.org,
        "url": info.url,
    }


def records_to_dict(records: CveRecords) -> dict[str, Any]:
    """Inverse of ``records_from_dict``; omits absent optional fields."""
    return _drop_none(
        {
            "last_updated": records.last_updated,
            "title": records.title,
            "disclosures": [_cve_to_dict(c) for c in records.disclosures],
            "products": [_entry_to_dict(p) for p in records.products],
            "packages": [_entry_to_dict(p) for p in records.packages],
            "commits": (
                {k: _commit_to_dict(v) for k, v in records.commits.items()}
                if records.commits is not None
                else None
            ),
            "product_name": records.product_name,
            "product_cves": records.product_cves,
            "package_cves": records.package_cves,
            "release_cves": records.release_cves,
            "cve_releases": records.cve_releases,
            "cve_commits": records.cve_commits,
        }
    )


def loads(text: str) -> CveRecords:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise RecordFormatError(f"Failed to parse JSON: {e}") from e
    return records_from_dict(data)


def dumps(records: CveRecords) -> str:
    return json.dumps(records_to_dict(records), indent=2, ensure_ascii=False) + "\n"


def load_records(path: str | Path) -> CveRecords:
    """Load one ``cve.json`` document."""
    with open(path, encoding="utf-8") as f:
        return loads(f.read())


def save_records(path: str | Path, records: CveRecords) -> None:
    """Write ``records`` to ``path`` atomically (temp file + rename)."""
    target = Path(path)
    content = dumps(records)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=str(target.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
        os.replace(tmp_name, target)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
