"""
Typed records for CVE documents and validation findings.

Every record is a frozen dataclass; changes produce new values via
``dataclasses.replace``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Event:
    """A dated event in the CVE lifecycle."""

    date: str
    description: str


@dataclass(frozen=True)
class Timeline:
    disclosure: Event
    fixed: Event | None = None
    other: tuple[Event, ...] | None = None


@dataclass(frozen=True)
class Cvss:
    """CVSS scoring block; ``score`` 0 and empty ``severity`` mean unset."""

    version: str
    vector: str
    score: float = 0.0
    severity: str = ""
    source: str | None = None
    temporal_score: float | None = None


@dataclass(frozen=True)
class CnaFaq:
    question: str
    answer: str


@dataclass(frozen=True)
class Cna:
    """CVE Numbering Authority block (issuer name plus vendor classification)."""

    name: str
    severity: str | None = None
    impact: str | None = None
    acknowledgments: tuple[str, ...] | None = None
    faq: tuple[CnaFaq, ...] | None = None


@dataclass(frozen=True)
class Cve:
    """A disclosed vulnerability."""

    id: str
    problem: str
    description: tuple[str, ...]
    cvss: Cvss
    timeline: Timeline
    platforms: tuple[str, ...]
    architectures: tuple[str, ...]
    references: tuple[str, ...]
    mitigation: tuple[str, ...] | None = None
    weakness: str | None = None
    cna: Cna | None = None


@dataclass(frozen=True)
class Product:
    """A product affected by a CVE within one release family."""

    cve_id: str
    name: str
    min_vulnerable: str
    max_vulnerable: str
    fixed: str
    release: str
    commits: tuple[str, ...] | None = None

    kind = "product"


@dataclass(frozen=True)
class Package:
    """A package affected by a CVE; ``release`` is optional for packages."""

    cve_id: str
    name: str
    min_vulnerable: str
    max_vulnerable: str
    fixed: str
    release: str | None = None
    commits: tuple[str, ...] | None = None

    kind = "package"


ImpactEntry = Product | Package


@dataclass(frozen=True)
class CommitInfo:
    repo: str
    branch: str
    hash: str
    org: str
    url: str


StrListDict = dict[str, list[str]]


@dataclass(frozen=True)
class CveRecords:
    """The whole document: normalized data plus derived dictionaries."""

    last_updated: str
    title: str
    disclosures: tuple[Cve, ...]
    products: tuple[Product, ...]
    packages: tuple[Package, ...]
    commits: dict[str, CommitInfo] | None = None
    product_name: dict[str, str] | None = None
    product_cves: StrListDict | None = None
    package_cves: StrListDict | None = None
    release_cves: StrListDict | None = None
    cve_releases: StrListDict | None = None
    cve_commits: StrListDict | None = None

    @property
    def disclosure_ids(self) -> set[str]:
        return {cve.id for cve in self.disclosures}

    def impact_entries(self) -> list[tuple[str, int, ImpactEntry]]:
        """Return ``(collection, index, entry)`` for products then packages."""
        entries: list[tuple[str, int, ImpactEntry]] = []
        entries.extend(("products", i, p) for i, p in enumerate(self.products))
        entries.extend(("packages", i, p) for i, p in enumerate(self.packages))
        return entries


class FindingLevel(Enum):
    """How a finding affects the outcome of a validation run."""

    ERROR = "error"
    ADVISORY = "advisory"


@dataclass(frozen=True)
class Finding:
    """A single human-readable discrepancy.

    ``context`` carries supporting lines shown under the message (for
    example correct commit/branch pairs next to a mismatch).
    """

    message: str
    level: FindingLevel = FindingLevel.ERROR
    context: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_error(self) -> bool:
        return self.level is FindingLevel.ERROR

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class Advisory:
    """Authoritative fields for one CVE supplied by an external source."""

    cve_id: str
    score: float | None = None
    vector: str | None = None
    weakness: str | None = None
    cna_severity: str | None = None
    impact: str | None = None
    acknowledgments: tuple[str, ...] = ()
    faq: tuple[CnaFaq, ...] = ()
