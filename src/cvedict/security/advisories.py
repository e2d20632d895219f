"""Gather authoritative advisory data for a CVE document.

The monthly MSRC bulletin is the primary source. When enabled, NVD fills in
disclosures the bulletin does not cover.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import aiohttp

from cvedict.security.msrc_client import MsrcClient, MsrcFormatError, msrc_id_for_path
from cvedict.security.nvd_client import fetch_nvd_advisories
from cvedict.security.types import Advisory, CveRecords, Finding
from cvedict.utils.config import Settings

logger = logging.getLogger(__name__)


async def collect_advisories_async(
    records: CveRecords,
    path: str | Path,
    settings: Settings,
    use_nvd: bool = False,
) -> tuple[dict[str, Advisory], list[Finding]]:
    advisories: dict[str, Advisory] = {}
    findings: list[Finding] = []
    wanted = records.disclosure_ids

    msrc_id = msrc_id_for_path(path)
    if msrc_id is None:
        logger.info(f"No bulletin month can be derived from {path}; skipping MSRC")
    else:
        client = MsrcClient(settings.msrc_base_url)
        try:
            bulletin = await client.fetch_advisories(msrc_id, timeout_s=settings.http_timeout)
        except (aiohttp.ClientError, asyncio.TimeoutError, MsrcFormatError) as e:
            reason = str(e) or type(e).__name__
            findings.append(Finding(f"advisory: could not load MSRC bulletin {msrc_id}: {reason}"))
        else:
            advisories.update({k: v for k, v in bulletin.items() if k in wanted})

    missing = sorted(wanted - advisories.keys())
    if use_nvd and missing:
        logger.info(f"🔍 Looking up {len(missing)} CVE(s) in NVD")
        nvd, nvd_findings = await fetch_nvd_advisories(
            missing,
            api_key=settings.nvd_api_key,
            base_url=settings.nvd_base_url,
            timeout_s=settings.http_timeout,
        )
        advisories.update(nvd)
        findings.extend(nvd_findings)

    return advisories, findings


def collect_advisories(
    records: CveRecords,
    path: str | Path,
    settings: Settings,
    use_nvd: bool = False,
) -> tuple[dict[str, Advisory], list[Finding]]:
    return asyncio.run(collect_advisories_async(records, path, settings, use_nvd))
