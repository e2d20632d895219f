from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, cast

import aiohttp

from cvedict.constants import (
    NVD_API_BASE_URL,
    NVD_DELAY_NO_KEY,
    NVD_DELAY_WITH_KEY,
    USER_AGENT,
)
from cvedict.security.types import Advisory, Finding

logger = logging.getLogger(__name__)


class NVDClient:
    """Lightweight async client for the NVD CVE API v2 endpoints."""

    def __init__(self, api_key: str | None = None, base_url: str = NVD_API_BASE_URL) -> None:
        self.base_url: str = base_url
        self.headers: dict[str, str] = {"User-Agent": USER_AGENT}
        if api_key:
            self.headers["apiKey"] = api_key

    async def fetch(
        self,
        session: aiohttp.ClientSession,
        params: dict[str, Any],
        on_rate_limit: Callable[[aiohttp.ClientResponse], Awaitable[None]],
        timeout_s: float = 30,
    ) -> dict[str, Any] | None:
        """
        Perform a GET request to the CVE search endpoint.

        Returns parsed JSON dict on success.
        If a rate limit (429) is hit, calls on_rate_limit and returns None.
        """
        async with session.get(
            self.base_url,
            headers=self.headers,
            params=params,
            timeout=aiohttp.ClientTimeout(total=timeout_s),
        ) as resp:
            if resp.status == 429:
                await on_rate_limit(resp)
                return None
            resp.raise_for_status()
            data: dict[str, Any] = await resp.json()
            return data


def parse_nvd_advisory(cve_id: str, data: dict[str, Any]) -> Advisory | None:
    """Extract score, vector and weakness for ``cve_id`` from an NVD response."""
    vulnerabilities = cast(list[dict[str, Any]], data.get("vulnerabilities", []))
    for vuln in vulnerabilities:
        cve = vuln.get("cve", {})
        if cve.get("id") != cve_id:
            continue

        metrics = cast(dict[str, Any], cve.get("metrics", {}))
        score: float | None = None
        vector: str | None = None
        for key in ("cvssMetricV31", "cvssMetricV30"):
            entries = metrics.get(key) or []
            if not entries:
                continue
            # Prefer the CNA's own score when several sources are listed
            chosen = next((e for e in entries if e.get("type") == "Secondary"), entries[0])
            cvss_data = chosen.get("cvssData", {})
            if cvss_data.get("baseScore") is not None:
                score = float(cvss_data["baseScore"])
            vector = cvss_data.get("vectorString") or None
            break

        weakness: str | None = None
        for item in cve.get("weaknesses", []):
            for desc in item.get("description", []):
                value = str(desc.get("value", ""))
                if value.startswith("CWE-"):
                    weakness = value
                    break
            if weakness:
                break

        return Advisory(cve_id=cve_id, score=score, vector=vector, weakness=weakness)
    return None


async def fetch_nvd_advisories(
    cve_ids: Iterable[str],
    api_key: str | None = None,
    base_url: str = NVD_API_BASE_URL,
    timeout_s: float = 30,
    delay_s: float | None = None,
) -> tuple[dict[str, Advisory], list[Finding]]:
    """Look up each CVE in turn, pausing between requests.

    The pause is courtesy pacing for the public API, not a concurrency
    control. Each failed lookup becomes its own finding.
    """
    if delay_s is None:
        delay_s = NVD_DELAY_WITH_KEY if api_key else NVD_DELAY_NO_KEY
    client = NVDClient(api_key, base_url)
    advisories: dict[str, Advisory] = {}
    findings: list[Finding] = []

    async def _on_rate_limit(response: aiohttp.ClientResponse) -> None:
        retry_after = response.headers.get("Retry-After")
        wait_time = delay_s or 1.0
        if retry_after:
            try:
                wait_time = float(retry_after)
            except ValueError:
                pass
        logger.warning(f"⏰ NVD rate limited - waiting {wait_time:.1f}s")
        await asyncio.sleep(wait_time)

    ids = sorted(set(cve_ids))
    async with aiohttp.ClientSession() as session:
        for i, cve_id in enumerate(ids):
            if i > 0 and delay_s:
                await asyncio.sleep(delay_s)
            try:
                data = await client.fetch(session, {"cveId": cve_id}, _on_rate_limit, timeout_s)
                if data is None:
                    # One retry after the rate-limit wait
                    data = await client.fetch(session, {"cveId": cve_id}, _on_rate_limit, timeout_s)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                reason = str(e) or type(e).__name__
                findings.append(Finding(f"advisory: NVD lookup for {cve_id} failed: {reason}"))
                continue
            if data is None:
                findings.append(Finding(f"advisory: NVD lookup for {cve_id} was rate limited"))
                continue
            advisory = parse_nvd_advisory(cve_id, data)
            if advisory is None:
                logger.info("NVD has no record for %s", cve_id)
                continue
            advisories[cve_id] = advisory
    return advisories, findings
