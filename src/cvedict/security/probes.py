"""Network probes: reference URL liveness and package registry existence.

Both probes fan out one request per distinct item, bounded by a semaphore
and a per-request timeout. Every failing item yields its own finding.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

import aiohttp
from tqdm import tqdm

from cvedict.constants import (
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_MAX_CONCURRENCY,
    NUGET_FLAT_CONTAINER_URL,
    USER_AGENT,
)
from cvedict.security.types import CveRecords, Finding

logger = logging.getLogger(__name__)

_HEADERS = {"User-Agent": USER_AGENT}


def collect_urls(records: CveRecords) -> list[str]:
    """Distinct reference and commit URLs, sorted."""
    urls: set[str] = set()
    for cve in records.disclosures:
        urls.update(u for u in cve.references if u)
    for info in (records.commits or {}).values():
        if info.url:
            urls.add(info.url)
    return sorted(urls)


def collect_package_names(records: CveRecords) -> list[str]:
    return sorted({p.name for p in records.packages if p.name})


async def _status(session: Any, url: str, timeout: aiohttp.ClientTimeout) -> int:
    async with session.head(url, headers=_HEADERS, timeout=timeout, allow_redirects=True) as resp:
        status = resp.status
    if status in (403, 405):
        # Some hosts reject HEAD outright
        async with session.get(url, headers=_HEADERS, timeout=timeout, allow_redirects=True) as resp:
            status = resp.status
    return status


async def _fan_out(
    items: list[str],
    probe: Any,
    session: Any,
    max_concurrency: int,
    desc: str,
    progress: bool,
) -> list[Finding]:
    semaphore = asyncio.Semaphore(max(1, max_concurrency))
    results: dict[str, Finding | None] = {}

    with tqdm(total=len(items), desc=desc, unit=" items", disable=not progress) as pbar:

        async def _one(item: str) -> None:
            async with semaphore:
                results[item] = await probe(session, item)
            pbar.update(1)

        await asyncio.gather(*(_one(item) for item in items))

    # Report in input order regardless of completion order
    return [f for f in (results[item] for item in items) if f is not None]


async def check_urls_async(
    urls: Iterable[str],
    *,
    timeout_s: float = DEFAULT_HTTP_TIMEOUT,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    progress: bool = False,
    session: Any = None,
) -> list[Finding]:
    items = sorted(set(urls))
    if not items:
        return []
    timeout = aiohttp.ClientTimeout(total=timeout_s)

    async def _probe(sess: Any, url: str) -> Finding | None:
        try:
            status = await _status(sess, url, timeout)
        except asyncio.TimeoutError:
            return Finding(f"urls: {url} timed out after {timeout_s:g}s")
        except aiohttp.ClientError as e:
            return Finding(f"urls: {url} is unreachable: {str(e) or type(e).__name__}")
        if status >= 400:
            return Finding(f"urls: {url} returned HTTP {status}")
        return None

    logger.info(f"🌐 Checking {len(items)} URLs")
    if session is not None:
        return await _fan_out(items, _probe, session, max_concurrency, "Checking URLs", progress)
    async with aiohttp.ClientSession() as own:
        return await _fan_out(items, _probe, own, max_concurrency, "Checking URLs", progress)


async def check_packages_async(
    names: Iterable[str],
    *,
    base_url: str = NUGET_FLAT_CONTAINER_URL,
    timeout_s: float = DEFAULT_HTTP_TIMEOUT,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    progress: bool = False,
    session: Any = None,
) -> list[Finding]:
    """Confirm each package id has a version index in the NuGet registry."""
    items = sorted(set(names))
    if not items:
        return []
    timeout = aiohttp.ClientTimeout(total=timeout_s)
    base = base_url.rstrip("/")

    async def _probe(sess: Any, name: str) -> Finding | None:
        url = f"{base}/{name.lower()}/index.json"
        try:
            async with sess.get(url, headers=_HEADERS, timeout=timeout) as resp:
                status = resp.status
        except asyncio.TimeoutError:
            return Finding(f"packages: lookup for '{name}' timed out after {timeout_s:g}s")
        except aiohttp.ClientError as e:
            return Finding(f"packages: lookup for '{name}' failed: {str(e) or type(e).__name__}")
        if status == 404:
            return Finding(f"packages: '{name}' was not found in the package registry")
        if status >= 400:
            return Finding(f"packages: lookup for '{name}' returned HTTP {status}")
        return None

    logger.info(f"📦 Checking {len(items)} packages")
    if session is not None:
        return await _fan_out(items, _probe, session, max_concurrency, "Checking packages", progress)
    async with aiohttp.ClientSession() as own:
        return await _fan_out(items, _probe, own, max_concurrency, "Checking packages", progress)


def check_urls(urls: Iterable[str], **kwargs: Any) -> list[Finding]:
    return asyncio.run(check_urls_async(urls, **kwargs))


def check_packages(names: Iterable[str], **kwargs: Any) -> list[Finding]:
    return asyncio.run(check_packages_async(names, **kwargs))
