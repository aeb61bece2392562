import asyncio
from urllib.parse import urljoin

import aiohttp
from aiohttp import ClientError
from bs4 import BeautifulSoup

from src.config.logger_config import logger
from src.search_indexer.domain.errors import FetchError, FetchErrorKind, StartupConfigError
from src.search_indexer.domain.models import SitemapEntry
from src.search_indexer.infrastructure.http_fetcher import classify_status
from src.search_indexer.infrastructure.retry import RetryPolicy, retry_async


def parse_sitemap(xml: str) -> tuple[list[SitemapEntry], list[str]]:
    """Return (page entries, nested sitemap locations) from one sitemap document."""
    soup = BeautifulSoup(xml or "", "xml")
    entries: list[SitemapEntry] = []
    for node in soup.find_all("url"):
        loc = node.find("loc")
        location = loc.get_text(strip=True) if loc else ""
        if not location:
            continue
        lastmod = node.find("lastmod")
        hint = lastmod.get_text(strip=True) if lastmod else ""
        entries.append(SitemapEntry(location=location, last_modified_hint=hint or None))

    nested: list[str] = []
    for node in soup.find_all("sitemap"):
        loc = node.find("loc")
        if loc and loc.get_text(strip=True):
            nested.append(loc.get_text(strip=True))
    return entries, nested


class SitemapClient:
    def __init__(self, sitemap_url: str, retry_policy: RetryPolicy | None = None) -> None:
        self.sitemap_url = sitemap_url
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = aiohttp.ClientTimeout(total=60, connect=10)

    async def fetch_entries(self, session: aiohttp.ClientSession) -> list[SitemapEntry]:
        logger.info("Fetching sitemap from: {}", self.sitemap_url)
        entries, nested = parse_sitemap(await self._get(session, self.sitemap_url))

        # sitemap indexes are followed one level deep
        for child_url in nested:
            child_entries, _ = parse_sitemap(await self._get(session, urljoin(self.sitemap_url, child_url)))
            entries.extend(child_entries)

        seen: set[str] = set()
        unique: list[SitemapEntry] = []
        for entry in entries:
            if entry.location in seen:
                continue
            seen.add(entry.location)
            unique.append(entry)
        logger.info("Sitemap lists {} URLs", len(unique))
        return unique

    async def _get(self, session: aiohttp.ClientSession, url: str) -> str:
        async def attempt() -> str:
            try:
                async with session.get(url, timeout=self.timeout) as resp:
                    kind = classify_status(resp.status)
                    if kind is not None:
                        raise FetchError(url, kind, status=resp.status)
                    return await resp.text()
            except FetchError:
                raise
            except (ClientError, asyncio.TimeoutError) as exc:
                raise FetchError(url, FetchErrorKind.RETRYABLE, message=str(exc)) from exc

        try:
            return await retry_async(attempt, self.retry_policy, description=f"sitemap {url}")
        except FetchError as exc:
            raise StartupConfigError(f"Failed to fetch sitemap: {exc}") from exc
