import asyncio

import aiohttp
from aiohttp import ClientError

from src.config.logger_config import logger
from src.search_indexer.domain.errors import FetchError, FetchErrorKind
from src.search_indexer.infrastructure.retry import RetryPolicy, retry_async

DEFAULT_HEADERS = {
    "User-Agent": "search-indexer/0.1 (+sitemap crawler)",
    "Accept": "text/html,application/xhtml+xml",
}


def classify_status(status: int) -> FetchErrorKind | None:
    if 200 <= status < 300:
        return None
    if status == 404:
        return FetchErrorKind.NOT_FOUND
    return FetchErrorKind.RETRYABLE


class HttpDocumentFetcher:
    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout or aiohttp.ClientTimeout(total=45, connect=10)
        self.headers = headers or dict(DEFAULT_HEADERS)

    async def fetch(self, session: aiohttp.ClientSession, url: str) -> str:
        return await retry_async(
            lambda: self._fetch_once(session, url),
            self.retry_policy,
            description=f"GET {url}",
        )

    async def _fetch_once(self, session: aiohttp.ClientSession, url: str) -> str:
        try:
            async with session.get(url, headers=self.headers, timeout=self.timeout) as resp:
                kind = classify_status(resp.status)
                if kind is not None:
                    raise FetchError(url, kind, status=resp.status)
                try:
                    return await resp.text()
                except UnicodeDecodeError as exc:
                    raise FetchError(
                        url, FetchErrorKind.FATAL, status=resp.status, message=f"undecodable body: {exc}"
                    ) from exc
        except FetchError:
            raise
        except (ClientError, asyncio.TimeoutError) as exc:
            logger.debug("Network error for {}: {}", url, exc)
            raise FetchError(url, FetchErrorKind.RETRYABLE, message=f"{type(exc).__name__}: {exc}") from exc
