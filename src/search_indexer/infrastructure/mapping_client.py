import asyncio
import json

import aiohttp
from aiohttp import ClientError, ContentTypeError

from src.config.logger_config import logger
from src.search_indexer.domain.errors import FetchError, FetchErrorKind, StartupConfigError
from src.search_indexer.domain.models import RoutingRule
from src.search_indexer.domain.routing import parse_routing_rules
from src.search_indexer.infrastructure.http_fetcher import classify_status
from src.search_indexer.infrastructure.retry import RetryPolicy, retry_async

DEFAULT_MAPPING_URL = (
    "https://raw.githubusercontent.com/AdobeDocs/search-indices/refs/heads/main/product-index-map.json"
)


class ProductMappingClient:
    def __init__(self, mapping_url: str = DEFAULT_MAPPING_URL, retry_policy: RetryPolicy | None = None) -> None:
        self.mapping_url = mapping_url
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = aiohttp.ClientTimeout(total=30, connect=10)

    async def fetch_rules(self, session: aiohttp.ClientSession) -> tuple[RoutingRule, ...]:
        logger.info("Loading product mappings from: {}", self.mapping_url)
        try:
            payload = await retry_async(
                lambda: self._fetch_payload(session),
                self.retry_policy,
                description="product mapping",
            )
        except FetchError as exc:
            raise StartupConfigError(f"Failed to load product mappings: {exc}") from exc

        rules = parse_routing_rules(payload)
        products = {rule.product_name for rule in rules}
        logger.info("Loaded {} products with {} indices", len(products), len(rules))
        return rules

    async def _fetch_payload(self, session: aiohttp.ClientSession):
        try:
            async with session.get(self.mapping_url, timeout=self.timeout) as resp:
                kind = classify_status(resp.status)
                if kind is not None:
                    raise FetchError(self.mapping_url, kind, status=resp.status)
                try:
                    return await resp.json(content_type=None)
                except (ContentTypeError, json.JSONDecodeError, ValueError) as exc:
                    raise StartupConfigError(f"Product mapping is not valid JSON: {exc}") from exc
        except (FetchError, StartupConfigError):
            raise
        except (ClientError, asyncio.TimeoutError) as exc:
            raise FetchError(self.mapping_url, FetchErrorKind.RETRYABLE, message=str(exc)) from exc
