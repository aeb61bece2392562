"""Infrastructure adapters for search indexing."""

from src.search_indexer.infrastructure.algolia_client import AlgoliaSearchClient
from src.search_indexer.infrastructure.http_fetcher import HttpDocumentFetcher
from src.search_indexer.infrastructure.mapping_client import ProductMappingClient
from src.search_indexer.infrastructure.record_sink import ConsoleRecordSink, JsonRecordExportSink, inspect_exports
from src.search_indexer.infrastructure.report_sink import JsonReportSink
from src.search_indexer.infrastructure.retry import RetryPolicy, retry_async
from src.search_indexer.infrastructure.sitemap_client import SitemapClient

__all__ = [
    "AlgoliaSearchClient",
    "ConsoleRecordSink",
    "HttpDocumentFetcher",
    "inspect_exports",
    "JsonRecordExportSink",
    "JsonReportSink",
    "ProductMappingClient",
    "retry_async",
    "RetryPolicy",
    "SitemapClient",
]
