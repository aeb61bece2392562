"""Search indexer package."""

from src.search_indexer.indexer import IndexerOptions, IndexerReport, run_indexer, run_indexer_async

__all__ = [
    "IndexerOptions",
    "IndexerReport",
    "run_indexer",
    "run_indexer_async",
]
