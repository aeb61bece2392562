"""Domain models and deterministic rules for search indexing."""

from src.search_indexer.domain.errors import FetchError, FetchErrorKind, IndexerError, StartupConfigError, SyncError
from src.search_indexer.domain.models import (
    ContentSegment,
    Hierarchy,
    IndexingSummary,
    IndexMatch,
    IndexSyncResult,
    IndexVerification,
    PageContent,
    PageOutcome,
    ReconciliationPlan,
    RoutingRule,
    SearchRecord,
    SitemapEntry,
    SyncState,
)
from src.search_indexer.domain.rules import heading_to_fragment_id, normalize_url, object_id

__all__ = [
    "ContentSegment",
    "FetchError",
    "FetchErrorKind",
    "heading_to_fragment_id",
    "Hierarchy",
    "IndexerError",
    "IndexingSummary",
    "IndexMatch",
    "IndexSyncResult",
    "IndexVerification",
    "normalize_url",
    "object_id",
    "PageContent",
    "PageOutcome",
    "ReconciliationPlan",
    "RoutingRule",
    "SearchRecord",
    "SitemapEntry",
    "StartupConfigError",
    "SyncError",
    "SyncState",
]
