from typing import Any, AsyncIterator, Mapping, Protocol, Sequence, runtime_checkable

import aiohttp

from src.search_indexer.domain.models import SearchRecord


@runtime_checkable
class DocumentFetcherPort(Protocol):
    async def fetch(self, session: aiohttp.ClientSession, url: str) -> str: ...
    """Return the document body, or raise FetchError tagged with its kind."""


@runtime_checkable
class SearchIndexPort(Protocol):
    async def exists(self, index_name: str) -> bool: ...

    async def configure(self, index_name: str, settings: Mapping[str, Any]) -> None: ...

    def browse_all(self, index_name: str) -> AsyncIterator[Sequence[Mapping[str, Any]]]: ...
    """Yield pages of existing records until the index is exhausted."""

    async def upsert_batch(self, index_name: str, records: Sequence[Mapping[str, Any]]) -> None: ...

    async def delete_batch(self, index_name: str, object_ids: Sequence[str]) -> None: ...

    async def clear(self, index_name: str) -> None: ...
    """Remove every record from the index, keeping its settings."""

    async def count_records(self, index_name: str) -> tuple[int, Mapping[str, Any] | None]: ...
    """Return the stored record count and one sample record, if any."""


@runtime_checkable
class RecordSinkPort(Protocol):
    def write_index(
        self,
        index_name: str,
        product_name: str,
        settings: Mapping[str, Any],
        records: Sequence[SearchRecord],
    ) -> Any: ...
    """Persist or display one index's records without touching the remote service."""


@runtime_checkable
class ReportSinkPort(Protocol):
    def write_report(self, report: Mapping[str, Any]) -> Any: ...
