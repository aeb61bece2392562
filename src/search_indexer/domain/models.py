from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class SitemapEntry:
    location: str
    last_modified_hint: str | None = None


@dataclass(frozen=True)
class RoutingRule:
    product_name: str
    index_name: str
    path_prefix: str


@dataclass(frozen=True)
class IndexMatch:
    index_name: str
    product_name: str
    matched_prefix: str
    original_path: str
    fragment: str | None = None


@dataclass(frozen=True)
class HeadingRef:
    text: str
    level: int


@dataclass(frozen=True)
class ContentSegment:
    heading_text: str
    heading_level: int
    body_text: str
    outline_index: int = -1
    is_fallback: bool = False


@dataclass(frozen=True)
class PageMetadata:
    title: str | None = None
    description: str | None = None
    og_title: str | None = None
    og_description: str | None = None
    og_image: str | None = None
    last_modified: str | None = None
    keywords: tuple[str, ...] = ()
    topics: tuple[str, ...] = ()
    type: str | None = None
    extras: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PageStructure:
    has_hero_section: bool = False
    has_discover_blocks: bool = False
    content_types: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "hasHeroSection": self.has_hero_section,
            "hasDiscoverBlocks": self.has_discover_blocks,
            "contentTypes": list(self.content_types),
        }


@dataclass(frozen=True)
class PageContent:
    url: str
    title: str
    description: str
    main_text: str
    headings: tuple[str, ...]
    segments: tuple[ContentSegment, ...]
    metadata: PageMetadata
    structure: PageStructure
    outline: tuple[HeadingRef, ...] = ()


@dataclass(frozen=True)
class Hierarchy:
    lvl0: str
    lvl1: str | None = None
    lvl2: str | None = None

    def to_dict(self) -> dict[str, str]:
        payload = {"lvl0": self.lvl0}
        if self.lvl1 is not None:
            payload["lvl1"] = self.lvl1
        if self.lvl2 is not None:
            payload["lvl2"] = self.lvl2
        return payload


@dataclass(frozen=True)
class SearchRecord:
    object_id: str
    url: str
    path: str
    title: str
    content: str
    product: str
    index_name: str
    hierarchy: Hierarchy
    type: str
    topics: tuple[str, ...]
    last_modified: str
    indexed_at: str
    metadata: dict[str, str]
    fragment: str | None = None
    source_lastmod: str | None = None
    headings: tuple[str, ...] | None = None
    description: str | None = None
    structure: PageStructure | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "objectID": self.object_id,
            "url": self.url,
            "path": self.path,
            "title": self.title,
            "content": self.content,
            "product": self.product,
            "indexName": self.index_name,
            "hierarchy": self.hierarchy.to_dict(),
            "type": self.type,
            "topics": list(self.topics),
            "lastModified": self.last_modified,
            "indexedAt": self.indexed_at,
            "metadata": dict(self.metadata),
        }
        if self.fragment is not None:
            payload["fragment"] = self.fragment
        if self.source_lastmod is not None:
            payload["sourceLastmod"] = self.source_lastmod
        if self.headings is not None:
            payload["headings"] = list(self.headings)
        if self.description is not None:
            payload["description"] = self.description
        if self.structure is not None:
            payload["structure"] = self.structure.to_dict()
        return payload


@dataclass(frozen=True)
class ReconciliationPlan:
    to_upsert: tuple[SearchRecord, ...]
    to_delete: tuple[str, ...]
    added_total: int = 0
    updated_total: int = 0
    unchanged_total: int = 0


class PageOutcome(str, Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    NOT_FOUND = "not_found"
    NO_MAPPING = "no_mapping"
    EXCLUDED = "excluded"
    FAILED = "failed"


class SyncState(str, Enum):
    START = "start"
    STREAMING = "streaming_existing_records"
    DIFFING = "diffing"
    APPLYING = "applying"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class IndexSyncResult:
    index_name: str
    record_count: int
    status: str
    state: SyncState
    upserted: int = 0
    deleted: int = 0
    unchanged: int = 0
    failed_state: SyncState | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict[str, Any]:
        return {
            "index_name": self.index_name,
            "record_count": self.record_count,
            "status": self.status,
            "state": self.state.value,
            "upserted": self.upserted,
            "deleted": self.deleted,
            "unchanged": self.unchanged,
            "failed_state": self.failed_state.value if self.failed_state else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class IndexingSummary:
    discovered_total: int
    queued_total: int
    processed_total: int
    success_total: int
    empty_total: int
    not_found_total: int
    no_mapping_total: int
    excluded_total: int
    failed_total: int
    records_total: int
    by_index: dict[str, int]

    def to_dict(self) -> dict[str, Any]:
        return {
            "discovered_total": self.discovered_total,
            "queued_total": self.queued_total,
            "processed_total": self.processed_total,
            "success_total": self.success_total,
            "empty_total": self.empty_total,
            "not_found_total": self.not_found_total,
            "no_mapping_total": self.no_mapping_total,
            "excluded_total": self.excluded_total,
            "failed_total": self.failed_total,
            "records_total": self.records_total,
            "by_index": dict(self.by_index),
        }


@dataclass(frozen=True)
class IndexVerification:
    index_name: str
    source: str
    exists: bool
    record_count: int = 0
    sample_fields: tuple[str, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.exists and self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index_name": self.index_name,
            "source": self.source,
            "exists": self.exists,
            "record_count": self.record_count,
            "sample_fields": list(self.sample_fields),
            "error": self.error,
        }
