import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from src.config.logger_config import logger
from src.search_indexer.domain.dates import iso_timestamp, resolve_last_modified, utc_now
from src.search_indexer.domain.models import (
    ContentSegment,
    HeadingRef,
    Hierarchy,
    IndexMatch,
    PageContent,
    SearchRecord,
)
from src.search_indexer.domain.rules import determine_type, heading_to_fragment_id, object_id, url_path
from src.search_indexer.domain.text_cleaning import derive_description

MIN_SEGMENT_RECORD_LENGTH = 80
MIN_VALID_CONTENT_LENGTH = 50
HIERARCHY_DEPTH = 3
DEFAULT_LVL0 = "Documentation"

_RESIDUAL_MARKUP = re.compile(r"</?[a-zA-Z][^>]*>")


class _IdentifierPool:
    def __init__(self, url: str) -> None:
        self.url = url
        self.used: set[str] = set()

    def claim(self, fragment: str | None) -> str:
        suffix = 0
        candidate = object_id(self.url, fragment, suffix)
        while candidate in self.used:
            suffix += 1
            candidate = object_id(self.url, fragment, suffix)
        self.used.add(candidate)
        return candidate


def build_hierarchy(outline: tuple[HeadingRef, ...], position: int, fallback: str) -> Hierarchy:
    """Breadcrumb for the heading at ``position``: its strictly-shallower ancestors plus itself.

    The nearest three levels are kept, outermost first. Levels with no ancestor are omitted.
    """
    if position < 0 or position >= len(outline):
        return Hierarchy(lvl0=fallback or DEFAULT_LVL0)

    chain = [outline[position]]
    ceiling = outline[position].level
    for heading in reversed(outline[:position]):
        if heading.level < ceiling:
            chain.append(heading)
            ceiling = heading.level
            if ceiling <= 1:
                break

    levels = [heading.text for heading in reversed(chain[:HIERARCHY_DEPTH])]
    return Hierarchy(
        lvl0=levels[0],
        lvl1=levels[1] if len(levels) > 1 else None,
        lvl2=levels[2] if len(levels) > 2 else None,
    )


@dataclass(frozen=True)
class RecordSynthesizer:
    min_segment_length: int = MIN_SEGMENT_RECORD_LENGTH

    def synthesize(
        self,
        page: PageContent,
        match: IndexMatch,
        source_lastmod: str | None = None,
        now: datetime | None = None,
    ) -> list[SearchRecord]:
        current = now or utc_now()
        ids = _IdentifierPool(page.url)
        path = url_path(page.url)
        title = page.title or page.metadata.title or page.metadata.og_title or match.index_name
        lvl0 = page.title or DEFAULT_LVL0
        record_type = page.metadata.type or determine_type(path)
        last_modified = resolve_last_modified(page.metadata.last_modified, source_lastmod, now=current)
        indexed_at = iso_timestamp(current)
        metadata = self._record_metadata(page, match)
        description = page.description or derive_description(page.main_text)

        def make(**fields) -> SearchRecord:
            return SearchRecord(
                url=page.url,
                path=path,
                product=match.product_name,
                index_name=match.index_name,
                type=record_type,
                topics=page.metadata.topics,
                last_modified=last_modified,
                indexed_at=indexed_at,
                metadata=dict(metadata),
                source_lastmod=source_lastmod,
                **fields,
            )

        records = [
            make(
                object_id=ids.claim(None),
                title=title,
                content=description,
                hierarchy=Hierarchy(lvl0=lvl0),
                headings=page.headings,
                description=description or None,
                structure=page.structure,
            )
        ]

        for segment in page.segments:
            if segment.is_fallback:
                records.append(self._fallback_record(page, segment, ids, lvl0, make))
                continue
            if len(segment.body_text) < self.min_segment_length:
                continue
            fragment = heading_to_fragment_id(segment.heading_text) or None
            records.append(
                make(
                    object_id=ids.claim(fragment),
                    title=segment.heading_text,
                    content=segment.body_text,
                    hierarchy=build_hierarchy(page.outline, segment.outline_index, lvl0),
                    fragment=fragment,
                )
            )

        logger.debug("Synthesized {} records for {} -> {}", len(records), page.url, match.index_name)
        return records

    @staticmethod
    def _fallback_record(page: PageContent, segment: ContentSegment, ids: _IdentifierPool, lvl0: str, make):
        fragment = heading_to_fragment_id(segment.heading_text) or "#content"
        return make(
            object_id=ids.claim(fragment),
            title=segment.heading_text or lvl0,
            content=segment.body_text,
            hierarchy=Hierarchy(lvl0=lvl0),
            fragment=fragment,
        )

    @staticmethod
    def _record_metadata(page: PageContent, match: IndexMatch) -> dict[str, str]:
        meta = page.metadata
        fields = {
            "keywords": ", ".join(meta.keywords),
            "products": match.product_name,
            "og_title": meta.og_title or "",
            "og_description": meta.og_description or "",
            "og_image": meta.og_image or "",
        }
        return {key: value for key, value in fields.items() if value}


def validate_records(records: Iterable[SearchRecord]) -> list[str]:
    issues: list[str] = []
    for record in records:
        label = record.url + (record.fragment or "")
        if not record.url:
            issues.append(f"{record.object_id}: missing url")
        if not record.title.strip():
            issues.append(f"{label}: empty title")
        if not record.content.strip():
            issues.append(f"{label}: empty content")
        elif len(record.content) < MIN_VALID_CONTENT_LENGTH:
            issues.append(f"{label}: very short content ({len(record.content)} chars)")
        if _RESIDUAL_MARKUP.search(record.content):
            issues.append(f"{label}: residual markup in content")
        if record.fragment is None and not record.description:
            issues.append(f"{label}: missing description")
    return issues
