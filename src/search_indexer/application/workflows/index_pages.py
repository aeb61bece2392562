import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

import aiohttp
from tqdm import tqdm

from src.config.logger_config import logger
from src.search_indexer.application.ports import DocumentFetcherPort
from src.search_indexer.application.task_scheduler import BoundedTaskScheduler
from src.search_indexer.domain.dates import utc_now
from src.search_indexer.domain.errors import FetchError, FetchErrorKind
from src.search_indexer.domain.models import (
    IndexingSummary,
    IndexMatch,
    PageContent,
    PageOutcome,
    SearchRecord,
    SitemapEntry,
)
from src.search_indexer.domain.routing import PathRouter
from src.search_indexer.domain.rules import is_excluded_path, rebase_url, url_path
from src.search_indexer.domain.segmenter import ContentSegmenter
from src.search_indexer.domain.synthesizer import RecordSynthesizer


@dataclass(frozen=True)
class IndexPagesConfig:
    concurrency: int = 5
    base_url: str | None = None
    show_progress: bool = True


@dataclass
class IndexingRun:
    summary: IndexingSummary
    records_by_index: dict[str, list[SearchRecord]] = field(default_factory=dict)
    products_by_index: dict[str, str] = field(default_factory=dict)


class IndexPagesWorkflow:
    def __init__(
        self,
        router: PathRouter,
        fetcher: DocumentFetcherPort,
        segmenter: ContentSegmenter | None = None,
        synthesizer: RecordSynthesizer | None = None,
        config: IndexPagesConfig | None = None,
    ) -> None:
        self.router = router
        self.fetcher = fetcher
        self.segmenter = segmenter or ContentSegmenter()
        self.synthesizer = synthesizer or RecordSynthesizer()
        self.config = config or IndexPagesConfig()
        self.scheduler = BoundedTaskScheduler(self.config.concurrency)
        self._records_by_index: dict[str, list[SearchRecord]] = {}
        self._products_by_index: dict[str, str] = {}

    async def run(
        self,
        session: aiohttp.ClientSession,
        entries: Sequence[SitemapEntry],
        now: datetime | None = None,
    ) -> IndexingRun:
        run_started = now or utc_now()
        self._records_by_index = {}
        self._products_by_index = {}

        queued: list[tuple[str, SitemapEntry]] = []
        seen: set[str] = set()
        excluded_total = 0
        for entry in entries:
            url = rebase_url(entry.location, self.config.base_url) if self.config.base_url else entry.location
            if url in seen:
                continue
            seen.add(url)
            if is_excluded_path(url_path(url)):
                excluded_total += 1
                continue
            queued.append((url, entry))

        logger.info(
            "Processing {} of {} sitemap URLs ({} excluded)",
            len(queued),
            len(entries),
            excluded_total,
        )

        outcomes: Counter[PageOutcome] = Counter()
        with tqdm(
            total=len(queued),
            desc="Indexing pages",
            unit="page",
            leave=True,
            disable=not self.config.show_progress,
        ) as progress:

            def task_for(url: str, entry: SitemapEntry):
                async def task() -> PageOutcome:
                    outcome = await self._process_page(session, url, entry, run_started)
                    outcomes[outcome] += 1
                    progress.update(1)
                    return outcome

                return task

            await self.scheduler.add_batch(task_for(url, entry) for url, entry in queued)

        by_index = {name: len(records) for name, records in sorted(self._records_by_index.items())}
        summary = IndexingSummary(
            discovered_total=len(entries),
            queued_total=len(queued),
            processed_total=sum(outcomes.values()),
            success_total=outcomes[PageOutcome.SUCCESS],
            empty_total=outcomes[PageOutcome.EMPTY],
            not_found_total=outcomes[PageOutcome.NOT_FOUND],
            no_mapping_total=outcomes[PageOutcome.NO_MAPPING],
            excluded_total=excluded_total + outcomes[PageOutcome.EXCLUDED],
            failed_total=outcomes[PageOutcome.FAILED],
            records_total=sum(by_index.values()),
            by_index=by_index,
        )
        logger.info(
            "Crawl finished: {} processed, {} records, {} not found, {} unmapped, {} failed",
            summary.processed_total,
            summary.records_total,
            summary.not_found_total,
            summary.no_mapping_total,
            summary.failed_total,
        )
        return IndexingRun(
            summary=summary,
            records_by_index=self._records_by_index,
            products_by_index=self._products_by_index,
        )

    async def _process_page(
        self,
        session: aiohttp.ClientSession,
        url: str,
        entry: SitemapEntry,
        now: datetime,
    ) -> PageOutcome:
        try:
            if self.router.is_excluded(url_path(url)):
                return PageOutcome.EXCLUDED
            match = self.router.resolve_url(url)
            if match is None:
                logger.info("No index mapping for {}", url)
                return PageOutcome.NO_MAPPING

            html = await self.fetcher.fetch(session, url)
            # parsing runs off the event loop
            page, records = await asyncio.to_thread(self._build_records, url, html, match, entry, now)

            # append-only during the crawl; read after every task has settled
            self._records_by_index.setdefault(match.index_name, []).extend(records)
            self._products_by_index.setdefault(match.index_name, match.product_name)

            if not page.segments:
                return PageOutcome.EMPTY
            logger.debug("Indexed {} ({} records) -> {}", url, len(records), match.index_name)
            return PageOutcome.SUCCESS
        except FetchError as exc:
            if exc.kind is FetchErrorKind.NOT_FOUND:
                logger.info("Page not found (404): {}", url)
                return PageOutcome.NOT_FOUND
            logger.error("Failed fetching {}: {}", url, exc.message)
            return PageOutcome.FAILED
        except Exception as exc:
            logger.exception(
                "Failed processing {} with error type {}: {}",
                url,
                type(exc).__name__,
                exc,
            )
            return PageOutcome.FAILED

    def _build_records(
        self,
        url: str,
        html: str,
        match: IndexMatch,
        entry: SitemapEntry,
        now: datetime,
    ) -> tuple[PageContent, list[SearchRecord]]:
        page = self.segmenter.segment(url, html)
        return page, self.synthesizer.synthesize(page, match, entry.last_modified_hint, now=now)
