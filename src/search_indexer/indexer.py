from __future__ import annotations
import asyncio
from dataclasses import dataclass, field
from pathlib import Path

import aiohttp

from src.config.logger_config import logger
from src.search_indexer.application.ports import RecordSinkPort, SearchIndexPort
from src.search_indexer.application.workflows.index_pages import IndexingRun, IndexPagesConfig, IndexPagesWorkflow
from src.search_indexer.application.workflows.reconcile_indices import ReconcileConfig, ReconciliationEngine
from src.search_indexer.application.workflows.verify_indices import IndexVerifier
from src.search_indexer.domain.dates import iso_timestamp, utc_now
from src.search_indexer.domain.errors import StartupConfigError
from src.search_indexer.domain.index_settings import default_index_settings
from src.search_indexer.domain.models import IndexingSummary, IndexSyncResult, IndexVerification, SearchRecord
from src.search_indexer.domain.routing import PathRouter, RoutingAnalysis
from src.search_indexer.domain.synthesizer import validate_records
from src.search_indexer.infrastructure.algolia_client import AlgoliaSearchClient
from src.search_indexer.infrastructure.http_fetcher import HttpDocumentFetcher
from src.search_indexer.infrastructure.mapping_client import DEFAULT_MAPPING_URL, ProductMappingClient
from src.search_indexer.infrastructure.record_sink import ConsoleRecordSink, JsonRecordExportSink, inspect_exports
from src.search_indexer.infrastructure.report_sink import JsonReportSink
from src.search_indexer.infrastructure.sitemap_client import SitemapClient

DEFAULT_BASE_URL = "https://main--adp-devsite--adobedocs.aem.page"
DEFAULT_SITEMAP_URL = f"{DEFAULT_BASE_URL}/sitemap.xml"
DEFAULT_EXPORT_DIR = Path("indexed-content")
MODES = ("console", "index", "export", "verify")
VALIDATION_LOG_LIMIT = 10

EXIT_OK = 0
EXIT_STARTUP_FAILURE = 1
EXIT_PARTIAL_FAILURE = 2


@dataclass(frozen=True)
class IndexerOptions:
    mode: str = "console"
    base_url: str = DEFAULT_BASE_URL
    sitemap_url: str = DEFAULT_SITEMAP_URL
    mapping_url: str = DEFAULT_MAPPING_URL
    algolia_app_id: str | None = None
    algolia_api_key: str | None = None
    concurrency: int = 5
    batch_size: int = 1000
    partial: bool = True
    force_update: bool = False
    indices: tuple[str, ...] = ()
    output_dir: Path | None = None
    show_progress: bool = True
    verbose: bool = False

    @property
    def has_index_credentials(self) -> bool:
        return bool(self.algolia_app_id and self.algolia_api_key)


@dataclass
class IndexerReport:
    mode: str
    summary: IndexingSummary | None
    sync_results: list[IndexSyncResult] = field(default_factory=list)
    verifications: list[IndexVerification] = field(default_factory=list)
    exported: dict[str, str] = field(default_factory=dict)
    validation_issues: int = 0

    @property
    def failed_indices(self) -> list[str]:
        failed = [result.index_name for result in self.sync_results if not result.ok]
        failed.extend(result.index_name for result in self.verifications if not result.ok)
        return failed

    @property
    def exit_code(self) -> int:
        return EXIT_PARTIAL_FAILURE if self.failed_indices else EXIT_OK

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "generated_at": iso_timestamp(),
            "summary": self.summary.to_dict() if self.summary is not None else None,
            "sync_results": [result.to_dict() for result in self.sync_results],
            "verifications": [result.to_dict() for result in self.verifications],
            "exported": dict(self.exported),
            "validation_issues": self.validation_issues,
            "failed_indices": self.failed_indices,
        }


def _validate_options(options: IndexerOptions, search_index: SearchIndexPort | None) -> None:
    if options.mode not in MODES:
        raise StartupConfigError(f"Unknown mode {options.mode!r}; expected one of {', '.join(MODES)}")
    if options.concurrency < 1:
        raise StartupConfigError("Concurrency must be at least 1")
    if options.mode == "index" and search_index is None and not options.has_index_credentials:
        raise StartupConfigError("ALGOLIA_APP_ID and ALGOLIA_API_KEY are required in index mode")


def _restrict_router(router: PathRouter, indices: tuple[str, ...]) -> None:
    if not indices:
        return
    known = {name.lower() for name in router.index_names()}
    unknown = sorted({name.strip().lower() for name in indices if name.strip()} - known)
    if unknown:
        raise StartupConfigError(f"Unknown indices requested: {', '.join(unknown)}")
    router.set_active_indices(indices)


def _active_index_names(router: PathRouter) -> list[str]:
    active = router.active_indices
    return [name for name in router.index_names() if active is None or name.lower() in active]


def _sync_targets(
    router: PathRouter,
    analysis: RoutingAnalysis,
    run: IndexingRun,
) -> dict[str, list[SearchRecord]]:
    """Indices to reconcile: those with fresh records, plus routed indices the sitemap no longer covers.

    An index with pages in the sitemap but no records (every fetch failed) is left untouched,
    and nothing is retired when no page at all could be indexed.
    """
    targets = dict(run.records_by_index)
    if run.summary.success_total + run.summary.empty_total == 0:
        if run.summary.queued_total:
            logger.warning("No page could be indexed; skipping cleanup of indices without sitemap pages")
        return targets
    for index_name in _active_index_names(router):
        if index_name not in targets and not analysis.by_index.get(index_name):
            logger.info("Index {} has no pages left in the sitemap; removing its records", index_name)
            targets[index_name] = []
    return targets


async def _verify(
    options: IndexerOptions,
    search_index: SearchIndexPort | None,
    mapping_client: ProductMappingClient | None,
) -> IndexerReport:
    report = IndexerReport(mode=options.mode, summary=None)
    if search_index is None and not options.has_index_credentials:
        logger.warning("Missing Algolia credentials; checking exported indices instead")
        report.verifications = inspect_exports(options.output_dir or DEFAULT_EXPORT_DIR)
        return report

    mapping_client = mapping_client or ProductMappingClient(options.mapping_url)
    connector = aiohttp.TCPConnector(limit=0, limit_per_host=10, ttl_dns_cache=300)
    async with aiohttp.ClientSession(connector=connector) as session:
        rules = await mapping_client.fetch_rules(session)
    router = PathRouter(rules)
    _restrict_router(router, options.indices)

    owned_client = None
    if search_index is None:
        owned_client = AlgoliaSearchClient(options.algolia_app_id, options.algolia_api_key)
        search_index = owned_client
    try:
        report.verifications = await IndexVerifier(search_index).verify(_active_index_names(router))
    finally:
        if owned_client is not None:
            await owned_client.close()
    return report


async def _crawl(
    options: IndexerOptions,
    mapping_client: ProductMappingClient,
    sitemap_client: SitemapClient,
    fetcher: HttpDocumentFetcher,
) -> tuple[PathRouter, RoutingAnalysis, IndexingRun]:
    run_started = utc_now()
    connector = aiohttp.TCPConnector(limit=0, limit_per_host=10, ttl_dns_cache=300)
    async with aiohttp.ClientSession(connector=connector) as session:
        rules = await mapping_client.fetch_rules(session)
        router = PathRouter(rules)
        _restrict_router(router, options.indices)

        entries = await sitemap_client.fetch_entries(session)
        analysis = router.analyze(entries)

        workflow = IndexPagesWorkflow(
            router=router,
            fetcher=fetcher,
            config=IndexPagesConfig(
                concurrency=options.concurrency,
                base_url=options.base_url,
                show_progress=options.show_progress,
            ),
        )
        run = await workflow.run(session, entries, now=run_started)
    return router, analysis, run


async def run_indexer_async(
    options: IndexerOptions | None = None,
    *,
    search_index: SearchIndexPort | None = None,
    mapping_client: ProductMappingClient | None = None,
    sitemap_client: SitemapClient | None = None,
    fetcher: HttpDocumentFetcher | None = None,
    record_sink: RecordSinkPort | None = None,
) -> IndexerReport:
    options = options or IndexerOptions()
    _validate_options(options, search_index)

    if options.mode == "verify":
        report = await _verify(options, search_index, mapping_client)
        _write_report(options, report)
        logger.info(
            "Verification complete: {} indices checked, {} missing or unreadable",
            len(report.verifications),
            len(report.failed_indices),
        )
        return report

    router, analysis, run = await _crawl(
        options,
        mapping_client or ProductMappingClient(options.mapping_url),
        sitemap_client or SitemapClient(options.sitemap_url),
        fetcher or HttpDocumentFetcher(),
    )

    report = IndexerReport(mode=options.mode, summary=run.summary)
    for index_name, records in sorted(run.records_by_index.items()):
        issues = validate_records(records)
        report.validation_issues += len(issues)
        for issue in issues[:VALIDATION_LOG_LIMIT]:
            logger.warning("Record issue in {}: {}", index_name, issue)
        if len(issues) > VALIDATION_LOG_LIMIT:
            logger.warning("... {} more record issues in {}", len(issues) - VALIDATION_LOG_LIMIT, index_name)

    if options.mode == "index":
        owned_client = None
        if search_index is None:
            owned_client = AlgoliaSearchClient(
                options.algolia_app_id,
                options.algolia_api_key,
                batch_size=options.batch_size,
            )
            search_index = owned_client
        engine = ReconciliationEngine(
            search_index,
            ReconcileConfig(
                partial=options.partial,
                force_update=options.force_update,
                batch_size=options.batch_size,
            ),
        )
        try:
            report.sync_results = await engine.sync_all(_sync_targets(router, analysis, run), now=utc_now())
        finally:
            if owned_client is not None:
                await owned_client.close()
    else:
        sink = record_sink or (
            JsonRecordExportSink(options.output_dir or DEFAULT_EXPORT_DIR)
            if options.mode == "export"
            else ConsoleRecordSink()
        )
        settings = default_index_settings()
        for index_name, records in sorted(run.records_by_index.items()):
            written = sink.write_index(index_name, run.products_by_index.get(index_name, ""), settings, records)
            if isinstance(written, Path):
                report.exported[index_name] = str(written)

    _write_report(options, report)
    logger.info(
        "Run complete ({} mode): {} pages processed, {} records, {} indices failed",
        options.mode,
        run.summary.processed_total,
        run.summary.records_total,
        len(report.failed_indices),
    )
    return report


def _write_report(options: IndexerOptions, report: IndexerReport) -> None:
    if options.output_dir is not None:
        JsonReportSink(Path(options.output_dir) / "run-report.json").write_report(report.to_dict())


def run_indexer(
    options: IndexerOptions | None = None,
    *,
    search_index: SearchIndexPort | None = None,
) -> IndexerReport:
    return asyncio.run(run_indexer_async(options, search_index=search_index))
