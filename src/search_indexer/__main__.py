import argparse
from pathlib import Path

from src.config.logger_config import configure_logging, logger
from src.config.settings import load_settings
from src.search_indexer.domain.errors import StartupConfigError
from src.search_indexer.indexer import EXIT_STARTUP_FAILURE, MODES, IndexerOptions, run_indexer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.search_indexer",
        description="Crawl the documentation sitemap and sync search records per product index.",
    )
    parser.add_argument("--mode", choices=MODES, default="console", help="console (default), index, export or verify")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output")
    reindex = parser.add_mutually_exclusive_group()
    reindex.add_argument("--partial", dest="partial", action="store_true", default=True, help="Incremental sync (default)")
    reindex.add_argument("--full", dest="partial", action="store_false", help="Clear and rebuild each index")
    parser.add_argument("--force", action="store_true", help="Rewrite matching records regardless of timestamps")
    parser.add_argument("--indices", default="", help="Comma-separated allow-list of index names")
    parser.add_argument("--concurrency", type=int, default=None, help="Concurrent page fetches")
    parser.add_argument("--output-dir", type=Path, default=None, help="Directory for exports and the run report")
    parser.add_argument("--no-progress", action="store_true", help="Disable progress bars")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings()
    except StartupConfigError as exc:
        configure_logging(verbose=args.verbose)
        logger.error("Startup failed: {}", exc)
        return EXIT_STARTUP_FAILURE

    configure_logging(verbose=args.verbose, level=settings.log_level)
    options = IndexerOptions(
        mode=args.mode,
        base_url=settings.base_url,
        sitemap_url=settings.sitemap_url,
        mapping_url=settings.mapping_url,
        algolia_app_id=settings.algolia_app_id or None,
        algolia_api_key=settings.algolia_api_key or None,
        concurrency=args.concurrency or settings.max_concurrent_requests,
        batch_size=settings.batch_size,
        partial=args.partial,
        force_update=args.force,
        indices=tuple(name.strip() for name in args.indices.split(",") if name.strip()),
        output_dir=args.output_dir,
        show_progress=not args.no_progress,
        verbose=args.verbose,
    )

    try:
        report = run_indexer(options)
    except StartupConfigError as exc:
        logger.error("Startup failed: {}", exc)
        return EXIT_STARTUP_FAILURE

    for result in report.sync_results:
        if result.ok:
            logger.info(
                "{}: {} records, {} upserted, {} deleted, {} unchanged",
                result.index_name,
                result.record_count,
                result.upserted,
                result.deleted,
                result.unchanged,
            )
        else:
            logger.error("{}: failed during {} ({})", result.index_name, result.failed_state.value, result.error)
    return report.exit_code


# python -m src.search_indexer
if __name__ == "__main__":
    raise SystemExit(main())
