import json
import unittest
from unittest.mock import patch

from loguru import logger

from src.search_indexer.__main__ import main
from src.search_indexer.domain.errors import FetchError, FetchErrorKind, StartupConfigError, SyncError
from src.search_indexer.domain.models import RoutingRule, SitemapEntry
from src.search_indexer.indexer import IndexerOptions, IndexerReport, run_indexer_async
from tests.utils.tempdir import managed_temp_dir

logger.disable("src.search_indexer")

BASE_URL = "https://docs.example.com"
PAGE_HTML = """
<html><head><title>{title}</title><meta name="description" content="{title} description for search results."></head>
<body><main>
  <h1>{title}</h1>
  <p>This section walks through the complete workflow, covering setup, configuration and the first deployment.</p>
</main></body></html>
"""


class FakeMappingClient:
    def __init__(self, rules):
        self.rules = tuple(rules)

    async def fetch_rules(self, session):
        return self.rules


class FakeSitemapClient:
    def __init__(self, entries):
        self.entries = list(entries)

    async def fetch_entries(self, session):
        return self.entries


class FakeFetcher:
    async def fetch(self, session, url):
        return PAGE_HTML.format(title=url.rsplit("/", 1)[-1].title())


class FakeSearchIndex:
    def __init__(self, failing=(), missing=()):
        self.failing = set(failing)
        self.missing = set(missing)
        self.upserts: dict[str, list[str]] = {}
        self.deletes: dict[str, list[str]] = {}

    async def exists(self, index_name):
        return index_name not in self.missing

    async def configure(self, index_name, settings):
        return None

    async def browse_all(self, index_name):
        if index_name in self.failing:
            raise SyncError(index_name, "browse", "HTTP 500", status=500)
        yield [{"objectID": "stale"}]

    async def upsert_batch(self, index_name, records):
        self.upserts.setdefault(index_name, []).extend(record["objectID"] for record in records)

    async def delete_batch(self, index_name, object_ids):
        self.deletes.setdefault(index_name, []).extend(object_ids)

    async def clear(self, index_name):
        return None

    async def count_records(self, index_name):
        if index_name in self.failing:
            raise SyncError(index_name, "search", "HTTP 500", status=500)
        return 3, {"objectID": "stale", "title": "Stale"}


class FailingFetcher:
    async def fetch(self, session, url):
        raise FetchError(url, FetchErrorKind.RETRYABLE, status=503)


RULES = [
    RoutingRule("Photoshop", "photoshop", "/photoshop"),
    RoutingRule("Express", "express", "/express"),
]
RULES_WITH_RETIRED = RULES + [RoutingRule("Lightroom", "lightroom", "/lightroom")]
ENTRIES = [
    SitemapEntry(f"{BASE_URL}/photoshop/guide", "2024-01-02"),
    SitemapEntry(f"{BASE_URL}/express/intro"),
    SitemapEntry(f"{BASE_URL}/drafts/secret"),
]


def collaborators(rules=RULES, fetcher=None):
    return {
        "mapping_client": FakeMappingClient(rules),
        "sitemap_client": FakeSitemapClient(ENTRIES),
        "fetcher": fetcher or FakeFetcher(),
    }


class RunIndexerTests(unittest.IsolatedAsyncioTestCase):
    async def test_index_mode_syncs_every_index_and_writes_report(self):
        index = FakeSearchIndex()
        with managed_temp_dir("indexer_run") as tmp_path:
            options = IndexerOptions(mode="index", base_url=BASE_URL, output_dir=tmp_path, show_progress=False)
            report = await run_indexer_async(options, search_index=index, **collaborators())

            self.assertEqual(report.exit_code, 0)
            self.assertEqual(report.summary.success_total, 2)
            self.assertEqual(report.summary.excluded_total, 1)
            self.assertEqual(sorted(index.upserts), ["express", "photoshop"])
            self.assertEqual([result.deleted for result in report.sync_results], [1, 1])

            saved = json.loads((tmp_path / "run-report.json").read_text(encoding="utf-8"))
            self.assertEqual(saved["mode"], "index")
            self.assertEqual(saved["failed_indices"], [])
            self.assertEqual(len(saved["sync_results"]), 2)

    async def test_partial_index_failure_sets_exit_code(self):
        index = FakeSearchIndex(failing={"express"})
        options = IndexerOptions(mode="index", base_url=BASE_URL, show_progress=False)
        report = await run_indexer_async(options, search_index=index, **collaborators())

        self.assertEqual(report.failed_indices, ["express"])
        self.assertEqual(report.exit_code, 2)
        self.assertIn("photoshop", index.upserts)

    async def test_export_mode_writes_one_file_per_index(self):
        with managed_temp_dir("indexer_export") as tmp_path:
            options = IndexerOptions(mode="export", base_url=BASE_URL, output_dir=tmp_path, show_progress=False)
            report = await run_indexer_async(options, **collaborators())

            self.assertEqual(sorted(report.exported), ["express", "photoshop"])
            payload = json.loads((tmp_path / "photoshop-records.json").read_text(encoding="utf-8"))
            self.assertEqual(payload["productName"], "Photoshop")
            self.assertIn("searchableAttributes", payload["settings"])
            self.assertEqual(len(payload["records"]), 2)

    async def test_index_allow_list_limits_routing(self):
        index = FakeSearchIndex()
        options = IndexerOptions(mode="index", base_url=BASE_URL, indices=("Photoshop",), show_progress=False)
        report = await run_indexer_async(options, search_index=index, **collaborators())

        self.assertEqual(sorted(index.upserts), ["photoshop"])
        self.assertEqual(report.summary.no_mapping_total, 1)

    async def test_index_without_sitemap_pages_is_emptied(self):
        index = FakeSearchIndex()
        options = IndexerOptions(mode="index", base_url=BASE_URL, show_progress=False)
        report = await run_indexer_async(options, search_index=index, **collaborators(rules=RULES_WITH_RETIRED))

        by_name = {result.index_name: result for result in report.sync_results}
        self.assertEqual(sorted(by_name), ["express", "lightroom", "photoshop"])
        self.assertEqual((by_name["lightroom"].record_count, by_name["lightroom"].deleted), (0, 1))
        self.assertEqual(index.deletes["lightroom"], ["stale"])
        self.assertNotIn("lightroom", index.upserts)

    async def test_inactive_index_is_not_emptied(self):
        index = FakeSearchIndex()
        options = IndexerOptions(mode="index", base_url=BASE_URL, indices=("photoshop",), show_progress=False)
        report = await run_indexer_async(options, search_index=index, **collaborators(rules=RULES_WITH_RETIRED))

        self.assertEqual([result.index_name for result in report.sync_results], ["photoshop"])
        self.assertEqual(sorted(index.deletes), ["photoshop"])

    async def test_failed_crawl_leaves_indices_untouched(self):
        index = FakeSearchIndex()
        options = IndexerOptions(mode="index", base_url=BASE_URL, show_progress=False)
        report = await run_indexer_async(
            options,
            search_index=index,
            **collaborators(rules=RULES_WITH_RETIRED, fetcher=FailingFetcher()),
        )

        self.assertEqual(report.summary.failed_total, 2)
        self.assertEqual(report.sync_results, [])
        self.assertEqual((index.upserts, index.deletes), ({}, {}))

    async def test_index_whose_pages_failed_is_not_emptied(self):
        class PhotoshopDownFetcher(FakeFetcher):
            async def fetch(self, session, url):
                if "/photoshop/" in url:
                    raise FetchError(url, FetchErrorKind.RETRYABLE, status=503)
                return await super().fetch(session, url)

        index = FakeSearchIndex()
        options = IndexerOptions(mode="index", base_url=BASE_URL, show_progress=False)
        report = await run_indexer_async(
            options,
            search_index=index,
            **collaborators(rules=RULES_WITH_RETIRED, fetcher=PhotoshopDownFetcher()),
        )

        self.assertEqual([result.index_name for result in report.sync_results], ["express", "lightroom"])
        self.assertNotIn("photoshop", index.deletes)

    async def test_verify_mode_reports_remote_indices(self):
        index = FakeSearchIndex(missing={"express"})
        with managed_temp_dir("indexer_verify") as tmp_path:
            options = IndexerOptions(mode="verify", output_dir=tmp_path, show_progress=False)
            report = await run_indexer_async(options, search_index=index, **collaborators())

            saved = json.loads((tmp_path / "run-report.json").read_text(encoding="utf-8"))

        self.assertIsNone(report.summary)
        by_name = {result.index_name: result for result in report.verifications}
        self.assertEqual(sorted(by_name), ["express", "photoshop"])
        self.assertEqual(by_name["photoshop"].record_count, 3)
        self.assertEqual(by_name["photoshop"].sample_fields, ("objectID", "title"))
        self.assertFalse(by_name["express"].exists)
        self.assertEqual(report.failed_indices, ["express"])
        self.assertEqual(report.exit_code, 2)
        self.assertIsNone(saved["summary"])
        self.assertEqual(len(saved["verifications"]), 2)
        self.assertEqual(index.upserts, {})

    async def test_verify_mode_marks_unreadable_index(self):
        index = FakeSearchIndex(failing={"photoshop"})
        options = IndexerOptions(mode="verify", indices=("photoshop",), show_progress=False)
        report = await run_indexer_async(options, search_index=index, **collaborators())

        self.assertEqual(len(report.verifications), 1)
        self.assertIn("SyncError", report.verifications[0].error)
        self.assertEqual(report.exit_code, 2)

    async def test_verify_mode_without_credentials_checks_exports(self):
        with managed_temp_dir("indexer_verify_export") as tmp_path:
            export = IndexerOptions(mode="export", base_url=BASE_URL, output_dir=tmp_path, show_progress=False)
            await run_indexer_async(export, **collaborators())

            report = await run_indexer_async(IndexerOptions(mode="verify", output_dir=tmp_path))

        self.assertEqual([result.index_name for result in report.verifications], ["express", "photoshop"])
        self.assertTrue(all(result.source == "export" for result in report.verifications))
        self.assertEqual(report.verifications[1].record_count, 2)
        self.assertIn("objectID", report.verifications[1].sample_fields)
        self.assertEqual(report.exit_code, 0)

    async def test_verify_mode_without_exports_fails_at_startup(self):
        with managed_temp_dir("indexer_verify_missing") as tmp_path:
            with self.assertRaises(StartupConfigError):
                await run_indexer_async(IndexerOptions(mode="verify", output_dir=tmp_path / "missing"))

    async def test_startup_errors(self):
        with self.assertRaises(StartupConfigError):
            await run_indexer_async(IndexerOptions(mode="index"), **collaborators())
        with self.assertRaises(StartupConfigError):
            await run_indexer_async(IndexerOptions(mode="bogus"), **collaborators())
        with self.assertRaises(StartupConfigError):
            await run_indexer_async(
                IndexerOptions(indices=("unknown",), show_progress=False),
                **collaborators(),
            )


class MainEntrypointTests(unittest.TestCase):
    def test_cli_builds_options(self):
        summary = IndexerReport(mode="export", summary=None)
        with patch("src.search_indexer.__main__.configure_logging"), patch(
            "src.search_indexer.__main__.load_settings"
        ) as settings_mock, patch("src.search_indexer.__main__.run_indexer", return_value=summary) as run_mock:
            settings_mock.return_value.base_url = BASE_URL
            settings_mock.return_value.sitemap_url = f"{BASE_URL}/sitemap.xml"
            settings_mock.return_value.mapping_url = "https://mapping.invalid/map.json"
            settings_mock.return_value.algolia_app_id = ""
            settings_mock.return_value.algolia_api_key = ""
            settings_mock.return_value.max_concurrent_requests = 5
            settings_mock.return_value.batch_size = 500
            settings_mock.return_value.log_level = "INFO"

            code = main(["--mode", "export", "--full", "--force", "--indices", "a, b", "--concurrency", "3"])

        self.assertEqual(code, 0)
        options = run_mock.call_args.args[0]
        self.assertEqual(options.mode, "export")
        self.assertFalse(options.partial)
        self.assertTrue(options.force_update)
        self.assertEqual(options.indices, ("a", "b"))
        self.assertEqual(options.concurrency, 3)
        self.assertEqual(options.batch_size, 500)
        self.assertIsNone(options.algolia_app_id)

    def test_cli_startup_failure_exit_code(self):
        with patch("src.search_indexer.__main__.configure_logging"), patch(
            "src.search_indexer.__main__.load_settings"
        ) as settings_mock, patch(
            "src.search_indexer.__main__.run_indexer", side_effect=StartupConfigError("no mapping")
        ):
            settings_mock.return_value.max_concurrent_requests = 5
            settings_mock.return_value.algolia_app_id = ""
            settings_mock.return_value.algolia_api_key = ""
            self.assertEqual(main([]), 1)

    def test_cli_invalid_settings_exit_code(self):
        with patch("src.search_indexer.__main__.configure_logging"), patch(
            "src.search_indexer.__main__.load_settings", side_effect=StartupConfigError("bad env")
        ):
            self.assertEqual(main([]), 1)


if __name__ == "__main__":
    unittest.main()
