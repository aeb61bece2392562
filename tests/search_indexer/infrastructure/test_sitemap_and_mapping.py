import json
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from loguru import logger

from src.search_indexer.domain.errors import StartupConfigError
from src.search_indexer.domain.models import SitemapEntry
from src.search_indexer.infrastructure.mapping_client import ProductMappingClient
from src.search_indexer.infrastructure.sitemap_client import SitemapClient, parse_sitemap

logger.disable("src.search_indexer")

URLSET = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://docs.example.com/photoshop/guide</loc><lastmod>2024-01-02</lastmod></url>
  <url><loc>https://docs.example.com/express/intro</loc></url>
  <url><loc>https://docs.example.com/photoshop/guide</loc></url>
  <url><lastmod>2024-01-02</lastmod></url>
</urlset>
"""

SITEMAP_INDEX = """<?xml version="1.0" encoding="UTF-8"?>
<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <sitemap><loc>/sitemap-photoshop.xml</loc></sitemap>
</sitemapindex>
"""


class FakeResponse:
    def __init__(self, status=200, text_data="", json_data=None):
        self.status = status
        self._text_data = text_data
        self._json_data = json_data
        self.headers = {}
        self.request_info = SimpleNamespace(real_url="http://test.invalid")
        self.history = ()

    async def text(self):
        return self._text_data

    async def json(self, content_type=None):
        if isinstance(self._json_data, Exception):
            raise self._json_data
        return self._json_data

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    def __init__(self, responses):
        self._responses = list(responses)
        self.urls: list[str] = []

    def get(self, url, *args, **kwargs):
        if not self._responses:
            raise AssertionError("No more fake responses configured")
        self.urls.append(url)
        return self._responses.pop(0)


class ParseSitemapTests(unittest.TestCase):
    def test_parses_urlset(self):
        entries, nested = parse_sitemap(URLSET)
        self.assertEqual(nested, [])
        self.assertEqual(
            entries[:2],
            [
                SitemapEntry("https://docs.example.com/photoshop/guide", "2024-01-02"),
                SitemapEntry("https://docs.example.com/express/intro", None),
            ],
        )
        self.assertEqual(len(entries), 3)

    def test_parses_sitemap_index(self):
        entries, nested = parse_sitemap(SITEMAP_INDEX)
        self.assertEqual(entries, [])
        self.assertEqual(nested, ["/sitemap-photoshop.xml"])


class SitemapClientTests(unittest.IsolatedAsyncioTestCase):
    async def test_follows_sitemap_index_and_dedupes(self):
        session = FakeSession([FakeResponse(200, SITEMAP_INDEX), FakeResponse(200, URLSET)])
        client = SitemapClient("https://docs.example.com/sitemap.xml")

        entries = await client.fetch_entries(session)

        self.assertEqual(
            session.urls,
            ["https://docs.example.com/sitemap.xml", "https://docs.example.com/sitemap-photoshop.xml"],
        )
        self.assertEqual(
            [entry.location for entry in entries],
            ["https://docs.example.com/photoshop/guide", "https://docs.example.com/express/intro"],
        )

    async def test_unreachable_sitemap_is_a_startup_error(self):
        session = FakeSession([FakeResponse(500)] * 3)
        client = SitemapClient("https://docs.example.com/sitemap.xml")
        with patch("src.search_indexer.infrastructure.retry.asyncio.sleep", new=AsyncMock()):
            with self.assertRaises(StartupConfigError):
                await client.fetch_entries(session)
        self.assertEqual(len(session.urls), 3)


class ProductMappingClientTests(unittest.IsolatedAsyncioTestCase):
    async def test_fetch_rules(self):
        payload = [
            {
                "productName": "Photoshop",
                "productIndices": [{"indexName": "photoshop", "indexPathPrefix": "/photoshop"}],
            }
        ]
        session = FakeSession([FakeResponse(200, json_data=payload)])
        rules = await ProductMappingClient("https://mapping.invalid/map.json").fetch_rules(session)
        self.assertEqual([(r.product_name, r.index_name, r.path_prefix) for r in rules], [("Photoshop", "photoshop", "/photoshop")])

    async def test_missing_mapping_is_a_startup_error(self):
        session = FakeSession([FakeResponse(404)])
        with self.assertRaises(StartupConfigError):
            await ProductMappingClient("https://mapping.invalid/map.json").fetch_rules(session)

    async def test_invalid_json_is_a_startup_error(self):
        session = FakeSession([FakeResponse(200, json_data=json.JSONDecodeError("bad", "doc", 0))])
        with self.assertRaises(StartupConfigError):
            await ProductMappingClient("https://mapping.invalid/map.json").fetch_rules(session)

    async def test_malformed_mapping_is_a_startup_error(self):
        session = FakeSession([FakeResponse(200, json_data={"not": "a list"})])
        with self.assertRaises(StartupConfigError):
            await ProductMappingClient("https://mapping.invalid/map.json").fetch_rules(session)


if __name__ == "__main__":
    unittest.main()
