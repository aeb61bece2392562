import unittest

from src.search_indexer.domain.rules import (
    determine_type,
    heading_to_fragment_id,
    is_excluded_path,
    normalize_heading,
    normalize_path,
    normalize_url,
    object_id,
    rebase_url,
)


class NormalizeUrlTests(unittest.TestCase):
    def test_normalizes_case_port_slashes_and_fragment(self):
        self.assertEqual(
            normalize_url("HTTPS://Docs.Example.COM:443/photoshop//guide/?a=1#intro"),
            "https://docs.example.com/photoshop/guide?a=1",
        )

    def test_keeps_non_default_port(self):
        self.assertEqual(normalize_url("http://localhost:8080/a/"), "http://localhost:8080/a")

    def test_ipv6_host_keeps_brackets(self):
        self.assertEqual(normalize_url("http://[::1]:8080/x/"), "http://[::1]:8080/x")
        self.assertEqual(normalize_url("https://[2001:DB8::1]:443/docs"), "https://[2001:db8::1]/docs")

    def test_is_idempotent(self):
        urls = [
            "https://docs.example.com",
            "https://docs.example.com/",
            "HTTPS://Docs.Example.COM:443/photoshop//guide/?a=1#intro",
            "http://localhost:8080//x///y/",
            "https://docs.example.com/a b/c",
            "http://[::1]:8080/x/",
            "HTTPS://[2001:DB8::1]:443/docs/",
        ]
        for url in urls:
            once = normalize_url(url)
            self.assertEqual(normalize_url(once), once, url)


class ObjectIdTests(unittest.TestCase):
    def test_same_normalized_inputs_yield_same_id(self):
        self.assertEqual(
            object_id("https://docs.example.com/photoshop/guide/", "#Intro"),
            object_id("https://DOCS.example.com/photoshop/guide", "intro"),
        )

    def test_fragment_changes_id(self):
        url = "https://docs.example.com/photoshop/guide"
        self.assertNotEqual(object_id(url, "#intro"), object_id(url, "#setup"))
        self.assertNotEqual(object_id(url, None), object_id(url, "#intro"))

    def test_empty_fragment_equals_none(self):
        url = "https://docs.example.com/photoshop/guide"
        self.assertEqual(object_id(url, ""), object_id(url, None))

    def test_suffix_is_appended(self):
        url = "https://docs.example.com/photoshop/guide"
        self.assertEqual(object_id(url, "#a", 2), object_id(url, "#a") + "_2")


class FragmentIdTests(unittest.TestCase):
    def test_heading_to_fragment_id(self):
        self.assertEqual(heading_to_fragment_id("API Reference (v2.0)"), "#api-reference-v20")
        self.assertEqual(heading_to_fragment_id("Set  up -- the   SDK"), "#set-up-the-sdk")

    def test_empty_heading(self):
        self.assertEqual(heading_to_fragment_id("!!!"), "")


class PathRuleTests(unittest.TestCase):
    def test_normalize_path(self):
        self.assertEqual(normalize_path("/photoshop/guide/#intro"), "/photoshop/guide")
        self.assertEqual(normalize_path("/"), "/")
        self.assertEqual(normalize_path(""), "/")

    def test_exclusions(self):
        self.assertTrue(is_excluded_path("/photoshop/nav"))
        self.assertTrue(is_excluded_path("/nav/"))
        self.assertTrue(is_excluded_path("/photoshop/drafts/wip"))
        self.assertTrue(is_excluded_path("/tools/sidekick"))
        self.assertTrue(is_excluded_path("/github-actions-test/page"))
        self.assertFalse(is_excluded_path("/photoshop/tooling"))
        self.assertFalse(is_excluded_path("/photoshop/navigation-guide"))

    def test_rebase_url_keeps_path_and_query(self):
        self.assertEqual(
            rebase_url("https://other.host/photoshop/guide?x=1", "https://docs.example.com/"),
            "https://docs.example.com/photoshop/guide?x=1",
        )

    def test_determine_type(self):
        self.assertEqual(determine_type("/photoshop/api/guide"), "api")
        self.assertEqual(determine_type("/cloud-api/guide"), "api")
        self.assertEqual(determine_type("/developer-champion/x"), "community")
        self.assertEqual(determine_type("/photoshop/guide"), "documentation")

    def test_normalize_heading_drops_enumeration(self):
        self.assertEqual(normalize_heading("1.2 Getting Started"), "Getting Started")
        self.assertEqual(normalize_heading("3) Install"), "Install")
        self.assertEqual(normalize_heading("  • Overview  "), "Overview")
        self.assertEqual(normalize_heading("2024 Roadmap"), "2024 Roadmap")


if __name__ == "__main__":
    unittest.main()
