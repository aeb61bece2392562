# Environment configuration for the indexer

import os
from dataclasses import dataclass
from urllib.parse import urljoin

from dotenv import load_dotenv

from src.search_indexer.domain.errors import StartupConfigError

DEFAULT_BASE_URL = "https://main--adp-devsite--adobedocs.aem.page"
DEFAULT_SITEMAP_PATH = "/sitemap.xml"
DEFAULT_MAPPING_URL = (
    "https://raw.githubusercontent.com/AdobeDocs/search-indices/refs/heads/main/product-index-map.json"
)


@dataclass(frozen=True)
class IndexerSettings:
    base_url: str = DEFAULT_BASE_URL
    sitemap_url: str = urljoin(DEFAULT_BASE_URL, DEFAULT_SITEMAP_PATH)
    mapping_url: str = DEFAULT_MAPPING_URL
    algolia_app_id: str = ""
    algolia_api_key: str = ""
    max_concurrent_requests: int = 5
    batch_size: int = 1000
    log_level: str = "INFO"

    @property
    def has_index_credentials(self) -> bool:
        return bool(self.algolia_app_id and self.algolia_api_key)


def load_settings(environ: dict[str, str] | None = None) -> IndexerSettings:
    if environ is None:
        load_dotenv()
        environ = dict(os.environ)

    base_url = (environ.get("BASE_URL") or DEFAULT_BASE_URL).strip()
    if not base_url.startswith(("http://", "https://")):
        raise StartupConfigError(f"BASE_URL must be an absolute http(s) URL, got {base_url!r}")

    sitemap = (environ.get("SITEMAP_URL") or DEFAULT_SITEMAP_PATH).strip()
    log_level = (environ.get("LOG_LEVEL") or "INFO").strip().upper()
    if log_level not in {"DEBUG", "INFO", "WARNING", "WARN", "ERROR"}:
        raise StartupConfigError(f"Unsupported LOG_LEVEL: {log_level}")

    return IndexerSettings(
        base_url=base_url,
        sitemap_url=urljoin(base_url, sitemap),
        mapping_url=(environ.get("MAPPING_URL") or DEFAULT_MAPPING_URL).strip(),
        algolia_app_id=(environ.get("ALGOLIA_APP_ID") or "").strip(),
        algolia_api_key=(environ.get("ALGOLIA_API_KEY") or "").strip(),
        max_concurrent_requests=_positive_int(environ, "MAX_CONCURRENT_REQUESTS", 5),
        batch_size=_positive_int(environ, "BATCH_SIZE", 1000),
        log_level="WARNING" if log_level == "WARN" else log_level,
    )


def _positive_int(environ: dict[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise StartupConfigError(f"{key} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise StartupConfigError(f"{key} must be >= 1, got {value}")
    return value
