import hashlib
import re
from urllib.parse import urljoin, urlsplit, urlunsplit

EXCLUDED_PATH_SEGMENTS: tuple[str, ...] = (
    "/nav/",
    "/fragments/",
    "/blocks/",
    "/drafts/",
    "/tools/",
    "/internal/",
    "/test/",
    "/assets/",
    "/_reference/",
    "/github-actions-test/",
)
EXCLUDED_PATH_SUFFIXES: tuple[str, ...] = ("/nav",)

_DEFAULT_PORTS = {"http": 80, "https": 443}
_FRAGMENT_DROP = re.compile(r"[^a-z0-9\s-]")
_LEADING_ENUMERATION = re.compile(r"^(?:\d+(?:\.\d+)+[.)]?|\d+[.)]|[ivxlc]+[.)])\s+", re.IGNORECASE)
_LEADING_BULLETS = re.compile(r"^[-–—•*]+\s*")
_TRAILING_BULLETS = re.compile(r"\s*[-–—•*]+$")


def split_fragment(path: str) -> tuple[str, str | None]:
    head, sep, fragment = path.partition("#")
    return head, (fragment if sep and fragment else None)


def normalize_path(path: str) -> str:
    """Drop any fragment and trailing slashes. The root path stays "/"."""
    head, _ = split_fragment(path or "")
    head = head.split("?", 1)[0]
    stripped = head.rstrip("/")
    return stripped if stripped else "/"


def is_excluded_path(path: str) -> bool:
    normalized = normalize_path(path)
    if normalized.endswith(EXCLUDED_PATH_SUFFIXES):
        return True
    padded = normalized + "/"
    return any(segment in padded for segment in EXCLUDED_PATH_SEGMENTS)


def normalize_url(url: str) -> str:
    parts = urlsplit((url or "").strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"
    netloc = host
    if parts.port is not None and _DEFAULT_PORTS.get(scheme) != parts.port:
        netloc = f"{host}:{parts.port}"
    if parts.username:
        netloc = f"{parts.username}@{netloc}"
    path = parts.path.rstrip("/") or ("/" if netloc else "")
    path = re.sub(r"/{2,}", "/", path)
    return urlunsplit((scheme, netloc, path, parts.query, ""))


def rebase_url(url: str, base_url: str) -> str:
    parts = urlsplit(url)
    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    return urljoin(base_url.rstrip("/") + "/", path.lstrip("/"))


def url_path(url: str) -> str:
    return urlsplit(url).path or "/"


def heading_to_fragment_id(heading: str) -> str:
    slug = _FRAGMENT_DROP.sub("", (heading or "").lower().strip())
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-{2,}", "-", slug).strip("-")
    return f"#{slug}" if slug else ""


def normalize_fragment(fragment: str | None) -> str:
    return (fragment or "").strip().lstrip("#").strip().lower()


def object_id(url: str, fragment: str | None = None, suffix: int = 0) -> str:
    key = f"{normalize_url(url)}#{normalize_fragment(fragment)}"
    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()
    return f"{digest}_{suffix}" if suffix else digest


def normalize_heading(heading: str) -> str:
    text = re.sub(r"\s+", " ", heading or "").strip()
    text = _LEADING_BULLETS.sub("", text)
    text = _TRAILING_BULLETS.sub("", text)
    text = _LEADING_ENUMERATION.sub("", text)
    return text.strip()


def determine_type(path: str) -> str:
    if "/api/" in path or "-api" in path:
        return "api"
    if "/community/" in path or "/developer-champion/" in path:
        return "community"
    if "/tools/" in path:
        return "tool"
    return "documentation"
