import copy
import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from src.config.logger_config import logger
from src.search_indexer.domain.models import (
    ContentSegment,
    HeadingRef,
    PageContent,
    PageMetadata,
    PageStructure,
)
from src.search_indexer.domain.rules import normalize_heading
from src.search_indexer.domain.text_cleaning import clean_text, collapse_whitespace

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
NOISE_TAGS = frozenset(
    {
        "nav",
        "header",
        "footer",
        "aside",
        "script",
        "style",
        "noscript",
        "template",
        "iframe",
        "object",
        "embed",
        "svg",
        "form",
        "button",
        "select",
        "dialog",
    }
)
NOISE_ROLES = frozenset({"navigation", "banner", "complementary", "contentinfo", "dialog", "search", "menu", "menubar"})
NOISE_CLASS_TOKEN = re.compile(
    r"^(?:.*[-_])?(?:nav|navigation|menu|sidebar|toolbar|breadcrumbs?|pagination|skip-link|cookie-banner)(?:[-_].*)?$",
    re.IGNORECASE,
)
NON_CONTENT_HEADING = re.compile(
    r"^(?:navigation|menu|links|related|related (?:articles|content|pages|links)|see also|quick links|"
    r"resources|tools|more|get started|on this page|in this article|table of contents|contents)$",
    re.IGNORECASE,
)
MAIN_CONTAINER_SELECTORS = ("main", "article", ".content", "#content")

MIN_SEGMENT_LENGTH = 20
MIN_NODE_TEXT_LENGTH = 10
MIN_FALLBACK_LENGTH = 100


def is_noise_element(node: Tag) -> bool:
    if not isinstance(node, Tag):
        return False
    if node.name in NOISE_TAGS:
        return True
    attrs = node.attrs or {}
    if "hidden" in attrs:
        return True
    if str(attrs.get("aria-hidden", "")).lower() == "true":
        return True
    if str(attrs.get("role", "")).lower() in NOISE_ROLES:
        return True
    style = str(attrs.get("style", "")).replace(" ", "").lower()
    if "display:none" in style or "visibility:hidden" in style:
        return True
    tokens = list(node.get("class") or [])
    element_id = attrs.get("id")
    if isinstance(element_id, str) and element_id:
        tokens.append(element_id)
    return any(NOISE_CLASS_TOKEN.match(token) for token in tokens)


def remove_noise(root: Tag) -> int:
    removed = 0
    for comment in root.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()
    # snapshot first: decomposing mutates the tree being iterated
    for node in list(root.find_all(True)):
        if node.decomposed:
            continue
        if is_noise_element(node):
            node.decompose()
            removed += 1
    return removed


def heading_level(node: Tag) -> int | None:
    if isinstance(node, Tag) and node.name in HEADING_TAGS:
        return int(node.name[1])
    return None


def node_text(node: Tag | NavigableString) -> str:
    if isinstance(node, NavigableString):
        return collapse_whitespace(str(node))
    return collapse_whitespace(node.get_text(" ", strip=True))


@dataclass
class _OpenSegment:
    heading: str
    level: int
    outline_index: int
    buffer: list[str] = field(default_factory=list)


class _SegmentWalker:
    def __init__(self) -> None:
        self.segments: list[ContentSegment] = []
        self.outline: list[HeadingRef] = []
        self.used_headings: set[str] = set()
        self.current: _OpenSegment | None = None

    def walk(self, node: Tag) -> None:
        for child in list(node.children):
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                self._append(node_text(child))
                continue
            if not isinstance(child, Tag):
                continue
            level = heading_level(child)
            if level is not None:
                self._on_heading(child, level)
            elif is_noise_element(child):
                continue
            elif child.find(HEADING_TAGS) is not None:
                self.walk(child)
            else:
                self._append(node_text(child))

    def finish(self) -> None:
        self._close()

    def _on_heading(self, node: Tag, level: int) -> None:
        text = normalize_heading(node.get_text(" ", strip=True))
        if not text or text.lower() in self.used_headings or NON_CONTENT_HEADING.match(text):
            # rejected headings read as ordinary content
            self._append(text)
            return
        self._close()
        self.used_headings.add(text.lower())
        self.outline.append(HeadingRef(text=text, level=level))
        self.current = _OpenSegment(heading=text, level=level, outline_index=len(self.outline) - 1)

    def _append(self, text: str) -> None:
        if self.current is None or len(text) < MIN_NODE_TEXT_LENGTH:
            return
        self.current.buffer.append(text)

    def _close(self) -> None:
        current = self.current
        self.current = None
        if current is None:
            return
        body = clean_text(" ".join(current.buffer))
        if len(body) < MIN_SEGMENT_LENGTH:
            logger.trace("Dropping short segment under heading {!r} ({} chars)", current.heading, len(body))
            return
        self.segments.append(
            ContentSegment(
                heading_text=current.heading,
                heading_level=current.level,
                body_text=body,
                outline_index=current.outline_index,
            )
        )


def extract_segments(root: Tag) -> tuple[list[ContentSegment], list[HeadingRef]]:
    """Split an already de-noised container into heading-anchored segments, in document order."""
    walker = _SegmentWalker()
    walker.walk(root)
    walker.finish()
    return walker.segments, walker.outline


def extract_metadata(soup: BeautifulSoup) -> PageMetadata:
    raw: dict[str, str] = {}
    for meta in soup.find_all("meta"):
        name = meta.get("name") or meta.get("property") or meta.get("http-equiv")
        content = meta.get("content")
        if not name or content is None:
            continue
        raw.setdefault(str(name).strip().lower(), str(content).strip())

    keywords = tuple(k.strip() for k in raw.pop("keywords", "").split(",") if k.strip())
    topics: dict[str, None] = {}
    for keyword in keywords:
        topics.setdefault(keyword.lower(), None)

    return PageMetadata(
        title=raw.pop("title", None) or None,
        description=raw.pop("description", None) or None,
        og_title=raw.pop("og:title", None) or None,
        og_description=raw.pop("og:description", None) or None,
        og_image=raw.pop("og:image", None) or None,
        last_modified=raw.pop("last-modified", None) or raw.pop("article:modified_time", None) or None,
        keywords=keywords,
        topics=tuple(topics),
        type=raw.pop("type", None) or raw.pop("template", None) or None,
        extras=raw,
    )


def select_main_container(soup: BeautifulSoup) -> Tag:
    for selector in MAIN_CONTAINER_SELECTORS:
        found = soup.select_one(selector)
        if found is not None:
            return found
    return soup.body or soup


def extract_structure(root: Tag) -> PageStructure:
    classes: set[str] = set()
    for node in root.find_all(class_=True):
        classes.update(node.get("class") or [])
    return PageStructure(
        has_hero_section=root.select_one(".herosimple") is not None,
        has_discover_blocks=root.select_one(".discoverblock") is not None,
        content_types=tuple(sorted(classes)),
    )


class ContentSegmenter:
    def __init__(self, parser: str = "lxml") -> None:
        self.parser = parser

    def segment(self, url: str, html: str) -> PageContent:
        soup = BeautifulSoup(html or "", self.parser)
        metadata = extract_metadata(soup)

        title_tag = soup.find("title")
        first_h1 = soup.find("h1")
        title = (
            (title_tag.get_text(strip=True) if title_tag else "")
            or (normalize_heading(first_h1.get_text(" ", strip=True)) if first_h1 else "")
            or metadata.og_title
            or ""
        )

        main = copy.copy(select_main_container(soup))
        remove_noise(main)
        structure = extract_structure(main)

        headings = tuple(
            text
            for text in (normalize_heading(node.get_text(" ", strip=True)) for node in main.find_all(HEADING_TAGS))
            if text
        )
        main_text = clean_text(main.get_text(" ", strip=True))
        segments, outline = extract_segments(main)

        if not segments and len(main_text) >= MIN_FALLBACK_LENGTH:
            fallback_heading = title or (headings[0] if headings else "Overview")
            segments = [
                ContentSegment(
                    heading_text=fallback_heading,
                    heading_level=1,
                    body_text=main_text,
                    is_fallback=True,
                )
            ]
        if not segments:
            logger.warning("No qualifying segments or fallback content for {}", url)

        return PageContent(
            url=url,
            title=collapse_whitespace(title),
            description=metadata.description or metadata.og_description or "",
            main_text=main_text,
            headings=headings,
            segments=tuple(segments),
            metadata=metadata,
            structure=structure,
            outline=tuple(outline),
        )
