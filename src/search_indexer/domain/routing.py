from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable
from urllib.parse import urlsplit

from src.config.logger_config import logger
from src.search_indexer.domain.errors import StartupConfigError
from src.search_indexer.domain.models import IndexMatch, RoutingRule, SitemapEntry
from src.search_indexer.domain.rules import (
    EXCLUDED_PATH_SEGMENTS,
    is_excluded_path,
    normalize_path,
    split_fragment,
)


def parse_routing_rules(payload: Any) -> tuple[RoutingRule, ...]:
    """Flatten the product mapping JSON into routing rules, keeping declaration order."""
    if not isinstance(payload, list):
        raise StartupConfigError("Product mapping payload is not a JSON array")

    rules: list[RoutingRule] = []
    for position, product in enumerate(payload):
        if not isinstance(product, dict):
            raise StartupConfigError(f"Product mapping entry {position} is not an object")
        product_name = str(product.get("productName") or "").strip()
        indices = product.get("productIndices")
        if not product_name or not isinstance(indices, list):
            raise StartupConfigError(f"Product mapping entry {position} is missing productName/productIndices")
        for index in indices:
            if not isinstance(index, dict):
                raise StartupConfigError(f"Index entry for product {product_name!r} is not an object")
            index_name = str(index.get("indexName") or "").strip()
            prefix = str(index.get("indexPathPrefix") or "").strip()
            if not index_name or not prefix:
                raise StartupConfigError(f"Index entry for product {product_name!r} is missing indexName/indexPathPrefix")
            rules.append(RoutingRule(product_name=product_name, index_name=index_name, path_prefix=prefix))
    return tuple(rules)


def _segment_count(prefix: str) -> int:
    return len([part for part in prefix.split("/") if part])


def _prefix_matches(path: str, prefix: str) -> bool:
    if prefix == "/":
        return True
    return path == prefix or path.startswith(prefix + "/")


@dataclass(frozen=True)
class RoutingAnalysis:
    total: int
    matched: int
    excluded: int
    unmatched: int
    by_index: dict[str, int]
    samples: dict[str, tuple[str, ...]]
    suggestions: tuple[tuple[str, int, bool], ...] = field(default_factory=tuple)


class PathRouter:
    SAMPLE_LIMIT = 3

    def __init__(self, rules: Iterable[RoutingRule], active_indices: Iterable[str] | None = None) -> None:
        self.rules = tuple(rules)
        self._cache: dict[str, IndexMatch | None] = {}
        self._active: frozenset[str] | None = None
        self.set_active_indices(active_indices)

    @property
    def active_indices(self) -> frozenset[str] | None:
        return self._active

    def set_active_indices(self, indices: Iterable[str] | None) -> None:
        names = frozenset(name.strip().lower() for name in (indices or ()) if name and name.strip())
        self._active = names or None
        self._cache.clear()
        if self._active:
            logger.info("Routing restricted to {} indices: {}", len(self._active), ", ".join(sorted(self._active)))

    def index_names(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for rule in self.rules:
            seen.setdefault(rule.index_name, None)
        return tuple(seen)

    def is_excluded(self, path: str) -> bool:
        return is_excluded_path(path)

    def resolve(self, path: str) -> IndexMatch | None:
        if path in self._cache:
            return self._cache[path]
        match = self._resolve_uncached(path)
        self._cache[path] = match
        return match

    def resolve_url(self, url: str) -> IndexMatch | None:
        parts = urlsplit(url)
        path = parts.path or "/"
        if parts.fragment:
            path = f"{path}#{parts.fragment}"
        return self.resolve(path)

    def _resolve_uncached(self, path: str) -> IndexMatch | None:
        raw_path, fragment = split_fragment(path)
        if is_excluded_path(raw_path):
            logger.debug("Skipping excluded path: {}", raw_path)
            return None

        clean_path = normalize_path(raw_path)
        candidates: list[RoutingRule] = []
        for rule in self.rules:
            if self._active is not None and rule.index_name.lower() not in self._active:
                continue
            if _prefix_matches(clean_path, normalize_path(rule.path_prefix)):
                candidates.append(rule)

        if not candidates:
            logger.debug("No mapping found for: {}", clean_path)
            return None

        candidates.sort(
            key=lambda rule: (
                -_segment_count(rule.path_prefix),
                -len(normalize_path(rule.path_prefix)),
                normalize_path(rule.path_prefix),
                rule.index_name,
            )
        )
        best = candidates[0]
        if len(candidates) > 1:
            logger.debug(
                "Best match for {}: {} -> {} (alternatives: {})",
                clean_path,
                best.path_prefix,
                best.index_name,
                ", ".join(f"{r.path_prefix} -> {r.index_name}" for r in candidates[1:]),
            )
        return IndexMatch(
            index_name=best.index_name,
            product_name=best.product_name,
            matched_prefix=normalize_path(best.path_prefix),
            original_path=path,
            fragment=fragment,
        )

    def analyze(self, entries: Iterable[SitemapEntry]) -> RoutingAnalysis:
        total = matched = excluded = unmatched = 0
        by_index: Counter[str] = Counter()
        samples: dict[str, list[str]] = {}
        unmapped_roots: Counter[str] = Counter()

        for entry in entries:
            total += 1
            path = urlsplit(entry.location).path or "/"
            if is_excluded_path(path):
                excluded += 1
                continue
            match = self.resolve(path)
            if match is None:
                unmatched += 1
                segments = [part for part in path.split("/") if part]
                if segments:
                    unmapped_roots[f"/{segments[0]}"] += 1
                continue
            matched += 1
            by_index[match.index_name] += 1
            bucket = samples.setdefault(match.index_name, [])
            if len(bucket) < self.SAMPLE_LIMIT:
                bucket.append(entry.location)

        excluded_roots = {segment.rstrip("/") for segment in EXCLUDED_PATH_SEGMENTS} | {"/nav"}
        existing = {name.lower() for name in self.index_names()}
        suggestions = tuple(
            (root, count, root.lstrip("/").lower() in existing)
            for root, count in sorted(unmapped_roots.items(), key=lambda item: (-item[1], item[0]))
            if count > 1 and root not in excluded_roots
        )

        logger.info("URLs: {} matched, {} skipped, {} unmatched", matched, excluded, unmatched)
        for root, count, conflict in suggestions:
            logger.debug(
                "Unmapped path {}/* ({} URLs) -> suggested index {}{}",
                root,
                count,
                root.lstrip("/"),
                " (conflicts with existing index)" if conflict else "",
            )
        return RoutingAnalysis(
            total=total,
            matched=matched,
            excluded=excluded,
            unmatched=unmatched,
            by_index=dict(by_index),
            samples={name: tuple(urls) for name, urls in samples.items()},
            suggestions=suggestions,
        )
