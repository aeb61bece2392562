from copy import deepcopy
from typing import Any

DEFAULT_INDEX_SETTINGS: dict[str, Any] = {
    "searchableAttributes": [
        "unordered(title)",
        "unordered(hierarchy.lvl0)",
        "unordered(hierarchy.lvl1)",
        "unordered(hierarchy.lvl2)",
        "unordered(headings)",
        "unordered(description)",
        "unordered(content)",
        "unordered(metadata.keywords)",
    ],
    "attributesForFaceting": [
        "filterOnly(product)",
        "filterOnly(indexName)",
        "searchable(type)",
        "searchable(topics)",
    ],
    "customRanking": ["desc(lastModified)"],
    "ranking": ["typo", "geo", "words", "filters", "proximity", "attribute", "exact", "custom"],
    "minWordSizefor1Typo": 4,
    "minWordSizefor2Typos": 8,
    "queryLanguages": ["en"],
    "removeStopWords": True,
    "advancedSyntax": True,
}


def default_index_settings() -> dict[str, Any]:
    return deepcopy(DEFAULT_INDEX_SETTINGS)
