"""Text normalisation passes applied to extracted document text.

Each pass is a plain function so it can be exercised on its own; ``clean_text``
chains them in the order the segmenter needs: entity decoding, residual markup
removal, whitespace collapse, then near-duplicate sentence pruning.
"""

import html
import math
import re

from rapidfuzz.distance import Levenshtein

NEAR_DUPLICATE_RATIO = 0.2
# fuzzy comparisons per sentence are limited to the most recent kept sentences
DEDUPE_WINDOW = 50
DESCRIPTION_MIN = 120
DESCRIPTION_MAX = 160
DESCRIPTION_CUT = 157
TRUNCATION_MARKER = "..."

_TAG = re.compile(r"<[^>]{0,500}>")
_DATA_ATTRIBUTE = re.compile(r"data-[\w-]+=(?:\"[^\"]*\"|'[^']*'|\w+(?:,\s*\w+)*)")
_SPACE_BEFORE_PUNCT = re.compile(r"\s+([.,;:!?)])")
_SPACE_AFTER_OPEN = re.compile(r"([({])\s+")
_WHITESPACE = re.compile(r"\s+")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_COMPARE_STRIP = re.compile(r"[.,;:!?()\[\]{}'\"]")
_UI_SENTENCE = re.compile(
    r"^(?:click|view|learn more|see more|read more|next|previous|back to top|copy|edit this page)[.!]?$",
    re.IGNORECASE,
)
_UI_PHRASES = re.compile(r"\b(?:click here|tap here|learn more|read more|view more|see details)\b", re.IGNORECASE)
_REPEATED_WORD = re.compile(r"\b(\w+)(\s+\1\b)+", re.IGNORECASE)


def decode_entities(text: str) -> str:
    return html.unescape(text or "").replace("\xa0", " ")


def strip_markup(text: str) -> str:
    text = _TAG.sub(" ", text or "")
    return _DATA_ATTRIBUTE.sub(" ", text)


def collapse_whitespace(text: str) -> str:
    text = _WHITESPACE.sub(" ", text or "")
    text = _SPACE_BEFORE_PUNCT.sub(r"\1", text)
    text = _SPACE_AFTER_OPEN.sub(r"\1", text)
    return text.strip()


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(text or "") if s.strip()]


def levenshtein(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


def _comparison_key(sentence: str) -> str:
    return _WHITESPACE.sub(" ", _COMPARE_STRIP.sub("", sentence.lower())).strip()


def _keys_near_duplicate(left: str, right: str, ratio: float = NEAR_DUPLICATE_RATIO) -> bool:
    if not left or not right:
        return left == right
    if left in right or right in left:
        return True
    threshold = ratio * (len(left) + len(right))
    # edit distance is at least the length difference
    if abs(len(left) - len(right)) >= threshold:
        return False
    return Levenshtein.distance(left, right, score_cutoff=math.ceil(threshold)) < threshold


def is_near_duplicate(a: str, b: str, ratio: float = NEAR_DUPLICATE_RATIO) -> bool:
    return _keys_near_duplicate(_comparison_key(a), _comparison_key(b), ratio)


def dedupe_sentences(sentences: list[str], window: int = DEDUPE_WINDOW) -> list[str]:
    """Drop UI chatter and near-duplicate sentences, keeping document order.

    Exact repeats are dropped wherever they occur. Fuzzy matching only looks at
    the last ``window`` kept sentences, so a page costs linear time in its length.
    """
    kept: list[str] = []
    keys: list[str] = []
    seen: set[str] = set()
    for sentence in sentences:
        if _UI_SENTENCE.match(sentence):
            continue
        key = _comparison_key(sentence)
        if key in seen:
            continue
        start = max(0, len(kept) - window)
        duplicate_of = next((i for i in range(start, len(kept)) if _keys_near_duplicate(keys[i], key)), None)
        seen.add(key)
        if duplicate_of is None:
            kept.append(sentence)
            keys.append(key)
        elif len(key) > len(keys[duplicate_of]):
            # keep the more complete variant in the earlier position
            kept[duplicate_of] = sentence
            keys[duplicate_of] = key
    return kept


def clean_text(raw: str) -> str:
    text = collapse_whitespace(strip_markup(decode_entities(raw)))
    if not text:
        return ""
    text = " ".join(dedupe_sentences(split_sentences(text)))
    text = _UI_PHRASES.sub("", text)
    text = _REPEATED_WORD.sub(r"\1", text)
    return collapse_whitespace(text)


def derive_description(text: str) -> str:
    text = collapse_whitespace(text)
    if len(text) <= DESCRIPTION_MAX:
        return text

    window = text[:DESCRIPTION_MAX]
    boundary = -1
    for match in re.finditer(r"[.!?](?=\s|$)", window):
        end = match.end()
        if DESCRIPTION_MIN <= end <= DESCRIPTION_MAX:
            boundary = end
    if boundary != -1:
        return window[:boundary].strip()

    cut = text[:DESCRIPTION_CUT]
    space = cut.rfind(" ")
    if space > DESCRIPTION_MIN // 2:
        cut = cut[:space]
    return cut.rstrip(" ,;:-") + TRUNCATION_MARKER
