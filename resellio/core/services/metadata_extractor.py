"""Regex-based product metadata extraction from marketplace HTML.

No DOM is built: every field is located by pattern matching over meta tags,
embedded structured data and the page ``<title>``, trying sources in a fixed
priority order.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from resellio.core import taxonomy

_ENTITIES = (
    ("&amp;", "&"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&lt;", "<"),
    ("&gt;", ">"),
)

_TITLE_RE = re.compile(r"<title>([^<]+)</title>", re.IGNORECASE)
_LD_PRICE_RE = re.compile(r'"price"\s*:\s*"?([\d.,]+)"?', re.IGNORECASE)
_NON_PRICE_CHARS_RE = re.compile(r"[^\d.]")
# Everything that is neither a letter, a digit nor whitespace.
_NON_WORD_RE = re.compile(r"[^\w\s]|_")

TITLE_KEYS = ("og:title", "twitter:title")
PRICE_KEYS = ("product:price:amount", "og:price:amount")
IMAGE_KEYS = ("og:image", "twitter:image")

MAX_HASHTAGS = 10
MAX_TITLE_WORDS = 4
MIN_WORD_LENGTH = 4


@dataclass(frozen=True)
class ProductMetadata:
    title: str
    image: str
    price: int
    source: str
    currency: str = "IDR"


def decode_entities(value: str) -> str:
    for entity, char in _ENTITIES:
        value = value.replace(entity, char)
    return value


def _meta_patterns(key: str) -> tuple[re.Pattern[str], re.Pattern[str]]:
    escaped = re.escape(key)
    property_first = re.compile(
        rf"""<meta[^>]+(?:property|name)=["']{escaped}["'][^>]+content=["']([^"']+)["'][^>]*>""",
        re.IGNORECASE,
    )
    content_first = re.compile(
        rf"""<meta[^>]+content=["']([^"']+)["'][^>]+(?:property|name)=["']{escaped}["'][^>]*>""",
        re.IGNORECASE,
    )
    return property_first, content_first


def parse_meta(html: str, keys: Iterable[str]) -> str:
    """Return the decoded content of the first matching meta key, or ``""``."""
    for key in keys:
        property_first, content_first = _meta_patterns(key)
        match = property_first.search(html) or content_first.search(html)
        if match and match.group(1):
            return decode_entities(match.group(1).strip())
    return ""


def parse_title(html: str) -> str:
    title = parse_meta(html, TITLE_KEYS)
    if title:
        return title

    match = _TITLE_RE.search(html)
    if match:
        text = decode_entities(match.group(1).strip())
        if text:
            return text
    return taxonomy.PLACEHOLDER_TITLE


def _positive_round(value: float) -> Optional[int]:
    if not math.isfinite(value) or value <= 0:
        return None
    # half-up, not banker's rounding
    return int(math.floor(value + 0.5))


def parse_price(html: str) -> int:
    """Return the product price, or 0 when no valid positive price is found."""
    meta_price = parse_meta(html, PRICE_KEYS)
    if meta_price:
        try:
            price = _positive_round(float(_NON_PRICE_CHARS_RE.sub("", meta_price)))
        except ValueError:
            price = None
        if price:
            return price

    match = _LD_PRICE_RE.search(html)
    if match:
        try:
            price = _positive_round(float(match.group(1).replace(",", "")))
        except ValueError:
            price = None
        if price:
            return price

    return 0


def parse_image(html: str) -> str:
    return parse_meta(html, IMAGE_KEYS) or taxonomy.PLACEHOLDER_IMAGE


def infer_source(
    url: str,
    marketplaces: Sequence[tuple[str, str]] = taxonomy.MARKETPLACES,
) -> str:
    lowered = url.lower()
    for needle, label in marketplaces:
        if needle in lowered:
            return label
    return taxonomy.DEFAULT_MARKETPLACE


def infer_niche(
    title: str,
    rules: Sequence[tuple[str, str]] = taxonomy.NICHE_RULES,
) -> str:
    normalized = title.lower()
    for niche, pattern in rules:
        if re.search(f"({pattern})", normalized, re.IGNORECASE):
            return niche
    return taxonomy.DEFAULT_NICHE


def normalize_tag(value: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace: ``"Ibu & Anak"`` -> ``"ibuanak"``."""
    cleaned = _NON_WORD_RE.sub("", value.lower()).strip()
    return re.sub(r"\s+", "", cleaned)


def _title_words(title: str) -> list[str]:
    words: list[str] = []
    for word in _NON_WORD_RE.sub(" ", title.lower()).split():
        if len(word) < MIN_WORD_LENGTH or word in words:
            continue
        words.append(word)
        if len(words) == MAX_TITLE_WORDS:
            break
    return words


def build_hashtags(
    title: str,
    niche: str,
    source: str,
    fixed_tags: Sequence[str] = taxonomy.PRODUCT_FIXED_TAGS,
) -> list[str]:
    candidates = [*fixed_tags, niche, source, *_title_words(title)]
    tags: list[str] = []
    for candidate in candidates:
        tag = normalize_tag(candidate)
        if tag and tag not in tags:
            tags.append(tag)
    return tags[:MAX_HASHTAGS]


def extract_metadata(html: str, url: str = "") -> ProductMetadata:
    """Extract title, price and image from raw HTML.

    ``price`` is 0 when the page carries no usable price signal; callers
    substitute their own default in that case.
    """
    return ProductMetadata(
        title=parse_title(html),
        image=parse_image(html),
        price=parse_price(html),
        source=infer_source(url),
    )
