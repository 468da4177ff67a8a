"""Caption templating for Instagram / Facebook product posts."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from resellio.core import taxonomy
from resellio.core.services.metadata_extractor import normalize_tag
from resellio.core.services.pricing import format_idr

_HASHTAG_RE = re.compile(r"#\w+")


class Tone(str, Enum):
    FRIENDLY = "friendly"
    URGENT = "urgent"
    PREMIUM = "premium"


class CaptionTemplate(str, Enum):
    SOFTSELL = "softsell"
    HARDSELL = "hardsell"
    STORYTELLING = "storytelling"


@dataclass(frozen=True)
class ToneStyle:
    emoji: str
    opener: str
    cta: str


TONE_STYLES: dict[Tone, ToneStyle] = {
    Tone.FRIENDLY: ToneStyle(
        emoji="✨🔥",
        opener="Siap bikin etalase toko kamu makin standout!",
        cta="Klik link bio / DM sekarang, stok terbatas!",
    ),
    Tone.URGENT: ToneStyle(
        emoji="⚡📦",
        opener="Flash deal import hari ini, jangan sampai kehabisan!",
        cta="Amankan slot order kamu sekarang juga via DM!",
    ),
    Tone.PREMIUM: ToneStyle(
        emoji="💎🖤",
        opener="Pilihan premium untuk pelanggan yang mencari kualitas terbaik.",
        cta="DM untuk order eksklusif & harga reseller spesial.",
    ),
}


def parse_extra_hashtags(raw: str) -> list[str]:
    """Split the comma separated settings field into individual tags."""
    return [value.strip() for value in raw.split(",") if value.strip()]


def count_hashtags(caption: str) -> int:
    return len(_HASHTAG_RE.findall(caption))


def merge_hashtags(niche: str, extra: Iterable[str]) -> list[str]:
    base = [*taxonomy.CAPTION_BASE_TAGS, normalize_tag(niche), taxonomy.CAPTION_TRAILING_TAG]
    merged: list[str] = []
    for tag in [*base, *(normalize_tag(value) for value in extra)]:
        if tag and tag not in merged:
            merged.append(tag)
    return merged


def apply_template(template: CaptionTemplate, text: str) -> str:
    if template is CaptionTemplate.HARDSELL:
        return f"🚨 PROMO TERBATAS 🚨\n{text}\n\n#buruancheckout"
    if template is CaptionTemplate.STORYTELLING:
        return (
            "Awalnya banyak reseller bingung cari produk yang repeat order.\n\n"
            f"{text}\n\n"
            "Yuk jadikan produk ini andalan etalase kamu."
        )
    return text


def build_caption(
    niche: str,
    title: str,
    selling_price: float,
    tone: Tone = Tone.FRIENDLY,
    extra_hashtags: Iterable[str] = (),
    template: CaptionTemplate = CaptionTemplate.SOFTSELL,
) -> str:
    style = TONE_STYLES[Tone(tone)]
    tags = " ".join(f"#{tag}" for tag in merge_hashtags(niche, extra_hashtags))

    body = "\n".join(
        [
            f"{style.emoji} {title}",
            "",
            style.opener,
            f"Harga rekomendasi jual mulai {format_idr(selling_price)}.",
            "",
            "✅ Siap dijual ulang",
            "✅ Support dropship/reseller",
            "✅ Cocok untuk UMKM yang ingin scale-up",
            "",
            style.cta,
            "",
            tags,
        ]
    )
    return apply_template(CaptionTemplate(template), body)
