"""Keyword tables and fixed labels used by the extractor, captions and calendar.

These are locale-specific (Indonesian marketplace vocabulary) and kept as
plain data so they can be swapped without touching the algorithms.
"""

from __future__ import annotations

# (substring in URL, display label), checked in order
MARKETPLACES: tuple[tuple[str, str], ...] = (
    ("shopee", "Shopee"),
    ("tokopedia", "Tokopedia"),
    ("alibaba", "Alibaba"),
    ("1688", "1688"),
    ("aliexpress", "AliExpress"),
)
DEFAULT_MARKETPLACE = "Marketplace"

# (niche label, keyword alternation), first match wins
NICHE_RULES: tuple[tuple[str, str], ...] = (
    ("Fashion", r"hijab|dress|baju|kaos|jaket|celana|fashion|tas|sepatu|rok"),
    ("Beauty", r"skincare|serum|masker|kosmetik|lipstik|makeup|sabun|parfum"),
    ("Home Living", r"botol|tumbler|rak|dapur|organizer|sprei|bantal|karpet|home"),
    (
        "Gadget",
        r"lampu|kabel|charger|headset|earphone|speaker|bluetooth|smartwatch|gadget",
    ),
    ("Ibu & Anak", r"bayi|anak|mainan|stroller|popok|edukasi"),
)
DEFAULT_NICHE = "Produk Viral"

PRODUCT_FIXED_TAGS: tuple[str, ...] = ("reseller", "jualanonline", "produkviral", "importir")
CAPTION_BASE_TAGS: tuple[str, ...] = ("reseller", "importir", "umkm", "jualanonline")
CAPTION_TRAILING_TAG = "produkhits"

PLACEHOLDER_TITLE = "Produk Marketplace"
PLACEHOLDER_IMAGE = (
    "https://images.unsplash.com/photo-1556742031-c6961e8560b0"
    "?w=1200&q=80&auto=format&fit=crop"
)
FALLBACK_TITLE = "Produk Import Best Seller"
FALLBACK_IMAGE = (
    "https://images.unsplash.com/photo-1523381210434-271e8be1f52b"
    "?w=1200&q=80&auto=format&fit=crop"
)

POSTING_TIPS: dict[str, dict[str, str]] = {
    "instagram": {
        "pagi": "07:00 - 09:00 (konten edukasi + teaser produk)",
        "siang": "12:00 - 13:30 (konten promo singkat)",
        "malam": "19:00 - 21:00 (waktu konversi tertinggi)",
    },
    "facebook": {
        "pagi": "08:00 - 10:00 (konten komunitas)",
        "siang": "13:00 - 14:00 (promo + CTA WhatsApp)",
        "malam": "19:30 - 21:30 (posting katalog + live reminder)",
    },
}
