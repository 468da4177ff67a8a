"""Fetch a marketplace product page and turn it into dashboard-ready metadata."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Sequence
from urllib.parse import urlparse

import httpx

from resellio.core import taxonomy
from resellio.core.services.metadata_extractor import (
    build_hashtags,
    extract_metadata,
    infer_niche,
    infer_source,
)

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")


class ProductUrlError(ValueError):
    """Raised when a product URL is rejected before any network call."""


@dataclass(frozen=True)
class GrabbedProduct:
    title: str
    image: str
    price: int
    source: str
    url: str
    niche: str
    hashtags: list[str] = field(default_factory=list)
    currency: str = "IDR"
    fallback: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("fallback")
        return data


def validate_product_url(
    url: Any,
    marketplaces: Sequence[tuple[str, str]] = taxonomy.MARKETPLACES,
) -> str:
    """Return the normalised URL or raise ``ProductUrlError``."""
    if url is None or (isinstance(url, str) and not url.strip()):
        raise ProductUrlError("URL must not be empty.")
    if not isinstance(url, str):
        raise ProductUrlError("Invalid URL format.")
    url = url.strip()

    try:
        parsed = urlparse(url)
        hostname = (parsed.hostname or "").lower()
    except ValueError as exc:
        raise ProductUrlError("Invalid URL format.") from exc

    if not parsed.scheme or not parsed.netloc:
        raise ProductUrlError("Invalid URL format.")
    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise ProductUrlError("URL protocol is not supported.")
    if not hostname:
        raise ProductUrlError("Invalid URL format.")
    if not any(needle in hostname for needle, _ in marketplaces):
        raise ProductUrlError("Marketplace domain is not supported yet.")
    return url


def fallback_product(url: str, default_price: int = 120_000) -> GrabbedProduct:
    return GrabbedProduct(
        title=taxonomy.FALLBACK_TITLE,
        image=taxonomy.FALLBACK_IMAGE,
        price=default_price,
        source=infer_source(url),
        url=url,
        niche=taxonomy.DEFAULT_NICHE,
        hashtags=list(taxonomy.PRODUCT_FIXED_TAGS),
        fallback=True,
    )


class ProductGrabber:
    """Scrapes product pages; upstream failures always degrade to fallback data."""

    def __init__(
        self,
        timeout: float = 10.0,
        user_agent: str = "Mozilla/5.0",
        default_price: int = 120_000,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.default_price = default_price

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent}

    async def fetch_html(self, url: str) -> Optional[str]:
        """Return the page body, or None on timeout, network error or non-2xx status."""
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers=self._headers(),
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException:
            logger.warning("Product fetch timed out after %.1fs: %s", self.timeout, url)
            return None
        except httpx.HTTPError as exc:
            logger.warning("Product fetch failed for %s: %s", url, exc)
            return None

        if response.status_code < 200 or response.status_code >= 300:
            logger.warning(
                "Product fetch returned status=%s for %s", response.status_code, url
            )
            return None
        return response.text

    def build_product(self, html: str, url: str) -> GrabbedProduct:
        metadata = extract_metadata(html, url)
        niche = infer_niche(metadata.title)
        return GrabbedProduct(
            title=metadata.title,
            image=metadata.image,
            price=metadata.price or self.default_price,
            source=metadata.source,
            url=url,
            niche=niche,
            hashtags=build_hashtags(metadata.title, niche, metadata.source),
            currency=metadata.currency,
        )

    async def grab(self, url: Any) -> GrabbedProduct:
        """Validate ``url``, fetch it and extract product metadata.

        Raises:
            ProductUrlError: the URL is missing, malformed, uses another
                protocol or points outside the supported marketplaces.
        """
        url = validate_product_url(url)

        html = await self.fetch_html(url)
        if html is None:
            return fallback_product(url, self.default_price)

        try:
            product = self.build_product(html, url)
        except Exception as exc:  # pragma: no cover - parser guard rail
            logger.error("Failed to parse product page %s: %s", url, exc)
            return fallback_product(url, self.default_price)

        logger.info(
            "Grabbed product source=%s price=%s niche=%s", product.source, product.price, product.niche
        )
        return product
