"""Request rate limiting for endpoints that trigger outbound fetches."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from resellio.core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    enabled=get_settings().scrape.rate_limit_enabled,
)


def scrape_rate_limit() -> str:
    return get_settings().scrape.rate_limit
