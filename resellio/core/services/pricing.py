"""Resale price recommendation."""

from __future__ import annotations

import math
from dataclasses import dataclass

PSYCHOLOGICAL_UNIT = 1000
PSYCHOLOGICAL_OFFSET = 900


@dataclass(frozen=True)
class PricingInput:
    base_cost: float
    markup: float = 25
    shipping: float = 12_000
    platform_fee: float = 5_000
    ads: float = 8_000
    target_profit: float = 2_000_000
    psychological_pricing: bool = True


@dataclass(frozen=True)
class PricingQuote:
    base_cost: float
    margin: float
    raw_price: float
    final_price: float
    profit: float
    break_even_units: int


def psychological_price(raw_price: float) -> float:
    """Round down to the thousand and add 900 (``150_000`` -> ``150_900``)."""
    if raw_price <= PSYCHOLOGICAL_UNIT:
        return raw_price
    return math.floor(raw_price / PSYCHOLOGICAL_UNIT) * PSYCHOLOGICAL_UNIT + PSYCHOLOGICAL_OFFSET


def quote(params: PricingInput) -> PricingQuote:
    margin = params.base_cost * params.markup / 100
    costs = params.shipping + params.platform_fee + params.ads
    raw_price = params.base_cost + margin + costs
    final_price = psychological_price(raw_price) if params.psychological_pricing else raw_price
    profit = final_price - params.base_cost - costs
    break_even = math.ceil(params.target_profit / profit) if profit > 0 else 0
    return PricingQuote(
        base_cost=params.base_cost,
        margin=margin,
        raw_price=raw_price,
        final_price=final_price,
        profit=profit,
        break_even_units=break_even,
    )


def format_idr(value: float) -> str:
    """Format rupiah with dot thousands separators and no decimals: ``Rp 150.900``."""
    rounded = int(math.floor(abs(value) + 0.5))
    sign = "-" if value < 0 and rounded else ""
    return f"{sign}Rp {rounded:,}".replace(",", ".")
