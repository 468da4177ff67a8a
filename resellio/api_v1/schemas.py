"""Pydantic schemas for the Resellio HTTP API."""

from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from resellio.core.models import CalendarItem, CalendarStatus, DayPart
from resellio.core.services.caption import CaptionTemplate, Tone

# =============================================================================
# Product grabber
# =============================================================================


class GrabRequest(BaseModel):
    # Non-string values are rejected by the grabber with its own 400 message
    url: Any = Field(None, description="Marketplace product URL")


class ProductResponse(BaseModel):
    title: str
    image: str
    price: int = Field(..., ge=0)
    source: str
    currency: Literal["IDR"] = "IDR"
    url: str
    niche: Optional[str] = None
    hashtags: Optional[List[str]] = None


class ErrorResponse(BaseModel):
    error: str


# =============================================================================
# Meta connection
# =============================================================================


class ConnectResponse(BaseModel):
    oauth_url: str
    state: str


class FacebookStatus(BaseModel):
    page_id: Optional[str] = None
    page_name: Optional[str] = None


class InstagramStatus(BaseModel):
    ig_user_id: Optional[str] = None
    connected: bool = False


class AuthStatus(BaseModel):
    scopes_ok: bool = False
    token_expired: bool = False
    expires_at: Optional[str] = None


class MetaStatusResponse(BaseModel):
    connected: bool
    facebook: FacebookStatus
    instagram: InstagramStatus
    auth: AuthStatus
    notes: List[str] = Field(default_factory=list)


class DisconnectResponse(BaseModel):
    disconnected: bool = True
    status: Literal["not_connected"] = "not_connected"


# =============================================================================
# Relay formatter
# =============================================================================


class RelayResult(BaseModel):
    channel: Literal["instagram", "facebook_page"]
    job_id: str
    status: Literal["scheduled", "published", "failed"]
    message: str


class RelayFormatterResponse(BaseModel):
    ok: bool
    results: List[RelayResult] = Field(default_factory=list)


# =============================================================================
# Pricing & captions
# =============================================================================


class PricingRequest(BaseModel):
    base_cost: float = Field(..., ge=0, description="Product cost in IDR")
    markup: float = Field(25, ge=0, description="Markup in percent")
    shipping: float = Field(12_000, ge=0)
    platform_fee: float = Field(5_000, ge=0)
    ads: float = Field(8_000, ge=0)
    target_profit: float = Field(2_000_000, ge=0)
    psychological_pricing: bool = True


class PricingResponse(BaseModel):
    base_cost: float
    margin: float
    raw_price: float
    final_price: float
    profit: float
    break_even_units: int
    final_price_formatted: str


class CaptionRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1)
    price: float = Field(..., ge=0, description="Selling price shown in the caption")
    niche: str = "Produk Viral"
    tone: Tone = Tone.FRIENDLY
    template: CaptionTemplate = CaptionTemplate.SOFTSELL
    extra_hashtags: List[str] = Field(default_factory=list)

    @field_validator("extra_hashtags", mode="before")
    @classmethod
    def split_comma_separated(cls, v):
        """Accept the settings field format ``"tag1, tag2"`` as well as a list."""
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v


class CaptionResponse(BaseModel):
    caption: str
    hashtag_count: int


# =============================================================================
# Calendar
# =============================================================================


class ScheduleRequest(BaseModel):
    caption: str = ""
    date: str = ""
    time: str = ""
    channel: Literal["instagram", "facebook"] = "instagram"
    product_title: Optional[str] = None
    product_image: Optional[str] = None
    product_url: Optional[str] = None
    product_source: Optional[str] = None


class ScheduleResponse(BaseModel):
    item: CalendarItem
    relay: Literal["not_configured", "sent", "failed"]


class StatusUpdateRequest(BaseModel):
    status: CalendarStatus


class CalendarListResponse(BaseModel):
    items: List[CalendarItem]


class CalendarStatsResponse(BaseModel):
    total: int
    instagram: int
    facebook: int
    posted: int


class ImportResponse(BaseModel):
    imported: int
    items: List[CalendarItem]


class PostingTipResponse(BaseModel):
    channel: Literal["instagram", "facebook"]
    day_part: DayPart
    tip: str
