"""Pydantic models persisted as JSON in the session store."""

from __future__ import annotations

import ipaddress
from datetime import datetime
from typing import Literal, Optional
from uuid import uuid4

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from resellio.core.services.caption import CaptionTemplate, Tone

CalendarChannel = Literal["instagram", "facebook"]
CalendarStatus = Literal["draft", "scheduled", "posted"]
DayPart = Literal["pagi", "siang", "malam"]

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"

_http_url = TypeAdapter(AnyHttpUrl)


def validate_webhook_url(value: str) -> str:
    """Accept an empty value or a public http(s) URL; internal addresses are refused."""
    value = value.strip()
    if not value:
        return value
    try:
        url = _http_url.validate_python(value)
    except ValidationError as exc:
        raise ValueError("webhookUrl must be an http or https URL") from exc

    host = (url.host or "").strip("[]").lower()
    if host == "localhost" or host.endswith(".localhost"):
        raise ValueError("webhookUrl must not point to a local address")
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return value
    if not address.is_global:
        raise ValueError("webhookUrl must not point to a private or reserved address")
    return value


class CalendarItem(BaseModel):
    """One planned post in the content calendar."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: str(uuid4()), min_length=1)
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="YYYY-MM-DD")
    time: str = Field(..., pattern=r"^\d{2}:\d{2}$", description="HH:MM")
    caption: str = Field(..., min_length=1)
    channel: CalendarChannel = "instagram"
    image: Optional[str] = None
    product_title: Optional[str] = Field(default=None, alias="productTitle")
    status: CalendarStatus = "draft"

    @field_validator("date")
    @classmethod
    def _real_date(cls, v: str) -> str:
        datetime.strptime(v, DATE_FORMAT)
        return v

    @field_validator("time")
    @classmethod
    def _real_time(cls, v: str) -> str:
        datetime.strptime(v, TIME_FORMAT)
        return v

    @property
    def sort_key(self) -> str:
        return f"{self.date}{self.time}"


class DashboardSettings(BaseModel):
    """Pricing and caption preferences remembered between visits."""

    model_config = ConfigDict(populate_by_name=True)

    markup: float = 25
    shipping: float = 12_000
    platform_fee: float = Field(default=5_000, alias="platformFee")
    ads: float = 8_000
    niche: str = "Fashion Wanita"
    tone: Tone = Tone.FRIENDLY
    template: CaptionTemplate = CaptionTemplate.SOFTSELL
    extra_tags_input: str = Field(default="", alias="extraTagsInput")
    webhook_url: str = Field(default="", alias="webhookUrl")
    target_profit: float = Field(default=2_000_000, alias="targetProfit")
    psychological_pricing: bool = Field(default=True, alias="psychologicalPricing")
    day_part: DayPart = Field(default="malam", alias="dayPart")

    @field_validator("webhook_url")
    @classmethod
    def _safe_webhook_url(cls, v: str) -> str:
        return validate_webhook_url(v)
