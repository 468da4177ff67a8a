"""Content calendar and dashboard settings stored per client session."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import uuid4

import httpx
from pydantic import ValidationError

from resellio.core import taxonomy
from resellio.core.models import CalendarItem, DashboardSettings
from resellio.core.services.kv_store import KeyValueStore, get_json, scoped_key, set_json

logger = logging.getLogger(__name__)

STORAGE_CALENDAR_KEY = "resellio-calendar-items-v2"
STORAGE_SETTINGS_KEY = "resellio-user-settings-v2"


class CalendarError(ValueError):
    """Raised for user-correctable calendar input problems."""


class CalendarItemNotFound(LookupError):
    pass


@dataclass(frozen=True)
class ScheduledProduct:
    title: Optional[str] = None
    image: Optional[str] = None
    url: Optional[str] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class ScheduleResult:
    item: CalendarItem
    relay: str  # not_configured | sent | failed


def _sorted(items: list[CalendarItem]) -> list[CalendarItem]:
    return sorted(items, key=lambda item: item.sort_key)


def posting_tip(channel: str, day_part: str) -> Optional[str]:
    return taxonomy.POSTING_TIPS.get(channel, {}).get(day_part)


class CalendarService:
    def __init__(
        self,
        store: KeyValueStore,
        session_id: str,
        key_prefix: str = "resellio",
        relay_timeout: float = 10.0,
    ):
        self.store = store
        self.session_id = session_id
        self.key_prefix = key_prefix
        self.relay_timeout = relay_timeout

    def _key(self, name: str) -> str:
        return scoped_key(self.key_prefix, self.session_id, name)

    # Items -----------------------------------------------------------------
    async def load_items(self) -> list[CalendarItem]:
        data = await get_json(self.store, self._key(STORAGE_CALENDAR_KEY))
        if not isinstance(data, list):
            return []
        items: list[CalendarItem] = []
        for entry in data:
            try:
                items.append(CalendarItem.model_validate(entry))
            except ValidationError as exc:
                logger.warning("Skipping malformed calendar item: %s", exc.errors())
        return items

    async def save_items(self, items: list[CalendarItem]) -> None:
        await set_json(
            self.store,
            self._key(STORAGE_CALENDAR_KEY),
            [item.model_dump(by_alias=True) for item in items],
        )

    async def list_items(self, channel: str = "all", search: str = "") -> list[CalendarItem]:
        keyword = search.lower().strip()
        result = []
        for item in await self.load_items():
            if channel != "all" and item.channel != channel:
                continue
            if keyword and keyword not in f"{item.caption} {item.product_title or ''}".lower():
                continue
            result.append(item)
        return result

    async def add_item(self, item: CalendarItem) -> CalendarItem:
        items = await self.load_items()
        items.append(item)
        await self.save_items(_sorted(items))
        return item

    async def schedule_post(
        self,
        *,
        caption: str,
        date: str,
        time: str,
        channel: str = "instagram",
        product: Optional[ScheduledProduct] = None,
    ) -> ScheduleResult:
        if not caption or not date or not time:
            raise CalendarError("Caption, date and time are required to schedule a post.")
        product = product or ScheduledProduct()

        try:
            item = CalendarItem(
                date=date,
                time=time,
                caption=caption,
                channel=channel,
                image=product.image,
                product_title=product.title,
                status="scheduled",
            )
        except ValidationError as exc:
            raise CalendarError(f"Invalid calendar item: {exc.errors()[0]['msg']}") from exc

        await self.add_item(item)

        settings = await self.load_settings()
        if not settings.webhook_url:
            return ScheduleResult(item=item, relay="not_configured")

        payload = {
            "caption": caption,
            "channel": channel,
            "scheduleAt": f"{date}T{time}",
            "image": product.image,
            "productTitle": product.title,
            "productUrl": product.url,
            "source": product.source,
        }
        relayed = await self._relay(settings.webhook_url, payload)
        return ScheduleResult(item=item, relay="sent" if relayed else "failed")

    async def _relay(self, webhook_url: str, payload: dict[str, Any]) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.relay_timeout) as client:
                resp = await client.post(webhook_url, json=payload)
            if resp.status_code < 400:
                return True
            logger.error(
                "Schedule relay rejected: status=%s body=%s endpoint=%s",
                resp.status_code,
                resp.text,
                webhook_url,
            )
        except Exception as exc:  # pragma: no cover - network guard rail
            logger.error("Failed to relay scheduled post: %s", exc)
        return False

    async def update_status(self, item_id: str, status: str) -> CalendarItem:
        items = await self.load_items()
        for index, item in enumerate(items):
            if item.id == item_id:
                try:
                    updated = CalendarItem.model_validate(
                        {**item.model_dump(by_alias=True), "status": status}
                    )
                except ValidationError as exc:
                    raise CalendarError(f"Invalid status: {status}") from exc
                items[index] = updated
                await self.save_items(items)
                return updated
        raise CalendarItemNotFound(item_id)

    async def delete_item(self, item_id: str) -> bool:
        items = await self.load_items()
        remaining = [item for item in items if item.id != item_id]
        if len(remaining) == len(items):
            return False
        await self.save_items(remaining)
        return True

    async def duplicate_tomorrow(self, item_id: str) -> CalendarItem:
        items = await self.load_items()
        source = next((item for item in items if item.id == item_id), None)
        if source is None:
            raise CalendarItemNotFound(item_id)

        moment = datetime.strptime(f"{source.date}T{source.time}", "%Y-%m-%dT%H:%M")
        moment += timedelta(days=1)
        cloned = source.model_copy(
            update={
                "id": str(uuid4()),
                "date": moment.strftime("%Y-%m-%d"),
                "time": moment.strftime("%H:%M"),
                "status": "draft",
            }
        )
        items.append(cloned)
        await self.save_items(_sorted(items))
        return cloned

    async def export_json(self) -> str:
        items = await self.load_items()
        return json.dumps(
            [item.model_dump(by_alias=True) for item in items], indent=2, ensure_ascii=False
        )

    async def import_json(self, text: str) -> list[CalendarItem]:
        """Replace the calendar with the items in ``text``."""
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError):
            data = None
        if not isinstance(data, list) or not data:
            raise CalendarError("Import file is invalid or empty.")
        try:
            items = [CalendarItem.model_validate(entry) for entry in data]
        except ValidationError as exc:
            raise CalendarError("Import file contains invalid calendar items.") from exc
        await self.save_items(items)
        logger.info("Imported %s calendar items", len(items))
        return items

    async def stats(self) -> dict[str, int]:
        items = await self.load_items()
        return {
            "total": len(items),
            "instagram": sum(1 for item in items if item.channel == "instagram"),
            "facebook": sum(1 for item in items if item.channel == "facebook"),
            "posted": sum(1 for item in items if item.status == "posted"),
        }

    # Settings --------------------------------------------------------------
    async def load_settings(self) -> DashboardSettings:
        data = await get_json(self.store, self._key(STORAGE_SETTINGS_KEY))
        if not isinstance(data, dict):
            return DashboardSettings()
        try:
            return DashboardSettings.model_validate(data)
        except ValidationError as exc:
            logger.warning("Ignoring malformed dashboard settings: %s", exc.errors())
            return DashboardSettings()

    async def save_settings(self, settings: DashboardSettings) -> DashboardSettings:
        await set_json(
            self.store,
            self._key(STORAGE_SETTINGS_KEY),
            settings.model_dump(by_alias=True, mode="json"),
        )
        return settings
