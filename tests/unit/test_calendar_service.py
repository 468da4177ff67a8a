from __future__ import annotations

import json

import httpx
import pytest

from resellio.core.models import CalendarItem, DashboardSettings, validate_webhook_url
from resellio.core.services import calendar_service
from resellio.core.services.calendar_service import (
    STORAGE_CALENDAR_KEY,
    STORAGE_SETTINGS_KEY,
    CalendarError,
    CalendarItemNotFound,
    CalendarService,
    ScheduledProduct,
    posting_tip,
)

pytestmark = pytest.mark.unit

SESSION = "calendar-session-0123456789"


class DummyResponse:
    def __init__(self, status_code: int, text: str = ""):
        self.status_code = status_code
        self.text = text


class DummyClient:
    posted: list[tuple[str, dict]] = []

    def __init__(self, *, response: DummyResponse | None = None, error: Exception | None = None):
        self._response = response
        self._error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def post(self, url: str, json: dict):
        DummyClient.posted.append((url, json))
        if self._error is not None:
            raise self._error
        return self._response


def _patch_client(monkeypatch, **kwargs) -> None:
    DummyClient.posted = []
    monkeypatch.setattr(
        calendar_service.httpx, "AsyncClient", lambda *args, **kw: DummyClient(**kwargs)
    )


@pytest.fixture
def calendar(kv_store) -> CalendarService:
    return CalendarService(store=kv_store, session_id=SESSION)


def _item(date: str, time: str, **kwargs) -> CalendarItem:
    return CalendarItem(date=date, time=time, caption=kwargs.pop("caption", "Promo"), **kwargs)


@pytest.mark.asyncio
async def test_add_item_keeps_calendar_sorted(calendar):
    await calendar.add_item(_item("2024-05-02", "09:00"))
    await calendar.add_item(_item("2024-05-01", "19:00"))
    await calendar.add_item(_item("2024-05-01", "08:00"))

    items = await calendar.load_items()

    assert [(i.date, i.time) for i in items] == [
        ("2024-05-01", "08:00"),
        ("2024-05-01", "19:00"),
        ("2024-05-02", "09:00"),
    ]


@pytest.mark.asyncio
async def test_list_items_filters_by_channel_and_search(calendar):
    await calendar.add_item(_item("2024-05-01", "08:00", caption="Kaos promo", channel="instagram"))
    await calendar.add_item(
        _item("2024-05-01", "09:00", caption="Diskon", channel="facebook", product_title="Tumbler")
    )

    assert len(await calendar.list_items()) == 2
    assert [i.caption for i in await calendar.list_items(channel="facebook")] == ["Diskon"]
    assert [i.caption for i in await calendar.list_items(search="TUMBLER")] == ["Diskon"]
    assert await calendar.list_items(channel="instagram", search="tumbler") == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"caption": "", "date": "2024-05-01", "time": "08:00"},
        {"caption": "Promo", "date": "", "time": "08:00"},
        {"caption": "Promo", "date": "2024-05-01", "time": ""},
        {"caption": "Promo", "date": "01/05/2024", "time": "08:00"},
        {"caption": "Promo", "date": "2024-02-30", "time": "08:00"},
        {"caption": "Promo", "date": "2023-02-29", "time": "08:00"},
        {"caption": "Promo", "date": "2024-05-01", "time": "25:99"},
        {"caption": "Promo", "date": "2024-05-01", "time": "24:00"},
    ],
)
async def test_schedule_post_validation(calendar, kwargs):
    with pytest.raises(CalendarError):
        await calendar.schedule_post(**kwargs)

    assert await calendar.load_items() == []


@pytest.mark.asyncio
async def test_schedule_post_without_webhook(calendar, monkeypatch):
    _patch_client(monkeypatch, response=DummyResponse(200))

    result = await calendar.schedule_post(
        caption="Promo hari ini",
        date="2024-05-01",
        time="19:00",
        channel="facebook",
        product=ScheduledProduct(title="Tumbler", image="https://cdn.example/t.jpg"),
    )

    assert result.relay == "not_configured"
    assert result.item.status == "scheduled"
    assert result.item.product_title == "Tumbler"
    assert DummyClient.posted == []
    assert await calendar.load_items() == [result.item]


@pytest.mark.asyncio
async def test_schedule_post_relays_to_webhook(calendar, monkeypatch):
    await calendar.save_settings(DashboardSettings(webhook_url="https://hooks.example/publish"))
    _patch_client(monkeypatch, response=DummyResponse(200))

    result = await calendar.schedule_post(
        caption="Promo",
        date="2024-05-01",
        time="19:00",
        product=ScheduledProduct(title="Kaos", url="https://shopee.co.id/kaos", source="Shopee"),
    )

    assert result.relay == "sent"
    url, payload = DummyClient.posted[0]
    assert url == "https://hooks.example/publish"
    assert payload == {
        "caption": "Promo",
        "channel": "instagram",
        "scheduleAt": "2024-05-01T19:00",
        "image": None,
        "productTitle": "Kaos",
        "productUrl": "https://shopee.co.id/kaos",
        "source": "Shopee",
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "client_kwargs",
    [{"response": DummyResponse(500, "boom")}, {"error": httpx.ConnectError("refused")}],
)
async def test_schedule_post_keeps_item_when_relay_fails(calendar, monkeypatch, client_kwargs):
    await calendar.save_settings(DashboardSettings(webhook_url="https://hooks.example/publish"))
    _patch_client(monkeypatch, **client_kwargs)

    result = await calendar.schedule_post(caption="Promo", date="2024-05-01", time="19:00")

    assert result.relay == "failed"
    assert len(await calendar.load_items()) == 1


@pytest.mark.asyncio
async def test_update_status(calendar):
    item = await calendar.add_item(_item("2024-05-01", "08:00"))

    updated = await calendar.update_status(item.id, "posted")

    assert updated.status == "posted"
    assert (await calendar.load_items())[0].status == "posted"

    with pytest.raises(CalendarError):
        await calendar.update_status(item.id, "archived")
    with pytest.raises(CalendarItemNotFound):
        await calendar.update_status("missing", "posted")


@pytest.mark.asyncio
async def test_delete_item(calendar):
    item = await calendar.add_item(_item("2024-05-01", "08:00"))

    assert await calendar.delete_item(item.id) is True
    assert await calendar.delete_item(item.id) is False
    assert await calendar.load_items() == []


@pytest.mark.asyncio
async def test_duplicate_tomorrow_rolls_over_month(calendar):
    source = await calendar.add_item(
        _item("2024-01-31", "23:30", status="posted", product_title="Kaos")
    )

    clone = await calendar.duplicate_tomorrow(source.id)

    assert clone.id != source.id
    assert (clone.date, clone.time) == ("2024-02-01", "23:30")
    assert clone.status == "draft"
    assert clone.caption == source.caption
    assert clone.product_title == "Kaos"
    assert len(await calendar.load_items()) == 2

    with pytest.raises(CalendarItemNotFound):
        await calendar.duplicate_tomorrow("missing")


@pytest.mark.asyncio
async def test_export_import_round_trip(calendar, kv_store):
    await calendar.add_item(_item("2024-05-01", "08:00", product_title="Kaos"))
    exported = await calendar.export_json()

    assert json.loads(exported)[0]["productTitle"] == "Kaos"

    other = CalendarService(store=kv_store, session_id="other-session-0123456789")
    imported = await other.import_json(exported)

    assert imported == await calendar.load_items()
    assert await other.load_items() == imported


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[]",
        '{"items": []}',
        '[{"date": "2024-05-01"}]',
        '[{"date": "2024-02-30", "time": "08:00", "caption": "Promo"}]',
    ],
)
async def test_import_rejects_invalid_files(calendar, text):
    await calendar.add_item(_item("2024-05-01", "08:00"))

    with pytest.raises(CalendarError):
        await calendar.import_json(text)

    assert len(await calendar.load_items()) == 1


@pytest.mark.asyncio
async def test_corrupt_storage_degrades_to_defaults(calendar, kv_store):
    await kv_store.set(f"resellio:{SESSION}:{STORAGE_CALENDAR_KEY}", "{broken")
    await kv_store.set(f"resellio:{SESSION}:{STORAGE_SETTINGS_KEY}", '{"markup": "lots"}')

    assert await calendar.load_items() == []
    assert await calendar.load_settings() == DashboardSettings()


@pytest.mark.asyncio
async def test_malformed_items_are_skipped(calendar, kv_store):
    good = _item("2024-05-01", "08:00").model_dump(by_alias=True)
    await kv_store.set(
        f"resellio:{SESSION}:{STORAGE_CALENDAR_KEY}",
        json.dumps([good, {"caption": "no date"}, "junk"]),
    )

    items = await calendar.load_items()

    assert [item.id for item in items] == [good["id"]]


@pytest.mark.asyncio
async def test_stats(calendar):
    await calendar.add_item(_item("2024-05-01", "08:00", channel="instagram", status="posted"))
    await calendar.add_item(_item("2024-05-01", "09:00", channel="facebook"))
    await calendar.add_item(_item("2024-05-01", "10:00", channel="instagram"))

    assert await calendar.stats() == {"total": 3, "instagram": 2, "facebook": 1, "posted": 1}


@pytest.mark.asyncio
async def test_settings_round_trip_uses_camel_case(calendar, kv_store):
    saved = await calendar.save_settings(
        DashboardSettings(markup=30, platform_fee=7_000, day_part="pagi")
    )

    raw = json.loads(await kv_store.get(f"resellio:{SESSION}:{STORAGE_SETTINGS_KEY}"))
    assert raw["platformFee"] == 7_000
    assert raw["dayPart"] == "pagi"
    assert await calendar.load_settings() == saved


def test_posting_tip_lookup():
    assert posting_tip("instagram", "malam").startswith("19:00")
    assert posting_tip("tiktok", "malam") is None


@pytest.mark.parametrize(
    ("date", "time"),
    [("2024-02-30", "08:00"), ("2024-13-01", "08:00"), ("2024-05-01", "23:60")],
)
def test_calendar_item_rejects_impossible_date_or_time(date, time):
    with pytest.raises(ValueError):
        _item(date, time)


@pytest.mark.asyncio
async def test_leap_day_can_be_duplicated(calendar):
    result = await calendar.schedule_post(caption="Promo", date="2024-02-29", time="23:30")

    copy = await calendar.duplicate_tomorrow(result.item.id)

    assert (copy.date, copy.time) == ("2024-03-01", "23:30")


@pytest.mark.parametrize(
    "url",
    [
        "",
        "https://hooks.example/x",
        "http://n8n.example.com:5678/webhook/abc",
        "https://8.8.8.8/hook",
    ],
)
def test_validate_webhook_url_accepts_public_http_urls(url):
    assert validate_webhook_url(url) == url


@pytest.mark.parametrize(
    "url",
    [
        "ftp://hooks.example/x",
        "file:///etc/passwd",
        "gopher://hooks.example/x",
        "http://192.168.1.10/hook",
        "http://169.254.169.254/latest/meta-data/",
        "http://app.localhost/hook",
    ],
)
def test_validate_webhook_url_rejects_unsafe_targets(url):
    with pytest.raises(ValueError):
        validate_webhook_url(url)
