"""Content calendar endpoints."""

from __future__ import annotations

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from resellio.api_v1.schemas import (
    CalendarListResponse,
    CalendarStatsResponse,
    ImportResponse,
    PostingTipResponse,
    ScheduleRequest,
    ScheduleResponse,
    StatusUpdateRequest,
)
from resellio.core.dependencies import get_calendar_service
from resellio.core.models import CalendarItem, DayPart
from resellio.core.services.calendar_service import (
    CalendarError,
    CalendarItemNotFound,
    CalendarService,
    ScheduledProduct,
    posting_tip,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["calendar"])

CalendarServiceDep = Annotated[CalendarService, Depends(get_calendar_service)]


def _bad_request(exc: CalendarError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _not_found(item_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND, detail=f"Calendar item {item_id} not found"
    )


@router.get("", response_model=CalendarListResponse)
async def list_items(
    calendar: CalendarServiceDep,
    channel: Annotated[Literal["all", "instagram", "facebook"], Query()] = "all",
    search: Annotated[str, Query()] = "",
) -> dict:
    return {"items": await calendar.list_items(channel=channel, search=search)}


@router.post("", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def schedule_post(payload: ScheduleRequest, calendar: CalendarServiceDep) -> dict:
    """
    Add a scheduled post and forward it to the configured automation webhook.

    ``relay`` reports whether the webhook accepted it; the calendar entry is
    stored regardless.
    """
    product = ScheduledProduct(
        title=payload.product_title,
        image=payload.product_image,
        url=payload.product_url,
        source=payload.product_source,
    )
    try:
        result = await calendar.schedule_post(
            caption=payload.caption,
            date=payload.date,
            time=payload.time,
            channel=payload.channel,
            product=product,
        )
    except CalendarError as exc:
        raise _bad_request(exc) from exc
    return {"item": result.item, "relay": result.relay}


@router.get("/export")
async def export_items(calendar: CalendarServiceDep) -> Response:
    content = await calendar.export_json()
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="resellio-calendar.json"'},
    )


@router.post("/import", response_model=ImportResponse)
async def import_items(request: Request, calendar: CalendarServiceDep) -> dict:
    """Replace the calendar with a previously exported JSON file (raw request body)."""
    raw = await request.body()
    try:
        items = await calendar.import_json(raw.decode("utf-8", errors="replace"))
    except CalendarError as exc:
        raise _bad_request(exc) from exc
    return {"imported": len(items), "items": items}


@router.get("/stats", response_model=CalendarStatsResponse)
async def calendar_stats(calendar: CalendarServiceDep) -> dict:
    return await calendar.stats()


@router.get("/tips", response_model=PostingTipResponse)
async def calendar_tip(
    channel: Annotated[Literal["instagram", "facebook"], Query()] = "instagram",
    day_part: Annotated[DayPart, Query()] = "malam",
) -> dict:
    tip = posting_tip(channel, day_part)
    if tip is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No tip available")
    return {"channel": channel, "day_part": day_part, "tip": tip}


@router.patch("/{item_id}", response_model=CalendarItem)
async def update_item_status(
    item_id: str, payload: StatusUpdateRequest, calendar: CalendarServiceDep
) -> CalendarItem:
    try:
        return await calendar.update_status(item_id, payload.status)
    except CalendarItemNotFound as exc:
        raise _not_found(item_id) from exc
    except CalendarError as exc:
        raise _bad_request(exc) from exc


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(item_id: str, calendar: CalendarServiceDep) -> Response:
    if not await calendar.delete_item(item_id):
        raise _not_found(item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{item_id}/duplicate", response_model=CalendarItem, status_code=status.HTTP_201_CREATED
)
async def duplicate_item(item_id: str, calendar: CalendarServiceDep) -> CalendarItem:
    """Copy an item to the same time tomorrow as a draft."""
    try:
        return await calendar.duplicate_tomorrow(item_id)
    except CalendarItemNotFound as exc:
        raise _not_found(item_id) from exc
