"""Relay result formatter endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from resellio.api_v1.schemas import RelayFormatterResponse
from resellio.core.services.relay_formatter import format_relay

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/relay", tags=["relay"])


@router.post("/format", response_model=RelayFormatterResponse)
async def format_relay_results(request: Request) -> dict:
    """
    Normalise publish-job reports from an automation relay.

    Accepts either a bare list of jobs or ``{"jobs": [...]}``. A body that is
    not JSON is treated as an empty job list.
    """
    try:
        body = await request.json()
    except ValueError:
        logger.warning("Relay formatter received a non-JSON body")
        body = None

    formatted = format_relay(body)
    logger.info(
        "Formatted relay results: ok=%s jobs=%s", formatted["ok"], len(formatted["results"])
    )
    return formatted
