"""Product grabber endpoint."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from resellio.api_v1.schemas import ErrorResponse, GrabRequest, ProductResponse
from resellio.core.dependencies import get_product_grabber
from resellio.core.rate_limit import limiter, scrape_rate_limit
from resellio.core.services.product_grabber import ProductGrabber, ProductUrlError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["grab"])


@router.post(
    "/grab",
    response_model=ProductResponse,
    responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}},
)
@limiter.limit(scrape_rate_limit)
async def grab_product(
    request: Request,
    payload: GrabRequest,
    grabber: Annotated[ProductGrabber, Depends(get_product_grabber)],
):
    """
    Scrape title, image and price from a marketplace product page.

    Upstream failures never surface here: the response then carries
    placeholder data for the same URL.
    """
    try:
        product = await grabber.grab(payload.url)
    except ProductUrlError as exc:
        logger.info("Rejected product URL: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(exc)},
        )
    return product.to_dict()
