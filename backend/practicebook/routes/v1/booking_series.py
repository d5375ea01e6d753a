# backend/practicebook/routes/v1/booking_series.py
"""
Recurring series routes - API v1

Endpoints:
    POST / - Create a series, its recurring calendar event and first occurrences
    POST /{series_id}/end - End a series, optionally canceling future bookings
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.params import Path

from ...api.dependencies import get_current_owner_id, get_series_service
from ...core.exceptions import DomainException
from ...models.booking import BookingMode
from ...schemas.series import (
    SeriesCreateRequest,
    SeriesCreateResponse,
    SeriesEndRequest,
    SeriesEndResponse,
)
from ...services.series_service import CreateSeriesRequest, SeriesService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["series-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("", response_model=SeriesCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_series(
    payload: SeriesCreateRequest = Body(...),
    owner_id: str = Depends(get_current_owner_id),
    series_service: SeriesService = Depends(get_series_service),
) -> SeriesCreateResponse:
    request = CreateSeriesRequest(
        owner_id=owner_id,
        client_id=payload.client_id,
        timezone=payload.timezone,
        dtstart_local=payload.dtstart_local,
        duration_minutes=payload.duration_minutes,
        interval_weeks=payload.interval_weeks,
        by_weekday=payload.by_weekday,
        mode=BookingMode(payload.mode),
        location_text=payload.location_text,
        until_local=payload.until_local,
        amount=payload.amount,
        payment_email_lead_hours=payload.payment_email_lead_hours,
        initial_occurrences=payload.initial_occurrences,
    )
    try:
        outcome = await asyncio.to_thread(series_service.create_series, request)
        return SeriesCreateResponse.from_outcome(outcome)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{series_id}/end", response_model=SeriesEndResponse)
async def end_series(
    series_id: str = Path(..., description="Series ULID", pattern=ULID_PATH_PATTERN),
    payload: Optional[SeriesEndRequest] = Body(None),
    owner_id: str = Depends(get_current_owner_id),
    series_service: SeriesService = Depends(get_series_service),
) -> SeriesEndResponse:
    payload = payload or SeriesEndRequest()
    try:
        outcome = await asyncio.to_thread(
            series_service.end_series,
            series_id,
            owner_id,
            payload.until_local,
            payload.cancel_future,
        )
        return SeriesEndResponse.from_outcome(outcome)
    except DomainException as e:
        handle_domain_exception(e)
