# backend/practicebook/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingOrchestrator.

Endpoints:
    POST / - Create a booking (reservation when payment is required)
    POST /{booking_id}/cancel - Cancel a booking, refunding a captured payment
    POST /{booking_id}/reschedule - Move a booking to a new time
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.params import Path

from ...api.dependencies import get_booking_orchestrator, get_current_owner_id
from ...core.exceptions import DomainException
from ...models.booking import BookingMode
from ...schemas.booking import (
    BookingCancelRequest,
    BookingCancelResponse,
    BookingCreateRequest,
    BookingCreateResponse,
    BookingRescheduleRequest,
    BookingRescheduleResponse,
)
from ...services.booking_orchestrator import BookingOrchestrator, CreateBookingRequest

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post(
    "",
    response_model=BookingCreateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid times or series linkage"},
        404: {"description": "Client or series not found"},
        409: {"description": "Series occurrence already booked"},
    },
)
async def create_booking(
    payload: BookingCreateRequest = Body(...),
    owner_id: str = Depends(get_current_owner_id),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> BookingCreateResponse:
    """Create a booking; paid bookings start as a reservation awaiting payment."""
    request = CreateBookingRequest(
        owner_id=owner_id,
        client_id=payload.client_id,
        start_utc=payload.start_time,
        end_utc=payload.end_time,
        amount=payload.amount,
        currency=payload.currency,
        payment_email_lead_hours=payload.payment_email_lead_hours,
        first_consultation=payload.first_consultation,
        series_id=payload.series_id,
        occurrence_index=payload.occurrence_index,
        suppress_calendar=payload.suppress_calendar,
        suppress_notification=payload.suppress_notification,
        mode=BookingMode(payload.mode),
        location_text=payload.location_text,
        notes=payload.notes,
    )
    try:
        outcome = await asyncio.to_thread(orchestrator.create_booking, request)
        return BookingCreateResponse.from_outcome(outcome)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/cancel",
    response_model=BookingCancelResponse,
    responses={
        403: {"description": "Booking belongs to another practitioner"},
        404: {"description": "Booking not found"},
        502: {"description": "Refund failed; booking left unchanged"},
    },
)
async def cancel_booking(
    booking_id: str = Path(
        ...,
        description="Booking ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    ),
    cancel_data: Optional[BookingCancelRequest] = Body(None),
    owner_id: str = Depends(get_current_owner_id),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> BookingCancelResponse:
    """Cancel a booking. Canceling an already canceled booking is a no-op."""
    reason = cancel_data.reason if cancel_data is not None else None
    try:
        outcome = await asyncio.to_thread(
            orchestrator.cancel_booking, booking_id, owner_id, reason
        )
        return BookingCancelResponse.from_outcome(outcome)
    except DomainException as e:
        if e.status_code >= 500:
            logger.error(f"Cancellation of booking {booking_id} failed: {e.message}")
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/reschedule",
    response_model=BookingRescheduleResponse,
    responses={
        400: {"description": "Missing or malformed times"},
        404: {"description": "Booking not found"},
        422: {"description": "Booking can no longer be rescheduled"},
    },
)
async def reschedule_booking(
    booking_id: str = Path(
        ...,
        description="Booking ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    ),
    payload: BookingRescheduleRequest = Body(...),
    owner_id: str = Depends(get_current_owner_id),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> BookingRescheduleResponse:
    """
    Move a booking. The booking row always takes the new time; calendar
    problems come back as warnings with ``calendar_synced`` false.
    """
    try:
        outcome = await asyncio.to_thread(
            orchestrator.reschedule_booking,
            booking_id,
            owner_id,
            payload.start_time,
            payload.end_time,
        )
        return BookingRescheduleResponse.from_outcome(outcome)
    except DomainException as e:
        handle_domain_exception(e)
