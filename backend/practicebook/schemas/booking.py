# backend/practicebook/schemas/booking.py
"""
Booking request/response schemas.

Timestamps are accepted as ISO-8601 with an offset. Missing or naive times
are rejected by the orchestrator rather than here, so every time error comes
back with the same validation envelope.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from ..models.bill import Bill
from ..services.booking_orchestrator import CancelOutcome, CreateOutcome, RescheduleOutcome
from .base import ResponseModel, StrictRequestModel


class BookingCreateRequest(StrictRequestModel):
    client_id: str = Field(..., min_length=1, description="Client being booked")
    start_time: Optional[datetime] = Field(None, description="Start, ISO-8601 with offset")
    end_time: Optional[datetime] = Field(None, description="End, ISO-8601 with offset")
    amount: Optional[Decimal] = Field(
        None, ge=0, max_digits=10, decimal_places=2, description="Overrides billing settings"
    )
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_email_lead_hours: Optional[Literal[24, -1]] = None
    first_consultation: bool = False
    series_id: Optional[str] = None
    occurrence_index: Optional[int] = Field(None, ge=0)
    suppress_calendar: bool = False
    suppress_notification: bool = False
    mode: Literal["online", "in_person"] = "online"
    location_text: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class BookingCancelRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=500, description="Cancellation reason")

    @field_validator("reason")
    @classmethod
    def clean_reason(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        return v or None


class BookingRescheduleRequest(StrictRequestModel):
    start_time: Optional[datetime] = Field(None, description="New start, ISO-8601 with offset")
    end_time: Optional[datetime] = Field(None, description="New end, ISO-8601 with offset")


class BillResponse(ResponseModel):
    id: str
    amount: Decimal
    currency: str
    status: str
    email_scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    refund_id: Optional[str] = None


class BookingResponse(ResponseModel):
    id: str
    owner_id: str
    client_id: str
    start_time: datetime
    end_time: datetime
    status: str
    series_id: Optional[str] = None
    occurrence_index: Optional[int] = None
    standalone_event_id: Optional[str] = None
    mode: str
    location_text: Optional[str] = None
    cancelled_at: Optional[datetime] = None


class BookingCreateResponse(ResponseModel):
    booking: BookingResponse
    bill: Optional[BillResponse] = None
    requires_payment: bool
    payment_url: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: CreateOutcome) -> "BookingCreateResponse":
        return cls(
            booking=BookingResponse.model_validate(outcome.booking),
            bill=_bill(outcome.bill),
            requires_payment=outcome.requires_payment,
            payment_url=outcome.payment_url,
            warnings=list(outcome.warnings),
        )


class BookingCancelResponse(ResponseModel):
    booking: BookingResponse
    already_canceled: bool
    will_refund: bool
    was_reservation: bool
    refund_id: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: CancelOutcome) -> "BookingCancelResponse":
        return cls(
            booking=BookingResponse.model_validate(outcome.booking),
            already_canceled=outcome.already_canceled,
            will_refund=outcome.will_refund,
            was_reservation=outcome.was_reservation,
            refund_id=outcome.refund_id,
            warnings=list(outcome.warnings),
        )


class BookingRescheduleResponse(ResponseModel):
    booking: BookingResponse
    calendar_synced: bool
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: RescheduleOutcome) -> "BookingRescheduleResponse":
        return cls(
            booking=BookingResponse.model_validate(outcome.booking),
            calendar_synced=outcome.calendar_synced,
            warnings=list(outcome.warnings),
        )


def _bill(bill: Optional[Bill]) -> Optional[BillResponse]:
    return BillResponse.model_validate(bill) if bill is not None else None
