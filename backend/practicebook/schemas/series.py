# backend/practicebook/schemas/series.py
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import Field, field_validator

from ..services.series_service import SeriesCreateOutcome, SeriesEndOutcome
from .base import ResponseModel, StrictRequestModel
from .booking import BookingResponse


def _require_naive(value: Optional[datetime], field_name: str) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        raise ValueError(f"{field_name} is a local wall-clock time and must not carry an offset")
    return value


class SeriesCreateRequest(StrictRequestModel):
    client_id: str = Field(..., min_length=1)
    timezone: str = Field(..., min_length=1, max_length=64, examples=["Europe/Madrid"])
    dtstart_local: datetime = Field(..., description="First local start, e.g. 2025-03-03T10:00:00")
    duration_minutes: int = Field(..., gt=0, le=720)
    interval_weeks: Literal[1, 2] = 1
    by_weekday: Optional[int] = Field(None, ge=0, le=6, description="0 = Monday ... 6 = Sunday")
    mode: Literal["online", "in_person"] = "online"
    location_text: Optional[str] = Field(None, max_length=500)
    until_local: Optional[datetime] = None
    amount: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    payment_email_lead_hours: Optional[Literal[24, -1]] = None
    initial_occurrences: int = Field(2, ge=1, le=8)

    @field_validator("dtstart_local")
    @classmethod
    def _naive_start(cls, v: datetime) -> datetime:
        return _require_naive(v, "dtstart_local")

    @field_validator("until_local")
    @classmethod
    def _naive_until(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _require_naive(v, "until_local")


class SeriesEndRequest(StrictRequestModel):
    until_local: Optional[datetime] = None
    cancel_future: bool = False

    @field_validator("until_local")
    @classmethod
    def _naive_until(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _require_naive(v, "until_local")


class SeriesResponse(ResponseModel):
    id: str
    owner_id: str
    client_id: str
    timezone: str
    dtstart_local: datetime
    duration_minutes: int
    interval_weeks: int
    by_weekday: int
    status: str
    until_local: Optional[datetime] = None
    master_event_id: Optional[str] = None
    excluded_dates: List[str] = Field(default_factory=list)
    standalone_overrides: Dict[str, str] = Field(default_factory=dict)


class SeriesCreateResponse(ResponseModel):
    series: SeriesResponse
    bookings: List[BookingResponse]
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: SeriesCreateOutcome) -> "SeriesCreateResponse":
        return cls(
            series=SeriesResponse.model_validate(outcome.series),
            bookings=[BookingResponse.model_validate(b) for b in outcome.bookings],
            warnings=list(outcome.warnings),
        )


class SeriesEndResponse(ResponseModel):
    series: SeriesResponse
    already_ended: bool
    canceled_booking_ids: List[str]
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: SeriesEndOutcome) -> "SeriesEndResponse":
        return cls(
            series=SeriesResponse.model_validate(outcome.series),
            already_ended=outcome.already_ended,
            canceled_booking_ids=list(outcome.canceled_booking_ids),
            warnings=list(outcome.warnings),
        )
