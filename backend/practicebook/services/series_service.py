# backend/practicebook/services/series_service.py
"""
Recurring series setup and teardown.

Creating a series stores the rule, creates one recurring master event on the
practitioner's calendar and materializes the first occurrences through the
booking orchestrator. Later occurrences come from the extension scheduler.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import (
    ForbiddenException,
    NotFoundException,
    RefundFailedException,
    ValidationException,
)
from ..core.timezone_utils import utc_now
from ..domain.recurrence import RecurrenceRule, anchor_start, generate_occurrences
from ..integrations.adapters import EventDetails
from ..models.booking import Booking, BookingMode
from ..models.booking_series import BookingSeries, SeriesStatus
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_orchestrator import BookingOrchestrator, CreateBookingRequest

DEFAULT_INITIAL_OCCURRENCES = 2


@dataclass
class CreateSeriesRequest:
    owner_id: str
    client_id: str
    timezone: str
    dtstart_local: datetime
    duration_minutes: int
    interval_weeks: int = 1
    by_weekday: Optional[int] = None
    mode: BookingMode = BookingMode.ONLINE
    location_text: Optional[str] = None
    until_local: Optional[datetime] = None
    amount: Optional[Decimal] = None
    payment_email_lead_hours: Optional[int] = None
    initial_occurrences: int = DEFAULT_INITIAL_OCCURRENCES


@dataclass
class SeriesCreateOutcome:
    series: BookingSeries
    bookings: List[Booking]
    warnings: List[str] = field(default_factory=list)


@dataclass
class SeriesEndOutcome:
    series: BookingSeries
    canceled_booking_ids: List[str]
    already_ended: bool = False
    warnings: List[str] = field(default_factory=list)


class SeriesService(BaseService):
    def __init__(self, db: Session, orchestrator: BookingOrchestrator):
        super().__init__(db)
        self.orchestrator = orchestrator
        self.series_repository = RepositoryFactory.create_booking_series_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.client_repository = RepositoryFactory.create_client_repository(db)

    def _load_owned(self, series_id: str, owner_id: str) -> BookingSeries:
        series = self.series_repository.get_by_id(series_id)
        if series is None:
            raise NotFoundException(f"Series {series_id} not found", code="SERIES_NOT_FOUND")
        if series.owner_id != owner_id:
            raise ForbiddenException("You do not have permission to modify this series")
        return series

    @BaseService.measure_operation("create_series")
    def create_series(self, request: CreateSeriesRequest) -> SeriesCreateOutcome:
        rule = RecurrenceRule(
            dtstart_local=request.dtstart_local,
            timezone=request.timezone,
            duration_minutes=request.duration_minutes,
            interval_weeks=request.interval_weeks,
            by_weekday=request.by_weekday,
        )
        rule.validate()
        if request.initial_occurrences < 1:
            raise ValidationException("At least one occurrence must be created upfront")
        if request.mode == BookingMode.IN_PERSON and not request.location_text:
            raise ValidationException("In-person series need a location", code="MISSING_LOCATION")
        if request.until_local is not None and request.until_local < anchor_start(rule):
            raise ValidationException("Series ends before its first occurrence")

        client = self.client_repository.get_for_owner(request.client_id, request.owner_id)
        if client is None:
            raise NotFoundException(f"Client {request.client_id} not found", code="CLIENT_NOT_FOUND")

        with self.transaction():
            series = self.series_repository.create(
                owner_id=request.owner_id,
                client_id=request.client_id,
                timezone=rule.timezone,
                dtstart_local=rule.dtstart_local,
                duration_minutes=rule.duration_minutes,
                interval_weeks=rule.interval_weeks,
                by_weekday=rule.weekday,
                mode=BookingMode(request.mode).value,
                location_text=request.location_text,
                until_local=request.until_local,
                status=SeriesStatus.ACTIVE.value,
                excluded_dates=[],
                standalone_overrides={},
            )

        warnings: List[str] = []
        online = request.mode != BookingMode.IN_PERSON
        master = self.orchestrator.calendar_for(series.owner_id).create_recurring_event(
            rule,
            EventDetails(
                summary=f"Consultation with {client.name}",
                description=f"Recurring series {series.id}",
                location=None if online else request.location_text,
                online=online,
                series_id=series.id,
                attendees=[client.email] if client.email else [],
            ),
            until_local=request.until_local,
        )
        if master.ok:
            with self.transaction():
                series.master_event_id = master.value
        else:
            # Occurrences fall back to their own calendar events
            warnings.append(f"Recurring calendar event not created: {master.error}")
            self.logger.warning("Master event for series %s failed: %s", series.id, master.error)

        first = anchor_start(rule)
        occurrences = generate_occurrences(
            rule,
            first,
            first + rule.step * request.initial_occurrences,
            max_occurrences=request.initial_occurrences,
        )
        bookings: List[Booking] = []
        for occurrence in occurrences:
            if request.until_local is not None and occurrence.start_local > request.until_local:
                break
            outcome = self.orchestrator.create_booking(
                CreateBookingRequest(
                    owner_id=series.owner_id,
                    client_id=series.client_id,
                    start_utc=occurrence.start_utc,
                    end_utc=occurrence.end_utc,
                    amount=request.amount,
                    payment_email_lead_hours=request.payment_email_lead_hours,
                    first_consultation=occurrence.occurrence_index == 0,
                    series_id=series.id,
                    occurrence_index=occurrence.occurrence_index,
                    suppress_calendar=bool(series.master_event_id),
                    mode=request.mode,
                    location_text=request.location_text,
                )
            )
            bookings.append(outcome.booking)
            warnings.extend(outcome.warnings)

        self.log_operation(
            "series_created",
            series_id=series.id,
            booking_count=len(bookings),
            has_master=bool(series.master_event_id),
        )
        return SeriesCreateOutcome(series=series, bookings=bookings, warnings=warnings)

    @BaseService.measure_operation("end_series")
    def end_series(
        self,
        series_id: str,
        owner_id: str,
        until_local: Optional[datetime] = None,
        cancel_future: bool = False,
    ) -> SeriesEndOutcome:
        series = self._load_owned(series_id, owner_id)
        already_ended = series.status == SeriesStatus.ENDED.value
        if already_ended and not series.master_event_id:
            return SeriesEndOutcome(series=series, canceled_booking_ids=[], already_ended=True)

        warnings: List[str] = []
        calendar = self.orchestrator.calendar_for(series.owner_id)

        if not already_ended:
            with self.transaction():
                series.status = SeriesStatus.ENDED.value
                if until_local is not None:
                    series.until_local = until_local

        # Without a master, each occurrence owns its calendar event
        had_master = bool(series.master_event_id)
        if had_master:
            deleted = calendar.delete_event(series.master_event_id)
            if deleted.ok:
                with self.transaction():
                    series.master_event_id = None
            else:
                # Kept so a repeated end can remove it
                warnings.append(f"Recurring calendar event not removed: {deleted.error}")
            for index, event_id in sorted(series.override_map.items()):
                deleted = calendar.delete_event(event_id)
                if not deleted.ok:
                    warnings.append(f"Moved occurrence {index} not removed: {deleted.error}")

        canceled: List[str] = []
        if cancel_future and not already_ended:
            for booking in self.booking_repository.list_future_for_series(series.id, utc_now()):
                try:
                    outcome = self.orchestrator.cancel_booking(
                        booking.id, owner_id, reason="series_ended", sync_calendar=not had_master
                    )
                except RefundFailedException as exc:
                    warnings.append(f"Booking {booking.id} kept: {exc.message}")
                    continue
                canceled.append(booking.id)
                warnings.extend(outcome.warnings)

        self.log_operation(
            "series_ended", series_id=series.id, canceled_count=len(canceled)
        )
        return SeriesEndOutcome(
            series=series,
            canceled_booking_ids=canceled,
            already_ended=already_ended,
            warnings=warnings,
        )
