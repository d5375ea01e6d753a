# backend/practicebook/services/booking_orchestrator.py
"""
Booking Orchestrator

Drives booking creation, cancellation and reschedule while keeping three
systems of record aligned: the booking ledger (database), the practitioner's
calendar and the payment processor.

Failure policy per step:
- Booking insert on create: fatal, nothing else runs.
- Refund of a paid bill on cancel: fatal, the booking stays uncanceled and
  the paid bill untouched (a RefundFailedException surfaces as 502).
- Calendar, payment session and notification steps: degraded. They are
  logged, counted and returned as warnings, and never block the
  authoritative state change.

Series occurrences are handled through the exception overlay: a canceled or
moved occurrence adds its original local date to the series exclusions and
re-sends the full exclusion list to the master event, and a moved
occurrence gets a standalone override event.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    BusinessRuleException,
    ConflictException,
    ForbiddenException,
    IntegrityViolation,
    NotFoundException,
    OccurrenceConflictException,
    RefundFailedException,
    RepositoryException,
    ServiceException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, utc_now
from ..domain.recurrence import occurrence_at
from ..integrations.adapters import (
    CalendarAdapter,
    EventDetails,
    EventKind,
    NotificationAdapter,
    PaymentAdapter,
)
from ..models.bill import Bill, BillStatus
from ..models.booking import Booking, BookingMode, BookingStatus
from ..models.booking_series import BookingSeries
from ..models.calendar_event import CalendarEventType
from ..models.client import Client
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .billing_service import BillingService, ResolvedBilling, compute_email_scheduled_at
from .series_exception_store import SeriesExceptionStore

CalendarFactory = Callable[[str], CalendarAdapter]

# Errors raised by local bookkeeping around an external call
_STORAGE_ERRORS = (ServiceException, RepositoryException)


def payment_link(booking_id: str) -> str:
    """Stable link emailed to clients; resolves to a live checkout session on click."""
    return f"{settings.public_base_url}/api/v1/payments/{booking_id}"


@dataclass
class CreateBookingRequest:
    owner_id: str
    client_id: str
    start_utc: datetime
    end_utc: datetime
    # None resolves the price from billing settings
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    payment_email_lead_hours: Optional[int] = None
    first_consultation: bool = False
    series_id: Optional[str] = None
    occurrence_index: Optional[int] = None
    suppress_calendar: bool = False
    suppress_notification: bool = False
    mode: BookingMode = BookingMode.ONLINE
    location_text: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class CreateOutcome:
    booking: Booking
    bill: Optional[Bill]
    requires_payment: bool
    payment_url: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class CancelOutcome:
    booking: Booking
    already_canceled: bool
    will_refund: bool
    was_reservation: bool
    refund_id: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class RescheduleOutcome:
    booking: Booking
    calendar_synced: bool
    warnings: List[str] = field(default_factory=list)


class BookingOrchestrator(BaseService):
    """Booking state machine and cross-system reconciliation."""

    def __init__(
        self,
        db: Session,
        calendar_factory: CalendarFactory,
        payments: PaymentAdapter,
        notifications: NotificationAdapter,
        exception_store: Optional[SeriesExceptionStore] = None,
        billing_service: Optional[BillingService] = None,
    ):
        super().__init__(db)
        self.calendar_factory = calendar_factory
        self.payments = payments
        self.notifications = notifications
        self.exception_store = exception_store or SeriesExceptionStore(db)
        self.billing_service = billing_service or BillingService(db)

        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.series_repository = RepositoryFactory.create_booking_series_repository(db)
        self.bill_repository = RepositoryFactory.create_bill_repository(db)
        self.calendar_event_repository = RepositoryFactory.create_calendar_event_repository(db)
        self.client_repository = RepositoryFactory.create_client_repository(db)

        self._calendars: Dict[str, CalendarAdapter] = {}

    # ------------------------------------------------------------------ helpers

    def calendar_for(self, owner_id: str) -> CalendarAdapter:
        if owner_id not in self._calendars:
            self._calendars[owner_id] = self.calendar_factory(owner_id)
        return self._calendars[owner_id]

    def _warn(self, warnings: List[str], system: str, step: str, message: str) -> None:
        warnings.append(message)
        prometheus_metrics.record_side_effect_failure(system, step)
        self.logger.warning("[%s:%s] %s", system, step, message)

    def _set_status(self, booking: Booking, status: BookingStatus) -> None:
        previous = booking.status
        booking.status = status.value
        prometheus_metrics.record_booking_transition(previous or "new", status.value)

    @staticmethod
    def _require_aware(value: Optional[datetime], name: str) -> datetime:
        if value is None:
            raise ValidationException(f"{name} is required", code="MISSING_TIME")
        if not isinstance(value, datetime):
            raise ValidationException(f"{name} must be a timestamp", code="INVALID_TIME")
        if value.tzinfo is None:
            raise ValidationException(
                f"{name} must include a timezone offset", code="INVALID_TIME"
            )
        return ensure_utc(value)

    def _validate_range(self, start: Optional[datetime], end: Optional[datetime]) -> tuple:
        start_utc = self._require_aware(start, "start_time")
        end_utc = self._require_aware(end, "end_time")
        if start_utc >= end_utc:
            raise ValidationException(
                "Start time must be before end time", code="INVALID_TIME_RANGE"
            )
        return start_utc, end_utc

    def _load_owned_booking(self, booking_id: str, owner_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        if booking.owner_id != owner_id:
            raise ForbiddenException(
                "You do not have permission to modify this booking", code="BOOKING_FORBIDDEN"
            )
        return booking

    @staticmethod
    def _event_details(booking: Booking, client: Client) -> EventDetails:
        online = booking.mode != BookingMode.IN_PERSON.value
        return EventDetails(
            summary=f"Consultation with {client.name}",
            description=f"Booking {booking.id}",
            location=None if online else booking.location_text,
            online=online,
            booking_id=booking.id,
            series_id=booking.series_id,
            attendees=[client.email] if client.email else [],
        )

    # ------------------------------------------------------------------- create

    @BaseService.measure_operation("create_booking")
    def create_booking(self, request: CreateBookingRequest) -> CreateOutcome:
        start_utc, end_utc = self._validate_range(request.start_utc, request.end_utc)

        client = self.client_repository.get_for_owner(request.client_id, request.owner_id)
        if client is None:
            raise NotFoundException(f"Client {request.client_id} not found", code="CLIENT_NOT_FOUND")

        is_series = request.series_id is not None or request.occurrence_index is not None
        if is_series:
            self._validate_series_linkage(request)
        if request.mode == BookingMode.IN_PERSON and not request.location_text:
            raise ValidationException(
                "In-person bookings need a location", code="MISSING_LOCATION"
            )

        billing = self._resolve_billing(request)
        requires_payment = not billing.is_free and not is_series
        status = BookingStatus.PENDING if requires_payment else BookingStatus.SCHEDULED

        booking = self._insert_booking(request, start_utc, end_utc, status)
        warnings: List[str] = []

        if not request.suppress_calendar:
            self._create_initial_event(booking, client, requires_payment, warnings)

        bill = self._create_bill(booking, billing, is_series, warnings)

        payment_url = None
        if requires_payment:
            payment_url = self._request_payment(
                booking, client, bill, billing, request.suppress_notification, warnings
            )

        self.log_operation(
            "booking_created",
            booking_id=booking.id,
            status=booking.status,
            series_id=booking.series_id,
            occurrence_index=booking.occurrence_index,
            warning_count=len(warnings),
        )
        return CreateOutcome(
            booking=booking,
            bill=bill,
            requires_payment=requires_payment,
            payment_url=payment_url,
            warnings=warnings,
        )

    def _validate_series_linkage(self, request: CreateBookingRequest) -> BookingSeries:
        if request.series_id is None or request.occurrence_index is None:
            raise ValidationException(
                "Series bookings need both a series id and an occurrence index",
                code="INCOMPLETE_SERIES_LINK",
            )
        if request.occurrence_index < 0:
            raise ValidationException(
                "Occurrence index must be >= 0", code="INVALID_OCCURRENCE_INDEX"
            )
        series = self.series_repository.get_by_id(request.series_id)
        if series is None:
            raise NotFoundException(f"Series {request.series_id} not found", code="SERIES_NOT_FOUND")
        if series.owner_id != request.owner_id:
            raise ForbiddenException("Series belongs to another practitioner")
        if series.client_id != request.client_id:
            raise ValidationException("Series belongs to another client", code="SERIES_CLIENT_MISMATCH")
        if self.booking_repository.get_by_series_occurrence(series.id, request.occurrence_index):
            raise OccurrenceConflictException(series.id, request.occurrence_index)
        return series

    def _resolve_billing(self, request: CreateBookingRequest) -> ResolvedBilling:
        if request.amount is not None:
            if Decimal(request.amount) < 0:
                raise ValidationException("Amount cannot be negative", code="INVALID_AMOUNT")
            return ResolvedBilling(
                amount=Decimal(request.amount),
                currency=(request.currency or settings.default_currency).lower(),
                payment_email_lead_hours=request.payment_email_lead_hours,
            )
        return self.billing_service.resolve(
            request.owner_id,
            request.client_id,
            first_consultation=request.first_consultation or request.occurrence_index == 0,
        )

    def _insert_booking(
        self,
        request: CreateBookingRequest,
        start_utc: datetime,
        end_utc: datetime,
        status: BookingStatus,
    ) -> Booking:
        try:
            with self.transaction():
                booking = self.booking_repository.create(
                    owner_id=request.owner_id,
                    client_id=request.client_id,
                    start_time=start_utc,
                    end_time=end_utc,
                    status=status.value,
                    series_id=request.series_id,
                    occurrence_index=request.occurrence_index,
                    mode=BookingMode(request.mode).value,
                    location_text=request.location_text,
                    notes=request.notes,
                )
        except IntegrityViolation as exc:
            if request.series_id is not None:
                raise OccurrenceConflictException(request.series_id, request.occurrence_index)
            raise ConflictException(f"Booking could not be stored: {exc}")
        prometheus_metrics.record_booking_transition("new", status.value)
        return booking

    def _create_initial_event(
        self, booking: Booking, client: Client, placeholder: bool, warnings: List[str]
    ) -> None:
        kind = EventKind.PLACEHOLDER if placeholder else EventKind.FULL
        result = self.calendar_for(booking.owner_id).create_event(
            kind,
            ensure_utc(booking.start_time),
            ensure_utc(booking.end_time),
            self._event_details(booking, client),
        )
        if not result.ok:
            self._warn(warnings, "calendar", "create_event", f"Calendar not synced: {result.error}")
            return
        event_type = CalendarEventType.PENDING if placeholder else CalendarEventType.FULL
        try:
            with self.transaction():
                self.calendar_event_repository.record_active(booking.id, result.value, event_type)
        except _STORAGE_ERRORS as exc:
            self._warn(warnings, "calendar", "record_event", f"Calendar event not recorded: {exc}")

    def _create_bill(
        self,
        booking: Booking,
        billing: ResolvedBilling,
        is_series: bool,
        warnings: List[str],
    ) -> Optional[Bill]:
        now = utc_now()
        start_utc = ensure_utc(booking.start_time)
        end_utc = ensure_utc(booking.end_time)
        email_at: Optional[datetime] = None
        paid_at: Optional[datetime] = None

        if billing.is_free:
            status = BillStatus.PAID
            paid_at = now
        else:
            email_at = compute_email_scheduled_at(
                billing.payment_email_lead_hours, start_utc, end_utc, now
            )
            if is_series or email_at > now:
                status = BillStatus.SCHEDULED
            else:
                status = BillStatus.PENDING

        try:
            with self.transaction():
                return self.bill_repository.create(
                    booking_id=booking.id,
                    client_id=booking.client_id,
                    owner_id=booking.owner_id,
                    amount=billing.amount,
                    currency=billing.currency,
                    status=status.value,
                    email_scheduled_at=email_at,
                    paid_at=paid_at,
                )
        except _STORAGE_ERRORS as exc:
            self._warn(warnings, "billing", "create_bill", f"Bill could not be created: {exc}")
            return None

    def _request_payment(
        self,
        booking: Booking,
        client: Client,
        bill: Optional[Bill],
        billing: ResolvedBilling,
        suppress_notification: bool,
        warnings: List[str],
    ) -> Optional[str]:
        try:
            with self.transaction():
                session = self.payments.create_session(
                    booking.id,
                    billing.amount,
                    billing.currency,
                    client.email,
                    bill_id=bill.id if bill is not None else None,
                )
        except _STORAGE_ERRORS as exc:
            self._warn(warnings, "payment", "record_session", f"Payment session not stored: {exc}")
            return None
        if not session.ok:
            self._warn(warnings, "payment", "create_session", f"Payment link unavailable: {session.error}")
            return None

        email_due = bill is not None and bill.status == BillStatus.PENDING.value
        if suppress_notification or not email_due:
            return session.value

        sent = self.notifications.send_payment_request(
            client.email,
            client.name,
            billing.amount,
            billing.currency,
            ensure_utc(booking.start_time),
            payment_link(booking.id),
        )
        if not sent.ok:
            self._warn(warnings, "notification", "payment_request", f"Payment email not sent: {sent.error}")
            return session.value

        try:
            with self.transaction():
                bill.status = BillStatus.SENT.value
                bill.sent_at = utc_now()
        except _STORAGE_ERRORS as exc:
            self._warn(warnings, "billing", "mark_sent", f"Bill not marked as sent: {exc}")
        return session.value

    # ------------------------------------------------------------------- cancel

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self,
        booking_id: str,
        owner_id: str,
        reason: Optional[str] = None,
        sync_calendar: bool = True,
    ) -> CancelOutcome:
        booking = self._load_owned_booking(booking_id, owner_id)
        bills = self.bill_repository.list_for_booking(booking.id)
        paid_bill = next(
            (b for b in bills if b.status == BillStatus.PAID.value and Decimal(b.amount) > 0),
            None,
        )
        will_refund = paid_bill is not None

        if booking.status == BookingStatus.CANCELED.value:
            previous_refund = next((b.refund_id for b in bills if b.refund_id), None)
            return CancelOutcome(
                booking=booking,
                already_canceled=True,
                will_refund=will_refund,
                was_reservation=False,
                refund_id=previous_refund,
            )
        if booking.status == BookingStatus.COMPLETED.value:
            raise BusinessRuleException(
                "Completed bookings cannot be canceled", code="BOOKING_COMPLETED"
            )

        was_reservation = booking.status == BookingStatus.PENDING.value
        warnings: List[str] = []
        if sync_calendar:
            calendar = self.calendar_for(booking.owner_id)
            if booking.is_series_occurrence:
                self._cancel_series_occurrence_calendar(booking, calendar, warnings)
            else:
                self._cancel_booking_event(booking, calendar, warnings)

        refund_id = None
        if paid_bill is not None:
            refund = self.payments.refund(booking.id, reason or "booking_canceled")
            if not refund.ok:
                prometheus_metrics.record_refund("error")
                self.logger.error(
                    "Refund failed for booking %s, cancellation aborted: %s",
                    booking.id,
                    refund.error,
                )
                raise RefundFailedException(booking.id, refund.error)
            prometheus_metrics.record_refund("success")
            refund_id = refund.value
            with self.transaction():
                paid_bill.status = BillStatus.REFUNDED.value
                paid_bill.refund_id = refund_id
        elif not booking.is_series_occurrence:
            with self.transaction():
                sessions = self.payments.cancel_sessions_for_booking(booking.id)
            if not sessions.ok:
                self._warn(warnings, "payment", "cancel_sessions", f"Payment link still open: {sessions.error}")

        with self.transaction():
            if not will_refund or booking.is_series_occurrence:
                for bill in bills:
                    if bill.is_cancelable:
                        bill.status = BillStatus.CANCELED.value
            self._set_status(booking, BookingStatus.CANCELED)
            booking.cancelled_at = utc_now()

        self._notify_cancellation(booking, refunded=refund_id is not None)
        self.log_operation(
            "booking_canceled",
            booking_id=booking.id,
            refunded=refund_id is not None,
            warning_count=len(warnings),
        )
        return CancelOutcome(
            booking=booking,
            already_canceled=False,
            will_refund=will_refund,
            was_reservation=was_reservation,
            refund_id=refund_id,
            warnings=warnings,
        )

    def _exclude_occurrence(
        self,
        series: BookingSeries,
        occurrence_index: int,
        calendar: CalendarAdapter,
        warnings: List[str],
    ) -> None:
        """Add the occurrence's original local date to the exclusions and re-sync the master."""
        local_date = occurrence_at(series.rule, occurrence_index).local_date_iso
        try:
            excluded = self.exception_store.add_excluded_date(series.id, local_date)
        except _STORAGE_ERRORS as exc:
            self._warn(warnings, "calendar", "exclude_date", f"Exclusion not stored: {exc}")
            return
        if not series.master_event_id:
            return
        patched = calendar.patch_recurrence_exclusions(
            series.master_event_id, excluded, series.rule, series.until_local
        )
        if not patched.ok:
            self._warn(warnings, "calendar", "patch_master", f"Recurring event not updated: {patched.error}")

    def _cancel_series_occurrence_calendar(
        self, booking: Booking, calendar: CalendarAdapter, warnings: List[str]
    ) -> None:
        series = booking.series
        self._exclude_occurrence(series, booking.occurrence_index, calendar, warnings)

        override = self.exception_store.get_standalone_override(series.id, booking.occurrence_index)
        if override:
            result = calendar.cancel_event(override)
            if not result.ok:
                self._warn(warnings, "calendar", "cancel_override", f"Moved occurrence event not canceled: {result.error}")
                return
            active = self.calendar_event_repository.get_active_for_booking(booking.id)
            if active is not None and active.google_event_id == override:
                with self.transaction():
                    self.calendar_event_repository.mark_cancelled(active)
        elif not series.master_event_id:
            self._cancel_booking_event(booking, calendar, warnings)

    def _cancel_booking_event(
        self, booking: Booking, calendar: CalendarAdapter, warnings: List[str]
    ) -> None:
        active = self.calendar_event_repository.get_active_for_booking(booking.id)
        if active is None:
            return
        if booking.status == BookingStatus.PENDING.value:
            # Placeholder only: remove silently
            result = calendar.delete_event(active.google_event_id)
        else:
            result = calendar.cancel_event(active.google_event_id)
        if not result.ok:
            self._warn(warnings, "calendar", "cancel_event", f"Calendar event not canceled: {result.error}")
            return
        with self.transaction():
            self.calendar_event_repository.mark_cancelled(active)

    def _notify_cancellation(self, booking: Booking, refunded: bool) -> None:
        client = booking.client
        if client is None or not client.email:
            return
        result = self.notifications.send_cancellation(
            client.email, client.name, ensure_utc(booking.start_time), refunded
        )
        if not result.ok:
            prometheus_metrics.record_side_effect_failure("notification", "cancellation")
            self.logger.warning(
                "Cancellation email for booking %s not sent: %s", booking.id, result.error
            )

    # ------------------------------------------------------------------ confirm

    @BaseService.measure_operation("confirm_reservation")
    def confirm_reservation(self, booking_id: str) -> List[str]:
        """
        Promote a paid reservation to a scheduled booking.

        The placeholder hold on the calendar is removed silently and the full
        invitation is sent. Bookings that are not pending are left untouched.
        """
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        if booking.status != BookingStatus.PENDING.value:
            return []

        with self.transaction():
            self._set_status(booking, BookingStatus.SCHEDULED)

        warnings: List[str] = []
        calendar = self.calendar_for(booking.owner_id)
        active = self.calendar_event_repository.get_active_for_booking(booking.id)
        if active is not None and not active.is_placeholder:
            return warnings
        if active is not None:
            removed = calendar.delete_event(active.google_event_id)
            if removed.ok:
                with self.transaction():
                    self.calendar_event_repository.mark_cancelled(active)
            else:
                self._warn(warnings, "calendar", "delete_placeholder", f"Placeholder not removed: {removed.error}")
        self._create_initial_event(booking, booking.client, placeholder=False, warnings=warnings)

        self.log_operation("reservation_confirmed", booking_id=booking.id, warning_count=len(warnings))
        return warnings

    # --------------------------------------------------------------- reschedule

    @BaseService.measure_operation("reschedule_booking")
    def reschedule_booking(
        self,
        booking_id: str,
        owner_id: str,
        new_start: Optional[datetime],
        new_end: Optional[datetime],
    ) -> RescheduleOutcome:
        start_utc, end_utc = self._validate_range(new_start, new_end)
        booking = self._load_owned_booking(booking_id, owner_id)
        if BookingStatus(booking.status).is_terminal:
            raise BusinessRuleException(
                f"Cannot reschedule a {booking.status} booking", code="BOOKING_NOT_RESCHEDULABLE"
            )

        warnings: List[str] = []
        calendar = self.calendar_for(booking.owner_id)

        if booking.is_series_occurrence:
            override = self.exception_store.get_standalone_override(
                booking.series_id, booking.occurrence_index
            )
            if override:
                result = calendar.reschedule_event(override, start_utc, end_utc)
                if not result.ok:
                    self._warn(warnings, "calendar", "reschedule_override", f"Calendar not updated: {result.error}")
            else:
                self._move_occurrence_off_series(booking, calendar, start_utc, end_utc, warnings)
        else:
            active = self.calendar_event_repository.get_active_for_booking(booking.id)
            if active is not None:
                result = calendar.reschedule_event(active.google_event_id, start_utc, end_utc)
                if not result.ok:
                    self._warn(warnings, "calendar", "reschedule_event", f"Calendar not updated: {result.error}")

        # The booking row is the source of truth for the appointment time
        with self.transaction():
            booking.start_time = start_utc
            booking.end_time = end_utc

        self.log_operation(
            "booking_rescheduled",
            booking_id=booking.id,
            new_start=start_utc.isoformat(),
            warning_count=len(warnings),
        )
        return RescheduleOutcome(booking=booking, calendar_synced=not warnings, warnings=warnings)

    def _move_occurrence_off_series(
        self,
        booking: Booking,
        calendar: CalendarAdapter,
        start_utc: datetime,
        end_utc: datetime,
        warnings: List[str],
    ) -> None:
        series = booking.series
        index = booking.occurrence_index

        if series.master_event_id:
            self._delete_materialized_instance(booking, series, calendar, warnings)
        self._exclude_occurrence(series, index, calendar, warnings)

        active = self.calendar_event_repository.get_active_for_booking(booking.id)
        if not series.master_event_id and active is not None:
            moved = calendar.reschedule_event(active.google_event_id, start_utc, end_utc)
            if not moved.ok:
                self._warn(warnings, "calendar", "reschedule_event", f"Calendar not updated: {moved.error}")
                return
            self._record_override(booking, active.google_event_id, warnings, mirror=False)
            return

        created = calendar.create_event(
            EventKind.STANDALONE,
            start_utc,
            end_utc,
            self._event_details(booking, booking.client),
        )
        if not created.ok:
            self._warn(warnings, "calendar", "create_override", f"Moved occurrence has no calendar event: {created.error}")
            return
        self._record_override(booking, created.value, warnings, mirror=True)

    def _delete_materialized_instance(
        self,
        booking: Booking,
        series: BookingSeries,
        calendar: CalendarAdapter,
        warnings: List[str],
    ) -> None:
        # Best-effort: recurring instances are matched by start time, not by id.
        # The booking row may already carry a moved time from an earlier attempt.
        original_start = occurrence_at(series.rule, booking.occurrence_index).start_utc
        lookup = calendar.find_materialized_instance(
            series.master_event_id,
            original_start,
            timedelta(seconds=settings.calendar_instance_tolerance_seconds),
            timedelta(hours=settings.calendar_instance_search_hours),
        )
        if not lookup.ok:
            self._warn(warnings, "calendar", "find_instance", f"Original occurrence not located: {lookup.error}")
            return
        if not lookup.value:
            self.logger.info(
                "No materialized instance near %s for series %s; exclusion alone removes it",
                original_start,
                series.id,
            )
            return
        deleted = calendar.delete_event(lookup.value)
        if not deleted.ok:
            self._warn(warnings, "calendar", "delete_instance", f"Original occurrence not removed: {deleted.error}")

    def _record_override(
        self, booking: Booking, event_id: str, warnings: List[str], mirror: bool
    ) -> None:
        try:
            self.exception_store.record_standalone_override(
                booking.series_id, booking.occurrence_index, event_id
            )
            with self.transaction():
                booking.standalone_event_id = event_id
                if mirror:
                    self.calendar_event_repository.record_active(
                        booking.id, event_id, CalendarEventType.STANDALONE
                    )
        except _STORAGE_ERRORS as exc:
            self._warn(warnings, "calendar", "record_override", f"Override not recorded: {exc}")
