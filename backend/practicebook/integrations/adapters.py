"""
Contracts for the external systems the booking orchestrator coordinates.

Adapter calls never raise across the orchestration boundary; they return an
``AdapterResult`` so each call site decides explicitly whether a failure is
fatal or only degrades the outcome.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Generic, Iterable, List, Optional, Protocol, TypeVar

from ..domain.recurrence import RecurrenceRule

T = TypeVar("T")


@dataclass(frozen=True)
class AdapterResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "AdapterResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "AdapterResult[T]":
        return cls(ok=False, error=error)


class EventKind(str, Enum):
    PLACEHOLDER = "placeholder"  # slot hold, no guests, no notifications
    FULL = "full"  # invitation with guests
    STANDALONE = "standalone"  # replaces one moved series occurrence


@dataclass(frozen=True)
class EventDetails:
    summary: str
    description: str = ""
    location: Optional[str] = None
    online: bool = True
    booking_id: Optional[str] = None
    series_id: Optional[str] = None
    attendees: List[str] = field(default_factory=list)


class CalendarAdapter(Protocol):
    def create_event(
        self, kind: EventKind, start_utc: datetime, end_utc: datetime, details: EventDetails
    ) -> AdapterResult[str]:
        ...

    def cancel_event(self, event_id: str) -> AdapterResult[None]:
        ...

    def delete_event(self, event_id: str) -> AdapterResult[None]:
        ...

    def reschedule_event(
        self, event_id: str, start_utc: datetime, end_utc: datetime
    ) -> AdapterResult[None]:
        ...

    def patch_recurrence_exclusions(
        self,
        master_event_id: str,
        excluded_local_dates: Iterable[str],
        rule: RecurrenceRule,
        until_local: Optional[datetime] = None,
    ) -> AdapterResult[None]:
        ...

    def find_materialized_instance(
        self,
        master_event_id: str,
        approximate_start_utc: datetime,
        tolerance: timedelta,
        search_window: timedelta,
    ) -> AdapterResult[Optional[str]]:
        ...

    def create_recurring_event(
        self,
        rule: RecurrenceRule,
        details: EventDetails,
        excluded_local_dates: Iterable[str] = (),
        until_local: Optional[datetime] = None,
    ) -> AdapterResult[str]:
        ...


class PaymentAdapter(Protocol):
    def create_session(
        self,
        booking_id: str,
        amount: Decimal,
        currency: str,
        payer_email: Optional[str],
        bill_id: Optional[str] = None,
    ) -> AdapterResult[str]:
        ...

    def cancel_sessions_for_booking(self, booking_id: str) -> AdapterResult[None]:
        ...

    def refund(self, booking_id: str, reason: str) -> AdapterResult[str]:
        ...


class NotificationAdapter(Protocol):
    def send_payment_request(
        self,
        to_email: str,
        client_name: str,
        amount: Decimal,
        currency: str,
        start_utc: datetime,
        payment_url: str,
    ) -> AdapterResult[str]:
        ...

    def send_cancellation(
        self,
        to_email: str,
        client_name: str,
        start_utc: datetime,
        refunded: bool,
    ) -> AdapterResult[str]:
        ...
