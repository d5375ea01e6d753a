# backend/practicebook/models/__init__.py
"""
SQLAlchemy models.

Importing this package registers every table on ``Base.metadata``.
"""

from .bill import CANCELABLE_BILL_STATUSES, Bill, BillStatus
from .billing_settings import BillingSettings
from .booking import TERMINAL_BOOKING_STATUSES, Booking, BookingMode, BookingStatus
from .booking_series import BookingSeries, SeriesStatus
from .calendar_credential import CalendarCredential
from .calendar_event import CalendarEvent, CalendarEventStatus, CalendarEventType
from .client import Client
from .payment_session import PaymentSession, PaymentSessionStatus

__all__ = [
    "Bill",
    "BillStatus",
    "BillingSettings",
    "Booking",
    "BookingMode",
    "BookingSeries",
    "BookingStatus",
    "CANCELABLE_BILL_STATUSES",
    "CalendarCredential",
    "CalendarEvent",
    "CalendarEventStatus",
    "CalendarEventType",
    "Client",
    "PaymentSession",
    "PaymentSessionStatus",
    "SeriesStatus",
    "TERMINAL_BOOKING_STATUSES",
]
