# backend/practicebook/services/orchestration.py
"""Production wiring of the booking orchestrator for routes and background tasks."""

from sqlalchemy.orm import Session

from .booking_orchestrator import BookingOrchestrator
from .calendar_connection_service import CalendarConnectionService
from .notification_service import NotificationService
from .stripe_service import StripePaymentService


def build_booking_orchestrator(db: Session) -> BookingOrchestrator:
    calendars = CalendarConnectionService(db)
    return BookingOrchestrator(
        db,
        calendar_factory=calendars.for_owner,
        payments=StripePaymentService(db),
        notifications=NotificationService(db),
    )
