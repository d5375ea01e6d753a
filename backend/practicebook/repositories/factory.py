# backend/practicebook/repositories/factory.py
"""
Repository Factory

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .bill_repository import BillRepository
    from .booking_repository import BookingRepository
    from .booking_series_repository import BookingSeriesRepository
    from .calendar_event_repository import CalendarEventRepository
    from .client_repository import (
        BillingSettingsRepository,
        CalendarCredentialRepository,
        ClientRepository,
    )
    from .payment_session_repository import PaymentSessionRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_booking_series_repository(db: Session) -> "BookingSeriesRepository":
        from .booking_series_repository import BookingSeriesRepository

        return BookingSeriesRepository(db)

    @staticmethod
    def create_bill_repository(db: Session) -> "BillRepository":
        from .bill_repository import BillRepository

        return BillRepository(db)

    @staticmethod
    def create_calendar_event_repository(db: Session) -> "CalendarEventRepository":
        from .calendar_event_repository import CalendarEventRepository

        return CalendarEventRepository(db)

    @staticmethod
    def create_payment_session_repository(db: Session) -> "PaymentSessionRepository":
        from .payment_session_repository import PaymentSessionRepository

        return PaymentSessionRepository(db)

    @staticmethod
    def create_client_repository(db: Session) -> "ClientRepository":
        from .client_repository import ClientRepository

        return ClientRepository(db)

    @staticmethod
    def create_billing_settings_repository(db: Session) -> "BillingSettingsRepository":
        from .client_repository import BillingSettingsRepository

        return BillingSettingsRepository(db)

    @staticmethod
    def create_calendar_credential_repository(db: Session) -> "CalendarCredentialRepository":
        from .client_repository import CalendarCredentialRepository

        return CalendarCredentialRepository(db)
