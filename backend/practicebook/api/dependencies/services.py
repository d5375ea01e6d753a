# backend/practicebook/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets services bound to its own database session. Tests swap
``get_booking_orchestrator`` through ``app.dependency_overrides`` to inject
fake calendar and payment adapters.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_orchestrator import BookingOrchestrator
from ...services.orchestration import build_booking_orchestrator
from ...services.payment_confirmation_service import PaymentConfirmationService
from ...services.series_service import SeriesService
from ...services.stripe_service import StripePaymentService
from .database import get_db


def get_booking_orchestrator(db: Session = Depends(get_db)) -> BookingOrchestrator:
    return build_booking_orchestrator(db)


def get_payment_service(db: Session = Depends(get_db)) -> StripePaymentService:
    return StripePaymentService(db)


def get_series_service(
    db: Session = Depends(get_db),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> SeriesService:
    return SeriesService(db, orchestrator)


def get_payment_confirmation_service(
    db: Session = Depends(get_db),
    orchestrator: BookingOrchestrator = Depends(get_booking_orchestrator),
) -> PaymentConfirmationService:
    return PaymentConfirmationService(db, orchestrator)
