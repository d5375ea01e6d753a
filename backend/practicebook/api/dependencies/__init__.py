# backend/practicebook/api/dependencies/__init__.py
"""
Central export point for route dependencies.
"""

from .auth import get_current_owner_id
from .database import get_db
from .services import (
    get_booking_orchestrator,
    get_payment_confirmation_service,
    get_payment_service,
    get_series_service,
)

__all__ = [
    "get_current_owner_id",
    "get_db",
    "get_booking_orchestrator",
    "get_payment_confirmation_service",
    "get_payment_service",
    "get_series_service",
]
