"""
Celery tasks package for Practicebook.

- Weekly series extension
- Due payment-request emails
- Completion sweep for past bookings
"""

from .billing_tasks import send_due_bills
from .booking_tasks import complete_past_bookings
from .celery_app import BaseTask, celery_app
from .series_tasks import extend_active_series, extend_series

__all__ = [
    "celery_app",
    "BaseTask",
    "extend_active_series",
    "extend_series",
    "send_due_bills",
    "complete_past_bookings",
]
