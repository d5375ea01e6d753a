# backend/practicebook/tasks/billing_tasks.py
"""Celery tasks for payment-request emails."""

import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..services.bill_notification_service import BillNotificationService
from ..services.notification_service import NotificationService
from ..services.stripe_service import StripePaymentService
from .celery_app import typed_task

logger = logging.getLogger(__name__)


@typed_task(bind=True, max_retries=3, name="practicebook.tasks.billing_tasks.send_due_bills")
def send_due_bills(self: Any) -> Dict[str, int]:
    """
    Send payment-request emails for bills whose send time has arrived.

    Returns:
        Dict with picked/sent/failed counts
    """
    db: Session = SessionLocal()
    try:
        service = BillNotificationService(db, StripePaymentService(db), NotificationService(db))
        summary = service.send_due_bills()
        if summary.picked:
            logger.info(f"Due bills: {summary.sent} sent, {summary.failed} failed of {summary.picked}")
        return summary.to_dict()
    except Exception as exc:
        logger.error(f"Due bill job failed: {exc}")
        raise self.retry(exc=exc, countdown=120)
    finally:
        db.close()
