# backend/practicebook/tasks/booking_tasks.py
"""Celery tasks for the booking lifecycle."""

import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from ..core.timezone_utils import utc_now
from ..database import SessionLocal
from ..models.booking import BookingStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .celery_app import typed_task

logger = logging.getLogger(__name__)


def complete_ended_bookings(db: Session, batch_size: int = 500) -> int:
    """Mark ``scheduled`` bookings whose end time has passed as ``completed``."""
    booking_repo = RepositoryFactory.create_booking_repository(db)
    now = utc_now()
    bookings = booking_repo.list_scheduled_ended_before(now, limit=batch_size)
    if not bookings:
        return 0
    try:
        updated = booking_repo.mark_completed([b.id for b in bookings], now)
        db.commit()
    except Exception:
        db.rollback()
        raise
    for _ in range(updated):
        prometheus_metrics.record_booking_transition(
            BookingStatus.SCHEDULED.value, BookingStatus.COMPLETED.value
        )
    return updated


@typed_task(
    bind=True, max_retries=3, name="practicebook.tasks.booking_tasks.complete_past_bookings"
)
def complete_past_bookings(self: Any) -> Dict[str, int]:
    """Completion sweep over bookings that have already ended."""
    db: Session = SessionLocal()
    try:
        completed = complete_ended_bookings(db)
        if completed:
            logger.info(f"Marked {completed} bookings as completed")
        return {"completed": completed}
    except Exception as exc:
        logger.error(f"Completion sweep failed: {exc}")
        raise self.retry(exc=exc, countdown=300)
    finally:
        db.close()
