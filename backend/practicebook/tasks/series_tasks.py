# backend/practicebook/tasks/series_tasks.py
"""
Celery tasks for recurring series.

The weekly beat run materializes the next occurrence of every active series.
"""

import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from ..core.config import settings
from ..database import SessionLocal
from ..services.orchestration import build_booking_orchestrator
from ..services.series_extension_service import SeriesExtensionService
from .celery_app import typed_task

logger = logging.getLogger(__name__)


@typed_task(bind=True, max_retries=2, name="practicebook.tasks.series_tasks.extend_active_series")
def extend_active_series(self: Any) -> Dict[str, int]:
    """
    Create the next booking for every active series.

    Per-series failures are counted, not raised; only a failure to read the
    series list makes the task retry.

    Returns:
        Dict with processed/created/skipped/failed counts
    """
    db: Session = SessionLocal()
    try:
        service = SeriesExtensionService(
            db,
            build_booking_orchestrator,
            session_factory=SessionLocal,
            max_workers=settings.series_extension_max_workers,
        )
        summary = service.extend_all()
        if summary.failed:
            logger.warning(f"Series extension finished with {summary.failed} failures")
        return summary.to_dict()
    except Exception as exc:
        logger.error(f"Series extension job failed: {exc}")
        raise self.retry(exc=exc, countdown=600)
    finally:
        db.close()


@typed_task(name="practicebook.tasks.series_tasks.extend_series")
def extend_series(series_id: str) -> str:
    """Extend a single series on demand. Returns the outcome label."""
    db: Session = SessionLocal()
    try:
        service = SeriesExtensionService(db, build_booking_orchestrator)
        return service.extend_series(series_id)
    finally:
        db.close()
