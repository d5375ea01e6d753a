# backend/practicebook/services/series_extension_service.py
"""
Series Extension Scheduler

Materializes the next occurrence of every active series, one occurrence per
series per run. Each series is handled in isolation: a failure is logged,
its session rolled back and the run moves on.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass
from datetime import timedelta
import logging
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import OccurrenceConflictException
from ..database import SessionLocal
from ..domain.recurrence import generate_occurrences, occurrence_at
from ..models.booking import BookingMode
from ..models.booking_series import SeriesStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_orchestrator import BookingOrchestrator, CreateBookingRequest

logger = logging.getLogger(__name__)

EXTENSION_WINDOW = timedelta(days=7)

OUTCOME_CREATED = "created"
OUTCOME_SKIPPED = "skipped"
OUTCOME_ENDED = "ended"
OUTCOME_FAILED = "failed"


@dataclass
class ExtensionSummary:
    processed: int = 0
    created: int = 0
    skipped: int = 0
    failed: int = 0

    def add(self, outcome: str) -> None:
        self.processed += 1
        if outcome == OUTCOME_CREATED:
            self.created += 1
        elif outcome == OUTCOME_FAILED:
            self.failed += 1
        else:
            self.skipped += 1

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class SeriesExtensionService(BaseService):
    def __init__(
        self,
        db: Session,
        orchestrator_factory: Callable[[Session], BookingOrchestrator],
        session_factory: Optional[Callable[[], Session]] = None,
        max_workers: int = 1,
    ):
        super().__init__(db)
        self.orchestrator_factory = orchestrator_factory
        self.session_factory = session_factory or SessionLocal
        self.max_workers = max(1, max_workers)
        self.series_repository = RepositoryFactory.create_booking_series_repository(db)

    @BaseService.measure_operation("extend_series")
    def extend_all(self) -> ExtensionSummary:
        series_ids = self.series_repository.list_active_ids()
        summary = ExtensionSummary()

        if self.max_workers == 1 or len(series_ids) <= 1:
            for series_id in series_ids:
                summary.add(self._extend_guarded(self.db, series_id))
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = [pool.submit(self._extend_in_own_session, sid) for sid in series_ids]
                for future in as_completed(futures):
                    summary.add(future.result())

        self.log_operation(
            "series_extension_run",
            series_processed=summary.processed,
            series_created=summary.created,
            series_skipped=summary.skipped,
            series_failed=summary.failed,
        )
        return summary

    def extend_series(self, series_id: str) -> str:
        """Extend a single series in the service's session; returns the outcome label."""
        return self._extend_guarded(self.db, series_id)

    def _extend_in_own_session(self, series_id: str) -> str:
        db = self.session_factory()
        try:
            return self._extend_guarded(db, series_id)
        finally:
            db.close()

    def _extend_guarded(self, db: Session, series_id: str) -> str:
        try:
            outcome = self._extend(db, series_id)
        except Exception as exc:
            db.rollback()
            self.logger.error(f"Series extension failed for {series_id}: {str(exc)}", exc_info=True)
            outcome = OUTCOME_FAILED
        prometheus_metrics.record_series_extension(outcome)
        return outcome

    def _extend(self, db: Session, series_id: str) -> str:
        series_repository = RepositoryFactory.create_booking_series_repository(db)
        booking_repository = RepositoryFactory.create_booking_repository(db)

        series = series_repository.get_by_id(series_id)
        if series is None or series.status != SeriesStatus.ACTIVE.value:
            return OUTCOME_SKIPPED

        next_index = booking_repository.get_max_occurrence_index(series.id) + 1
        rule = series.rule
        window_start = occurrence_at(rule, next_index).start_local
        occurrences = generate_occurrences(
            rule, window_start, window_start + EXTENSION_WINDOW, max_occurrences=1
        )
        if not occurrences:
            self.logger.info("No occurrence in window for series %s", series.id)
            return OUTCOME_SKIPPED
        occurrence = occurrences[0]

        if series.until_local is not None and occurrence.start_local > series.until_local:
            series.status = SeriesStatus.ENDED.value
            db.commit()
            self.logger.info("Series %s reached its end date", series.id)
            return OUTCOME_ENDED

        orchestrator = self.orchestrator_factory(db)
        try:
            outcome = orchestrator.create_booking(
                CreateBookingRequest(
                    owner_id=series.owner_id,
                    client_id=series.client_id,
                    start_utc=occurrence.start_utc,
                    end_utc=occurrence.end_utc,
                    first_consultation=occurrence.occurrence_index == 0,
                    series_id=series.id,
                    occurrence_index=occurrence.occurrence_index,
                    # The recurring master already shows this occurrence
                    suppress_calendar=bool(series.master_event_id),
                    mode=BookingMode(series.mode or BookingMode.ONLINE.value),
                    location_text=series.location_text,
                )
            )
        except OccurrenceConflictException:
            self.logger.info(
                "Occurrence %s of series %s already materialized", occurrence.occurrence_index, series.id
            )
            return OUTCOME_SKIPPED

        self.logger.info(
            "Materialized occurrence %s of series %s as booking %s",
            occurrence.occurrence_index,
            series.id,
            outcome.booking.id,
        )
        return OUTCOME_CREATED
