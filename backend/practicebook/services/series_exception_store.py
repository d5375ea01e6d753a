# backend/practicebook/services/series_exception_store.py
"""
Series Exception Store

Maintains the exception overlay of a recurring series: the excluded local
dates (EXDATE equivalent) and the standalone events overriding individual
occurrences. Entries are only ever added.

Every write re-reads the series row first and merges its own key into the
latest state, so concurrent additions for different dates or indices
interleave safely (last writer wins on disjoint keys).
"""

from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException, ValidationException
from ..models.booking_series import BookingSeries
from ..repositories.factory import RepositoryFactory
from .base import BaseService


class SeriesExceptionStore(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.series_repository = RepositoryFactory.create_booking_series_repository(db)

    def _load(self, series_id: str, fresh: bool = False) -> BookingSeries:
        if fresh:
            series = self.series_repository.reload_for_update(series_id)
        else:
            series = self.series_repository.get_by_id(series_id)
        if series is None:
            raise NotFoundException(f"Series {series_id} not found")
        return series

    @staticmethod
    def _normalize_date(iso_date: str) -> str:
        try:
            return date.fromisoformat(iso_date).isoformat()
        except (TypeError, ValueError):
            raise ValidationException(
                f"Invalid excluded date: {iso_date!r}", code="INVALID_EXCLUDED_DATE"
            )

    @BaseService.measure_operation("add_excluded_date")
    def add_excluded_date(self, series_id: str, iso_date: str) -> List[str]:
        """
        Exclude a local date from the series. Idempotent.

        Returns:
            The full sorted exclusion list after the call
        """
        normalized = self._normalize_date(iso_date)
        with self.transaction():
            series = self._load(series_id, fresh=True)
            current = set(series.excluded_dates or [])
            if normalized in current:
                return sorted(current)
            current.add(normalized)
            merged = sorted(current)
            # JSON columns only detect reassignment, never in-place mutation
            series.excluded_dates = merged
            self.series_repository.flush()

        self.logger.info("Excluded %s from series %s", normalized, series_id)
        return merged

    def list_excluded_dates(self, series_id: str) -> List[str]:
        return self._load(series_id).excluded_date_list

    @BaseService.measure_operation("record_standalone_override")
    def record_standalone_override(
        self, series_id: str, occurrence_index: int, calendar_event_id: str
    ) -> Dict[int, str]:
        if occurrence_index < 0:
            raise ValidationException(
                "Occurrence index must be >= 0", code="INVALID_OCCURRENCE_INDEX"
            )
        key = str(occurrence_index)
        with self.transaction():
            series = self._load(series_id, fresh=True)
            overrides = dict(series.standalone_overrides or {})
            previous = overrides.get(key)
            if previous == calendar_event_id:
                return series.override_map
            if previous is not None:
                self.logger.warning(
                    "Replacing override %s for occurrence %s of series %s with %s",
                    previous,
                    occurrence_index,
                    series_id,
                    calendar_event_id,
                )
            overrides[key] = calendar_event_id
            series.standalone_overrides = overrides
            self.series_repository.flush()

        return {int(k): v for k, v in overrides.items()}

    def get_standalone_override(self, series_id: str, occurrence_index: int) -> Optional[str]:
        return self._load(series_id).override_for(occurrence_index)
