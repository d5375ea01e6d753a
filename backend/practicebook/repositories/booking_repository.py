# backend/practicebook/repositories/booking_repository.py
"""
Booking Repository

Data access for bookings, including the series slot queries used by the
extension scheduler.
"""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import TERMINAL_BOOKING_STATUSES, Booking, BookingStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_max_occurrence_index(self, series_id: str) -> int:
        """Highest materialized occurrence index of a series, -1 when none exists."""
        query = self.db.query(func.max(Booking.occurrence_index)).filter(
            Booking.series_id == series_id
        )
        value = self._execute_scalar(query)
        return -1 if value is None else int(value)

    def get_by_series_occurrence(self, series_id: str, occurrence_index: int) -> Optional[Booking]:
        return self.find_one_by(series_id=series_id, occurrence_index=occurrence_index)

    def list_future_for_series(self, series_id: str, after: datetime) -> List[Booking]:
        """Non-terminal series bookings that start after ``after``."""
        query = (
            self._build_query()
            .filter(
                Booking.series_id == series_id,
                Booking.start_time > after,
                Booking.status.notin_([s.value for s in TERMINAL_BOOKING_STATUSES]),
            )
            .order_by(Booking.occurrence_index.asc())
        )
        return self._execute_query(query)

    def list_scheduled_ended_before(self, cutoff: datetime, limit: int = 500) -> List[Booking]:
        query = (
            self._build_query()
            .filter(
                Booking.status == BookingStatus.SCHEDULED.value,
                Booking.end_time < cutoff,
            )
            .order_by(Booking.end_time.asc())
            .limit(limit)
        )
        return self._execute_query(query)

    def mark_completed(self, booking_ids: List[str], completed_at: datetime) -> int:
        """Flip scheduled bookings to completed. Returns the number of rows changed."""
        if not booking_ids:
            return 0
        try:
            updated = (
                self.db.query(Booking)
                .filter(
                    Booking.id.in_(booking_ids),
                    Booking.status == BookingStatus.SCHEDULED.value,
                )
                .update(
                    {
                        Booking.status: BookingStatus.COMPLETED.value,
                        Booking.completed_at: completed_at,
                    },
                    synchronize_session=False,
                )
            )
            self.db.flush()
            return int(updated)
        except SQLAlchemyError as e:
            self.logger.error(f"Error completing bookings: {str(e)}")
            raise RepositoryException(f"Failed to complete bookings: {str(e)}")
