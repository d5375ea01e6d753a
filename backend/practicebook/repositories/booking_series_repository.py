# backend/practicebook/repositories/booking_series_repository.py
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking_series import BookingSeries, SeriesStatus
from .base_repository import BaseRepository


class BookingSeriesRepository(BaseRepository[BookingSeries]):
    def __init__(self, db: Session):
        super().__init__(db, BookingSeries)

    def list_active_ids(self) -> List[str]:
        query = (
            self.db.query(BookingSeries.id)
            .filter(BookingSeries.status == SeriesStatus.ACTIVE.value)
            .order_by(BookingSeries.created_at.asc(), BookingSeries.id.asc())
        )
        return [row[0] for row in self._execute_query(query)]

    def reload_for_update(self, series_id: str) -> Optional[BookingSeries]:
        """
        Re-read the series row right before a read-modify-write.

        ``populate_existing`` discards any stale identity-map state so the
        caller merges into the latest committed overlay. On PostgreSQL the
        row is also locked until the surrounding transaction ends.
        """
        stmt = (
            select(BookingSeries)
            .where(BookingSeries.id == series_id)
            .execution_options(populate_existing=True)
        )
        if self.is_postgres:
            stmt = stmt.with_for_update()
        try:
            return self.db.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Error reloading series {series_id}: {str(e)}")
            raise RepositoryException(f"Failed to reload series: {str(e)}")
