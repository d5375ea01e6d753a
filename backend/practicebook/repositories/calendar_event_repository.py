# backend/practicebook/repositories/calendar_event_repository.py
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.calendar_event import CalendarEvent, CalendarEventStatus, CalendarEventType
from .base_repository import BaseRepository


class CalendarEventRepository(BaseRepository[CalendarEvent]):
    def __init__(self, db: Session):
        super().__init__(db, CalendarEvent)

    def get_active_for_booking(self, booking_id: str) -> Optional[CalendarEvent]:
        return self.find_one_by(booking_id=booking_id, status=CalendarEventStatus.ACTIVE.value)

    def list_for_booking(self, booking_id: str) -> List[CalendarEvent]:
        query = (
            self._build_query()
            .filter(CalendarEvent.booking_id == booking_id)
            .order_by(CalendarEvent.created_at.asc(), CalendarEvent.id.asc())
        )
        return self._execute_query(query)

    def record_active(
        self, booking_id: str, google_event_id: str, event_type: CalendarEventType
    ) -> CalendarEvent:
        """Mirror a new live event, retiring whichever event was live before."""
        current = self.get_active_for_booking(booking_id)
        if current is not None:
            current.status = CalendarEventStatus.CANCELLED.value
            self.db.flush()
        return self.create(
            booking_id=booking_id,
            google_event_id=google_event_id,
            event_type=event_type.value,
            status=CalendarEventStatus.ACTIVE.value,
        )

    def mark_cancelled(self, event: CalendarEvent) -> CalendarEvent:
        return self.update(event, status=CalendarEventStatus.CANCELLED.value)
