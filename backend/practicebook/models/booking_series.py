# backend/practicebook/models/booking_series.py
"""
Recurring booking series.

The series row holds the weekly rule (anchor, weekday, interval) and the
exception overlay: excluded local dates (EXDATE) and per-occurrence
standalone event overrides. The overlay only ever grows.
"""

from enum import Enum
from typing import Dict, List, Optional

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
import ulid

from ..database import Base
from ..domain.recurrence import RecurrenceRule
from .booking import BookingMode


class SeriesStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


class BookingSeries(Base):
    """Weekly or bi-weekly recurring appointment slot."""

    __tablename__ = "booking_series"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    owner_id = Column(String(26), nullable=False, index=True)
    client_id = Column(String(26), ForeignKey("clients.id"), nullable=False, index=True)

    timezone = Column(String(64), nullable=False)
    dtstart_local = Column(DateTime(timezone=False), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    interval_weeks = Column(Integer, nullable=False, default=1)
    by_weekday = Column(Integer, nullable=False)  # 0 = Monday ... 6 = Sunday

    mode = Column(String(20), nullable=False, default=BookingMode.ONLINE.value)
    location_text = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=SeriesStatus.ACTIVE.value, index=True)
    until_local = Column(DateTime(timezone=False), nullable=True)

    master_event_id = Column(String(255), nullable=True)
    excluded_dates = Column(
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"),
        nullable=False,
        default=list,
    )
    standalone_overrides = Column(
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"),
        nullable=False,
        default=dict,
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    bookings = relationship("Booking", back_populates="series")

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_booking_series_duration_positive"),
        CheckConstraint("interval_weeks IN (1, 2)", name="ck_booking_series_interval"),
        CheckConstraint("by_weekday BETWEEN 0 AND 6", name="ck_booking_series_weekday"),
        CheckConstraint(
            "status IN ('active', 'paused', 'ended')", name="ck_booking_series_status"
        ),
    )

    @property
    def rule(self) -> RecurrenceRule:
        return RecurrenceRule(
            dtstart_local=self.dtstart_local,
            timezone=self.timezone,
            duration_minutes=self.duration_minutes,
            interval_weeks=self.interval_weeks,
            by_weekday=self.by_weekday,
        )

    @property
    def excluded_date_list(self) -> List[str]:
        return sorted(self.excluded_dates or [])

    @property
    def override_map(self) -> Dict[int, str]:
        return {int(k): v for k, v in (self.standalone_overrides or {}).items()}

    def override_for(self, occurrence_index: int) -> Optional[str]:
        return (self.standalone_overrides or {}).get(str(occurrence_index))

    def __repr__(self) -> str:
        return f"<BookingSeries {self.id} every {self.interval_weeks}w status={self.status}>"
