# backend/practicebook/models/calendar_event.py
"""Datastore-side mirror of the calendar events representing a booking."""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class CalendarEventType(str, Enum):
    PENDING = "pending"  # Placeholder holding the slot until payment
    FULL = "full"  # Invitation sent to the client
    STANDALONE = "standalone"  # Override for a moved series occurrence


class CalendarEventStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class CalendarEvent(Base):
    __tablename__ = "calendar_events"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    google_event_id = Column(String(255), nullable=False, index=True)
    event_type = Column(String(20), nullable=False, default=CalendarEventType.FULL.value)
    status = Column(String(20), nullable=False, default=CalendarEventStatus.ACTIVE.value)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    booking = relationship("Booking", back_populates="calendar_events")

    __table_args__ = (
        # At most one live calendar artifact per booking
        Index(
            "uq_calendar_events_active_per_booking",
            "booking_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    @property
    def is_placeholder(self) -> bool:
        return self.event_type == CalendarEventType.PENDING.value
