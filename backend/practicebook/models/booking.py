# backend/practicebook/models/booking.py
"""
Booking model.

A booking is one concrete appointment between a practitioner (owner) and a
client. One-off bookings are created directly; series occurrences are
materialized one at a time and carry the stable slot key
``(series_id, occurrence_index)``.

Bookings are never deleted. Cancellation flips the status to ``canceled``,
which is terminal together with ``completed``.
"""

from enum import Enum
from typing import FrozenSet

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Awaiting payment capture
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_BOOKING_STATUSES


TERMINAL_BOOKING_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELED}
)


class BookingMode(str, Enum):
    """Where the appointment takes place."""

    ONLINE = "online"
    IN_PERSON = "in_person"


class Booking(Base):
    """Single appointment instance owned by a practitioner."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    owner_id = Column(String(26), nullable=False, index=True)
    client_id = Column(String(26), ForeignKey("clients.id"), nullable=False, index=True)

    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.SCHEDULED.value, index=True)

    # Series linkage
    series_id = Column(String(26), ForeignKey("booking_series.id"), nullable=True, index=True)
    occurrence_index = Column(Integer, nullable=True)
    standalone_event_id = Column(
        String(255),
        nullable=True,
        comment="Calendar event replacing this occurrence after an off-cadence reschedule",
    )

    mode = Column(String(20), nullable=False, default=BookingMode.ONLINE.value)
    location_text = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    client = relationship("Client", back_populates="bookings")
    series = relationship("BookingSeries", back_populates="bookings")
    bills = relationship("Bill", back_populates="booking", order_by="Bill.created_at")
    calendar_events = relationship(
        "CalendarEvent", back_populates="booking", order_by="CalendarEvent.created_at"
    )

    __table_args__ = (
        UniqueConstraint("series_id", "occurrence_index", name="uq_bookings_series_occurrence"),
        CheckConstraint(
            "series_id IS NULL OR occurrence_index IS NOT NULL",
            name="ck_bookings_series_requires_index",
        ),
        CheckConstraint(
            "occurrence_index IS NULL OR occurrence_index >= 0",
            name="ck_bookings_occurrence_index_non_negative",
        ),
        CheckConstraint(
            "status IN ('pending', 'scheduled', 'completed', 'canceled')",
            name="ck_bookings_status",
        ),
        CheckConstraint("start_time < end_time", name="ck_bookings_time_order"),
        Index("ix_bookings_owner_start", "owner_id", "start_time"),
    )

    @property
    def booking_status(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def is_series_occurrence(self) -> bool:
        return self.series_id is not None

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id} owner={self.owner_id} status={self.status} "
            f"series={self.series_id}#{self.occurrence_index}>"
        )
