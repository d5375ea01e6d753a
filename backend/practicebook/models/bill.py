# backend/practicebook/models/bill.py
"""
Bill model.

A bill is the amount owed for a booking. A booking may accumulate several
bill rows over time (resends, replacements) but at most one is ever paid.
``claimed_at`` is the lock stamp used by the batch notification sender.
"""

from enum import Enum
from typing import FrozenSet

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class BillStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    SENT = "sent"
    PAID = "paid"
    DISPUTED = "disputed"
    CANCELED = "canceled"
    REFUNDED = "refunded"


CANCELABLE_BILL_STATUSES: FrozenSet[BillStatus] = frozenset(
    {BillStatus.PENDING, BillStatus.SCHEDULED, BillStatus.SENT, BillStatus.DISPUTED}
)

# Bills that still wait for their payment-request email
NOTIFIABLE_BILL_STATUSES: FrozenSet[BillStatus] = frozenset(
    {BillStatus.PENDING, BillStatus.SCHEDULED}
)


class Bill(Base):
    """Amount owed for a booking."""

    __tablename__ = "bills"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    client_id = Column(String(26), ForeignKey("clients.id"), nullable=False)
    owner_id = Column(String(26), nullable=False, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="eur")
    status = Column(String(20), nullable=False, default=BillStatus.PENDING.value, index=True)

    email_scheduled_at = Column(DateTime(timezone=True), nullable=True, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    refund_id = Column(String(255), nullable=True)
    claimed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    booking = relationship("Booking", back_populates="bills")

    __table_args__ = (
        Index(
            "uq_bills_one_paid_per_booking",
            "booking_id",
            unique=True,
            postgresql_where=text("status = 'paid'"),
            sqlite_where=text("status = 'paid'"),
        ),
        Index("ix_bills_due_notification", "status", "email_scheduled_at"),
    )

    @property
    def bill_status(self) -> BillStatus:
        return BillStatus(self.status)

    @property
    def is_cancelable(self) -> bool:
        return self.bill_status in CANCELABLE_BILL_STATUSES

    def __repr__(self) -> str:
        return f"<Bill {self.id} booking={self.booking_id} {self.amount} {self.currency} {self.status}>"
