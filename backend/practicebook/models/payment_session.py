# backend/practicebook/models/payment_session.py
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.sql import func
import ulid

from ..database import Base


class PaymentSessionStatus(str, Enum):
    OPEN = "open"
    COMPLETED = "completed"
    EXPIRED = "expired"


class PaymentSession(Base):
    """Stripe Checkout session created to collect a bill."""

    __tablename__ = "payment_sessions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    bill_id = Column(String(26), ForeignKey("bills.id"), nullable=True)
    stripe_session_id = Column(String(255), nullable=False, unique=True)
    url = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=PaymentSessionStatus.OPEN.value, index=True)
    payment_intent_id = Column(String(255), nullable=True, comment="Set once checkout completes")
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
