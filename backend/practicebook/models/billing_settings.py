# backend/practicebook/models/billing_settings.py
from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.sql import func
import ulid

from ..database import Base


class BillingSettings(Base):
    """
    Pricing configuration.

    A row with ``client_id`` NULL is the practitioner's default; a row with a
    client id overrides it for that client.
    """

    __tablename__ = "billing_settings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    owner_id = Column(String(26), nullable=False, index=True)
    client_id = Column(String(26), ForeignKey("clients.id"), nullable=True)

    session_amount = Column(Numeric(10, 2), nullable=True)
    first_consultation_amount = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), nullable=True)
    # 24 = email one day before the session, -1 = email after the session ends
    payment_email_lead_hours = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("owner_id", "client_id", name="uq_billing_settings_owner_client"),
    )
