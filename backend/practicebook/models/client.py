# backend/practicebook/models/client.py
from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Client(Base):
    """Person a practitioner books appointments with."""

    __tablename__ = "clients"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    owner_id = Column(String(26), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(320), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    bookings = relationship("Booking", back_populates="client")
