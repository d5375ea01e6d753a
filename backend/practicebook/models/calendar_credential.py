# backend/practicebook/models/calendar_credential.py
from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.sql import func
import ulid

from ..database import Base


class CalendarCredential(Base):
    """Google OAuth tokens for a practitioner's calendar."""

    __tablename__ = "calendar_credentials"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    owner_id = Column(String(26), nullable=False, unique=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    calendar_id = Column(String(255), nullable=False, default="primary")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
