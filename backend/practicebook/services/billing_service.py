# backend/practicebook/services/billing_service.py
"""
Billing resolution.

Prices come from billing settings: a client-specific row wins over the
practitioner default, field by field. Occurrence 0 of a series (and any
booking explicitly flagged as a first consultation) uses the first
consultation price when one is configured.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..repositories.factory import RepositoryFactory
from .base import BaseService

EMAIL_BEFORE_SESSION_HOURS = 24
EMAIL_AFTER_SESSION = -1


@dataclass(frozen=True)
class ResolvedBilling:
    amount: Decimal
    currency: str
    payment_email_lead_hours: Optional[int]

    @property
    def is_free(self) -> bool:
        return self.amount <= 0


def compute_email_scheduled_at(
    lead_hours: Optional[int], start_utc: datetime, end_utc: datetime, now: datetime
) -> datetime:
    """
    When the payment-request email for a booking becomes due.

    ``24`` sends it a day before the session, ``-1`` once the session has
    ended, anything else sends it right away.
    """
    if lead_hours == EMAIL_BEFORE_SESSION_HOURS:
        return start_utc - timedelta(hours=EMAIL_BEFORE_SESSION_HOURS)
    if lead_hours == EMAIL_AFTER_SESSION:
        return end_utc
    return now


class BillingService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.settings_repository = RepositoryFactory.create_billing_settings_repository(db)

    def resolve(
        self, owner_id: str, client_id: str, first_consultation: bool = False
    ) -> ResolvedBilling:
        client_row = self.settings_repository.get_for_client(owner_id, client_id)
        default_row = self.settings_repository.get_owner_default(owner_id)

        def pick(field: str):
            for row in (client_row, default_row):
                value = getattr(row, field, None) if row is not None else None
                if value is not None:
                    return value
            return None

        amount = None
        if first_consultation:
            amount = pick("first_consultation_amount")
        if amount is None:
            amount = pick("session_amount")

        lead_hours = pick("payment_email_lead_hours")
        if lead_hours not in (EMAIL_BEFORE_SESSION_HOURS, EMAIL_AFTER_SESSION):
            lead_hours = None

        return ResolvedBilling(
            amount=Decimal(amount) if amount is not None else Decimal("0.00"),
            currency=(pick("currency") or settings.default_currency).lower(),
            payment_email_lead_hours=lead_hours,
        )
