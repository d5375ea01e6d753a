# backend/practicebook/repositories/payment_session_repository.py
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.payment_session import PaymentSession, PaymentSessionStatus
from .base_repository import BaseRepository


class PaymentSessionRepository(BaseRepository[PaymentSession]):
    def __init__(self, db: Session):
        super().__init__(db, PaymentSession)

    def list_open_for_booking(self, booking_id: str) -> List[PaymentSession]:
        query = (
            self._build_query()
            .filter(
                PaymentSession.booking_id == booking_id,
                PaymentSession.status == PaymentSessionStatus.OPEN.value,
            )
            .order_by(PaymentSession.created_at.desc(), PaymentSession.id.desc())
        )
        return self._execute_query(query)

    def get_completed_for_booking(self, booking_id: str) -> Optional[PaymentSession]:
        query = (
            self._build_query()
            .filter(
                PaymentSession.booking_id == booking_id,
                PaymentSession.status == PaymentSessionStatus.COMPLETED.value,
                PaymentSession.payment_intent_id.is_not(None),
            )
            .order_by(PaymentSession.created_at.desc())
        )
        rows = self._execute_query(query.limit(1))
        return rows[0] if rows else None

    def get_by_stripe_session_id(self, stripe_session_id: str) -> Optional[PaymentSession]:
        return self.find_one_by(stripe_session_id=stripe_session_id)
