# backend/practicebook/repositories/bill_repository.py
"""
Bill Repository

Besides per-booking lookups this repository owns the claim-and-lock queue
used by the scheduled payment-request sender: a bill is stamped with
``claimed_at`` before it is emailed and released afterwards, so two
concurrent runs never pick the same bill. PostgreSQL locks candidate rows
with SKIP LOCKED; other databases claim each row with a conditional UPDATE.
"""

from datetime import datetime, timedelta
from typing import Any, List, Optional

from sqlalchemy import Select, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from ..core.exceptions import RepositoryException
from ..models.bill import NOTIFIABLE_BILL_STATUSES, Bill, BillStatus
from .base_repository import BaseRepository


class BillRepository(BaseRepository[Bill]):
    def __init__(self, db: Session):
        super().__init__(db, Bill)

    def list_for_booking(self, booking_id: str) -> List[Bill]:
        query = (
            self._build_query()
            .filter(Bill.booking_id == booking_id)
            .order_by(Bill.created_at.asc(), Bill.id.asc())
        )
        return self._execute_query(query)

    def get_paid_for_booking(self, booking_id: str) -> Optional[Bill]:
        return self.find_one_by(booking_id=booking_id, status=BillStatus.PAID.value)

    def get_open_for_booking(self, booking_id: str) -> Optional[Bill]:
        """Most recent bill that still expects a payment."""
        query = (
            self._build_query()
            .filter(
                Bill.booking_id == booking_id,
                Bill.status.in_(
                    [
                        BillStatus.PENDING.value,
                        BillStatus.SCHEDULED.value,
                        BillStatus.SENT.value,
                    ]
                ),
            )
            .order_by(Bill.created_at.desc(), Bill.id.desc())
        )
        try:
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading open bill for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to load open bill: {str(e)}")

    def claim_due_for_notification(
        self, now: datetime, limit: int, stale_after: timedelta
    ) -> List[Bill]:
        """
        Claim bills whose payment-request email is due.

        Eligible bills are pending/scheduled, unsent, due at or before ``now``
        and either unclaimed or holding a claim older than ``stale_after``.
        Returns the claimed rows with ``claimed_at`` set to ``now``; the
        caller commits to publish the claim.
        """
        stale_before = now - stale_after
        stmt: Select[Any] = (
            select(Bill)
            .where(Bill.status.in_([s.value for s in NOTIFIABLE_BILL_STATUSES]))
            .where(Bill.email_scheduled_at.is_not(None))
            .where(Bill.email_scheduled_at <= now)
            .where(Bill.sent_at.is_(None))
            .where(or_(Bill.claimed_at.is_(None), Bill.claimed_at < stale_before))
            .order_by(Bill.email_scheduled_at.asc(), Bill.id.asc())
            .limit(limit)
        )
        if self.is_postgres:
            stmt = stmt.with_for_update(skip_locked=True)

        try:
            candidates = list(self.db.execute(stmt).scalars().all())
            if self.is_postgres:
                # Rows are locked until commit
                for bill in candidates:
                    bill.claimed_at = now
                self.db.flush()
                return candidates
            return [bill for bill in candidates if self.try_claim(bill, now, stale_after)]
        except SQLAlchemyError as e:
            self.logger.error(f"Error claiming due bills: {str(e)}")
            self.db.rollback()
            raise RepositoryException(f"Failed to claim due bills: {str(e)}")

    def try_claim(self, bill: Bill, now: datetime, stale_after: timedelta) -> bool:
        """
        Compare-and-set claim of a single bill.

        Only succeeds while the stored row is still unsent and its claim is
        absent or older than ``stale_after``, so of two racing runs exactly
        one wins. The caller commits to publish the claim.
        """
        stale_before = now - stale_after
        stmt = (
            update(Bill)
            .where(Bill.id == bill.id)
            .where(Bill.sent_at.is_(None))
            .where(or_(Bill.claimed_at.is_(None), Bill.claimed_at < stale_before))
            .values(claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error claiming bill {bill.id}: {str(e)}")
            raise RepositoryException(f"Failed to claim bill: {str(e)}")
        if result.rowcount != 1:
            return False
        set_committed_value(bill, "claimed_at", now)
        return True

    def release_claim(self, bill_id: str) -> None:
        try:
            self.db.execute(update(Bill).where(Bill.id == bill_id).values(claimed_at=None))
            self.db.flush()
        except SQLAlchemyError as e:
            self.logger.error(f"Error releasing claim on bill {bill_id}: {str(e)}")
            raise RepositoryException(f"Failed to release bill claim: {str(e)}")
