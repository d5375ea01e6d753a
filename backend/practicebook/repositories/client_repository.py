# backend/practicebook/repositories/client_repository.py
from typing import Optional

from sqlalchemy.orm import Session

from ..models.billing_settings import BillingSettings
from ..models.calendar_credential import CalendarCredential
from ..models.client import Client
from .base_repository import BaseRepository


class ClientRepository(BaseRepository[Client]):
    def __init__(self, db: Session):
        super().__init__(db, Client)

    def get_for_owner(self, client_id: str, owner_id: str) -> Optional[Client]:
        return self.find_one_by(id=client_id, owner_id=owner_id)


class BillingSettingsRepository(BaseRepository[BillingSettings]):
    def __init__(self, db: Session):
        super().__init__(db, BillingSettings)

    def get_for_client(self, owner_id: str, client_id: str) -> Optional[BillingSettings]:
        return self.find_one_by(owner_id=owner_id, client_id=client_id)

    def get_owner_default(self, owner_id: str) -> Optional[BillingSettings]:
        return self.find_one_by(owner_id=owner_id, client_id=None)


class CalendarCredentialRepository(BaseRepository[CalendarCredential]):
    def __init__(self, db: Session):
        super().__init__(db, CalendarCredential)

    def get_for_owner(self, owner_id: str) -> Optional[CalendarCredential]:
        return self.find_one_by(owner_id=owner_id)
