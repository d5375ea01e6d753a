# backend/practicebook/services/calendar_connection_service.py
"""
Per-practitioner calendar adapters.

Builds a Google Calendar client from the practitioner's stored OAuth
credentials, refreshing the access token when it is about to expire.
Practitioners without a usable connection get a disconnected adapter whose
calls all fail as degraded results.
"""

from datetime import timedelta
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.timezone_utils import ensure_utc, utc_now
from ..integrations.adapters import CalendarAdapter
from ..integrations.google_calendar_client import DisconnectedCalendarClient, GoogleCalendarClient
from ..models.calendar_credential import CalendarCredential
from ..repositories.factory import RepositoryFactory
from .base import BaseService

TOKEN_EXPIRY_MARGIN = timedelta(minutes=2)


class CalendarTokenRefreshError(RuntimeError):
    pass


class CalendarConnectionService(BaseService):
    def __init__(self, db: Session, transport: Optional[httpx.BaseTransport] = None):
        super().__init__(db)
        self.credential_repository = RepositoryFactory.create_calendar_credential_repository(db)
        self._transport = transport

    def for_owner(self, owner_id: str) -> CalendarAdapter:
        credential = self.credential_repository.get_for_owner(owner_id)
        if credential is None:
            return DisconnectedCalendarClient(owner_id)

        if self._needs_refresh(credential):
            try:
                self._refresh(credential)
            except CalendarTokenRefreshError as exc:
                self.logger.warning(
                    "Calendar access expired for owner %s: %s", owner_id, str(exc)
                )
                return DisconnectedCalendarClient(
                    owner_id,
                    reason="Calendar access expired; reconnect Google Calendar in settings",
                )

        return GoogleCalendarClient(
            access_token=credential.access_token,
            calendar_id=credential.calendar_id or "primary",
            base_url=settings.google_calendar_base_url,
            timeout=settings.calendar_request_timeout,
            transport=self._transport,
        )

    @staticmethod
    def _needs_refresh(credential: CalendarCredential) -> bool:
        expires_at = ensure_utc(credential.expires_at)
        return expires_at is not None and expires_at - TOKEN_EXPIRY_MARGIN <= utc_now()

    def _refresh(self, credential: CalendarCredential) -> None:
        if not credential.refresh_token:
            raise CalendarTokenRefreshError("no refresh token stored")
        if not settings.google_client_id or not settings.google_client_secret:
            raise CalendarTokenRefreshError("Google OAuth client is not configured")

        data = {
            "grant_type": "refresh_token",
            "refresh_token": credential.refresh_token,
            "client_id": settings.google_client_id,
            "client_secret": settings.google_client_secret.get_secret_value(),
        }
        try:
            with httpx.Client(
                timeout=settings.calendar_request_timeout, transport=self._transport
            ) as client:
                response = client.post(settings.google_token_url, data=data)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise CalendarTokenRefreshError(str(exc)) from exc
        if not payload.get("access_token"):
            raise CalendarTokenRefreshError("token endpoint returned no access token")

        with self.transaction():
            credential.access_token = payload["access_token"]
            credential.expires_at = utc_now() + timedelta(seconds=int(payload.get("expires_in", 3600)))
            if payload.get("refresh_token"):
                credential.refresh_token = payload["refresh_token"]
        self.logger.info("Refreshed calendar token for owner %s", credential.owner_id)
