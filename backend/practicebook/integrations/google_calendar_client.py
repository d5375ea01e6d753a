"""Minimal Google Calendar REST client implementing the calendar adapter contract."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, cast
from uuid import uuid4

import httpx
from pydantic import SecretStr

from ..domain.recurrence import RecurrenceRule, anchor_start, build_recurrence_lines
from .adapters import AdapterResult, EventDetails, EventKind

logger = logging.getLogger(__name__)

CANCELLED_COLOR_ID = "8"  # graphite
PLACEHOLDER_PREFIX = "[Awaiting payment] "
CANCELLED_PREFIX = "CANCELLED - "


class GoogleCalendarError(RuntimeError):
    """Raised when the Google Calendar API responds with an error."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        *,
        error_body: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_body = error_body


def _parse_event_time(value: Dict[str, Any]) -> Optional[datetime]:
    raw = value.get("dateTime")
    if not raw:
        return None
    parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _utc_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class GoogleCalendarClient:
    """Thin client for the Google Calendar v3 REST API."""

    def __init__(
        self,
        *,
        access_token: str | SecretStr,
        calendar_id: str = "primary",
        base_url: str = "https://www.googleapis.com/calendar/v3",
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        token = (
            access_token.get_secret_value()
            if isinstance(access_token, SecretStr)
            else access_token
        )
        if not token:
            raise ValueError("Google access token must be provided")

        self._token = token
        self._calendar_id = calendar_id
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    # ------------------------------------------------------------------ adapter

    def create_event(
        self, kind: EventKind, start_utc: datetime, end_utc: datetime, details: EventDetails
    ) -> AdapterResult[str]:
        body = self._event_body(kind, details)
        body["start"] = {"dateTime": _utc_iso(start_utc), "timeZone": "UTC"}
        body["end"] = {"dateTime": _utc_iso(end_utc), "timeZone": "UTC"}
        params = self._write_params(kind, details)
        try:
            payload = self.request("POST", self._events_path(), json_body=body, params=params)
        except GoogleCalendarError as exc:
            return AdapterResult.failure(f"Failed to create calendar event: {exc}")
        return AdapterResult.success(cast(str, payload["id"]))

    def create_recurring_event(
        self,
        rule: RecurrenceRule,
        details: EventDetails,
        excluded_local_dates: Iterable[str] = (),
        until_local: Optional[datetime] = None,
    ) -> AdapterResult[str]:
        start_local = anchor_start(rule)
        end_local = start_local + rule.duration
        body = self._event_body(EventKind.FULL, details)
        body["start"] = {
            "dateTime": start_local.strftime("%Y-%m-%dT%H:%M:%S"),
            "timeZone": rule.timezone,
        }
        body["end"] = {
            "dateTime": end_local.strftime("%Y-%m-%dT%H:%M:%S"),
            "timeZone": rule.timezone,
        }
        body["recurrence"] = build_recurrence_lines(rule, excluded_local_dates, until_local)
        try:
            payload = self.request(
                "POST",
                self._events_path(),
                json_body=body,
                params=self._write_params(EventKind.FULL, details),
            )
        except GoogleCalendarError as exc:
            return AdapterResult.failure(f"Failed to create recurring event: {exc}")
        return AdapterResult.success(cast(str, payload["id"]))

    def cancel_event(self, event_id: str) -> AdapterResult[None]:
        """Mark the event cancelled and notify every attendee."""
        try:
            current = self.request("GET", self._events_path(event_id))
            summary = current.get("summary") or ""
            if not summary.startswith(CANCELLED_PREFIX):
                summary = f"{CANCELLED_PREFIX}{summary}"
            self.request(
                "PATCH",
                self._events_path(event_id),
                json_body={
                    "status": "cancelled",
                    "summary": summary,
                    "colorId": CANCELLED_COLOR_ID,
                },
                params={"sendUpdates": "all"},
            )
        except GoogleCalendarError as exc:
            return AdapterResult.failure(f"Failed to cancel calendar event: {exc}")
        return AdapterResult.success()

    def delete_event(self, event_id: str) -> AdapterResult[None]:
        """Remove the event without notifying anyone."""
        try:
            self.request(
                "DELETE",
                self._events_path(event_id),
                params={"sendUpdates": "none"},
            )
        except GoogleCalendarError as exc:
            if exc.status_code in (404, 410):
                logger.info("Calendar event %s already gone", event_id)
                return AdapterResult.success()
            return AdapterResult.failure(f"Failed to delete calendar event: {exc}")
        return AdapterResult.success()

    def reschedule_event(
        self, event_id: str, start_utc: datetime, end_utc: datetime
    ) -> AdapterResult[None]:
        try:
            self.request(
                "PATCH",
                self._events_path(event_id),
                json_body={
                    "start": {"dateTime": _utc_iso(start_utc), "timeZone": "UTC"},
                    "end": {"dateTime": _utc_iso(end_utc), "timeZone": "UTC"},
                },
                params={"sendUpdates": "all"},
            )
        except GoogleCalendarError as exc:
            return AdapterResult.failure(f"Failed to reschedule calendar event: {exc}")
        return AdapterResult.success()

    def patch_recurrence_exclusions(
        self,
        master_event_id: str,
        excluded_local_dates: Iterable[str],
        rule: RecurrenceRule,
        until_local: Optional[datetime] = None,
    ) -> AdapterResult[None]:
        """Replace the master's recurrence with the rule plus the full EXDATE list."""
        recurrence = build_recurrence_lines(rule, excluded_local_dates, until_local)
        try:
            self.request(
                "PATCH",
                self._events_path(master_event_id),
                json_body={"recurrence": recurrence},
                params={"sendUpdates": "all"},
            )
        except GoogleCalendarError as exc:
            return AdapterResult.failure(f"Failed to patch recurrence exclusions: {exc}")
        return AdapterResult.success()

    def find_materialized_instance(
        self,
        master_event_id: str,
        approximate_start_utc: datetime,
        tolerance: timedelta,
        search_window: timedelta,
    ) -> AdapterResult[Optional[str]]:
        """
        Best-effort lookup of one instance of a recurring event.

        Instances have no stable id until materialized, so the instance whose
        start is nearest to ``approximate_start_utc`` is chosen, provided it
        lies within ``tolerance``.
        """
        params = {
            "timeMin": _utc_iso(approximate_start_utc - search_window),
            "timeMax": _utc_iso(approximate_start_utc + search_window),
            "showDeleted": "false",
            "maxResults": 50,
        }
        try:
            payload = self.request(
                "GET", self._events_path(master_event_id, "instances"), params=params
            )
        except GoogleCalendarError as exc:
            return AdapterResult.failure(f"Failed to list recurring instances: {exc}")

        best_id: Optional[str] = None
        best_delta: Optional[timedelta] = None
        for item in cast(List[Dict[str, Any]], payload.get("items") or []):
            start = _parse_event_time(item.get("start") or {})
            if start is None:
                continue
            delta = abs(start - approximate_start_utc)
            if delta <= tolerance and (best_delta is None or delta < best_delta):
                best_id, best_delta = item.get("id"), delta
        return AdapterResult.success(best_id)

    # ----------------------------------------------------------------- plumbing

    def _events_path(self, event_id: Optional[str] = None, suffix: Optional[str] = None) -> str:
        path = f"/calendars/{self._calendar_id}/events"
        if event_id:
            path = f"{path}/{event_id}"
        if suffix:
            path = f"{path}/{suffix}"
        return path

    @staticmethod
    def _write_params(kind: EventKind, details: EventDetails) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "sendUpdates": "none" if kind is EventKind.PLACEHOLDER else "all",
        }
        if details.online and kind is not EventKind.PLACEHOLDER:
            params["conferenceDataVersion"] = 1
        return params

    @staticmethod
    def _event_body(kind: EventKind, details: EventDetails) -> Dict[str, Any]:
        summary = details.summary
        if kind is EventKind.PLACEHOLDER:
            summary = f"{PLACEHOLDER_PREFIX}{summary}"
        private: Dict[str, str] = {"kind": kind.value}
        if details.booking_id:
            private["booking_id"] = details.booking_id
        if details.series_id:
            private["series_id"] = details.series_id

        body: Dict[str, Any] = {
            "summary": summary,
            "description": details.description,
            "extendedProperties": {"private": private},
        }
        if kind is not EventKind.PLACEHOLDER and details.attendees:
            body["attendees"] = [{"email": email} for email in details.attendees]
        if details.online:
            if kind is not EventKind.PLACEHOLDER:
                body["conferenceData"] = {
                    "createRequest": {
                        "requestId": uuid4().hex,
                        "conferenceSolutionKey": {"type": "hangoutsMeet"},
                    }
                }
        elif details.location:
            body["location"] = details.location
        return body

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Dict[str, Any] | None = None,
        params: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Perform a raw Calendar API request and return the parsed JSON payload."""

        url = f"{self._base_url}{path}"
        with httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            headers={
                "Accept": "application/json",
                "Authorization": f"Bearer {self._token}",
            },
        ) as client:
            try:
                response = client.request(method, url, json=json_body, params=params)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                error_payload: Any | None
                try:
                    error_payload = exc.response.json()
                except json.JSONDecodeError:
                    error_payload = exc.response.text
                logger.error(
                    "Google Calendar API error %s for %s %s: %s",
                    status,
                    method,
                    path,
                    exc.response.text[:500],
                )
                raise GoogleCalendarError(
                    f"Google Calendar responded with status {status}",
                    status_code=status,
                    error_body=error_payload,
                ) from exc
            except httpx.RequestError as exc:
                logger.error("Google Calendar request failure for %s %s: %s", method, path, exc)
                raise GoogleCalendarError("Failed to reach Google Calendar") from exc

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return cast(Dict[str, Any], response.json())
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON from Google Calendar for %s %s", method, path)
            raise GoogleCalendarError("Received malformed JSON from Google Calendar") from exc


class DisconnectedCalendarClient:
    """Stand-in for practitioners without a connected calendar; every call degrades."""

    def __init__(self, owner_id: str, reason: str = "Calendar not connected") -> None:
        self.owner_id = owner_id
        self.reason = reason

    def _fail(self) -> AdapterResult[Any]:
        return AdapterResult.failure(self.reason)

    def create_event(self, kind, start_utc, end_utc, details) -> AdapterResult[str]:
        return self._fail()

    def create_recurring_event(
        self, rule, details, excluded_local_dates=(), until_local=None
    ) -> AdapterResult[str]:
        return self._fail()

    def cancel_event(self, event_id: str) -> AdapterResult[None]:
        return self._fail()

    def delete_event(self, event_id: str) -> AdapterResult[None]:
        return self._fail()

    def reschedule_event(self, event_id, start_utc, end_utc) -> AdapterResult[None]:
        return self._fail()

    def patch_recurrence_exclusions(
        self, master_event_id, excluded_local_dates, rule, until_local=None
    ) -> AdapterResult[None]:
        return self._fail()

    def find_materialized_instance(
        self, master_event_id, approximate_start_utc, tolerance, search_window
    ) -> AdapterResult[Optional[str]]:
        return self._fail()
