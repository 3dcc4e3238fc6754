"""
Calendar collaborator - registers travel reminders with an external calendar service.

The contract is deliberately forgiving: create_reminder returns an opaque event
reference or None, delete_reminder returns a bool, and neither ever raises. A
reminder row in the database is the source of truth; the calendar entry is a
convenience.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Protocol

import httpx

from app.core.config import settings
from app.services.errors import ExternalDependencyFailure
from app.services.integrations.http_client import create_httpx_client

logger = logging.getLogger(__name__)

CALENDAR_DEPENDENCY = "calendar"


class CalendarClient(Protocol):
    def create_reminder(self, title: str, description: str, start: datetime) -> str | None: ...

    def delete_reminder(self, event_ref: str) -> bool: ...

    def close(self) -> None: ...


class DisabledCalendarClient:
    """Used when no calendar service is configured: nothing is registered."""

    def create_reminder(self, title: str, description: str, start: datetime) -> str | None:
        logger.debug("Calendar integration not enabled - skipping reminder registration")
        return None

    def delete_reminder(self, event_ref: str) -> bool:
        return True

    def close(self) -> None:
        pass


class HttpCalendarClient:
    """
    Calendar service client over HTTP.

    POST /calendars/{calendar}/events  -> {"id": "<event ref>"}
    DELETE /calendars/{calendar}/events/{event ref}
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        calendar_name: str = "CRM Reminders",
        alarm_minutes: int = 15,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = create_httpx_client(base_url=base_url, headers=headers, transport=transport)
        self.calendar_name = calendar_name
        self.alarm_minutes = alarm_minutes

    def _request(self, method: str, path: str, json: dict | None = None) -> httpx.Response:
        try:
            response = self._client.request(method, path, json=json)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ExternalDependencyFailure(CALENDAR_DEPENDENCY, str(e)) from e
        return response

    def create_reminder(self, title: str, description: str, start: datetime) -> str | None:
        body = {
            "title": title,
            "notes": description,
            "start": start.isoformat(),
            "end": start.isoformat(),
            "alarms": [{"minutes_before": self.alarm_minutes}],
        }
        try:
            response = self._request("POST", f"/calendars/{self.calendar_name}/events", json=body)
            event_ref = response.json().get("id")
        except (ExternalDependencyFailure, ValueError) as e:
            logger.warning(f"Calendar event creation failed: {e}")
            return None
        return str(event_ref) if event_ref else None

    def delete_reminder(self, event_ref: str) -> bool:
        try:
            self._request("DELETE", f"/calendars/{self.calendar_name}/events/{event_ref}")
        except ExternalDependencyFailure as e:
            logger.warning(f"Calendar event deletion failed for {event_ref}: {e}")
            return False
        return True

    def close(self) -> None:
        self._client.close()


def get_calendar_client() -> CalendarClient:
    """Calendar client for the current settings (disabled unless fully configured)."""
    if not (settings.calendar_enabled and settings.feature_calendar_enabled and settings.calendar_api_url):
        return DisabledCalendarClient()
    return HttpCalendarClient(
        base_url=settings.calendar_api_url,
        token=settings.calendar_api_token,
        calendar_name=settings.calendar_name,
        alarm_minutes=settings.calendar_alarm_minutes,
    )


@contextmanager
def calendar_client() -> Iterator[CalendarClient]:
    """Calendar client for the current settings, closed when the block exits."""
    client = get_calendar_client()
    try:
        yield client
    finally:
        client.close()


def _ics_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).strftime("%Y%m%dT%H%M%SZ")


def _ics_escape(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def build_ics_event(
    uid: str,
    title: str,
    description: str,
    start: datetime,
    end: datetime | None = None,
    alarm_minutes: int = 15,
    now: datetime | None = None,
) -> str:
    """
    Render a single-event iCalendar document (for clients without a calendar service).

    Args:
        uid: Stable event identifier (e.g. "reminder-12@travel-crm")
        title: Event summary
        description: Event description (newlines allowed)
        start: Event start (aware; naive values are treated as UTC)
        end: Event end (defaults to start)
        alarm_minutes: Display alarm offset before start
        now: DTSTAMP override

    Returns:
        VCALENDAR text with CRLF line endings
    """
    stamp = now or datetime.now(UTC)
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//Travel CRM//Reminders//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{uid}",
        f"DTSTAMP:{_ics_timestamp(stamp)}",
        f"DTSTART:{_ics_timestamp(start)}",
        f"DTEND:{_ics_timestamp(end or start)}",
        f"SUMMARY:{_ics_escape(title)}",
        f"DESCRIPTION:{_ics_escape(description)}",
        "BEGIN:VALARM",
        "ACTION:DISPLAY",
        f"DESCRIPTION:{_ics_escape(title)}",
        f"TRIGGER:-PT{alarm_minutes}M",
        "END:VALARM",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines) + "\r\n"
