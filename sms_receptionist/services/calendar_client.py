"""Google Calendar v3 client: busy lookups, availability and event creation.

Calendar API docs: https://developers.google.com/calendar/api/v3/reference
"""

from __future__ import annotations

import logging
import threading
import time as _time
from datetime import date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from google.oauth2.credentials import Credentials

from sms_receptionist import config
from sms_receptionist.models import BookingResult, BusyInterval, EventDraft, Slot
from sms_receptionist.scheduling.slots import TimeOfDay, compute_free_slots
from sms_receptionist.services.google_api import GoogleService

logger = logging.getLogger(__name__)

# How many computed slots an availability lookup returns
TOP_SLOTS = 3


def _parse_rfc3339(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class CalendarClient(GoogleService):
    """The business calendar, identified by ``calendar_id``."""

    service_name = "google_calendar"
    api_name = "calendar"
    api_version = "v3"

    def __init__(
        self,
        credentials: Credentials | None = None,
        calendar_id: str | None = None,
        timezone: str | None = None,
        *,
        api: Any = None,
    ) -> None:
        super().__init__(credentials, api=api)
        self.calendar_id = calendar_id or config.BUSINESS_CALENDAR_ID
        self.timezone = timezone or config.CALENDAR_TIMEZONE
        self.tz = ZoneInfo(self.timezone)

    def get_busy_intervals(self, range_start: datetime, range_end: datetime) -> list[BusyInterval]:
        """Return the calendar's busy blocks between two instants (freeBusy query)."""
        body = {
            "timeMin": range_start.isoformat(),
            "timeMax": range_end.isoformat(),
            "timeZone": self.timezone,
            "items": [{"id": self.calendar_id}],
        }
        data = self._execute("freebusy.query", self.api.freebusy().query(body=body))
        calendar = data.get("calendars", {}).get(self.calendar_id, {})
        if calendar.get("errors"):
            logger.warning("freeBusy reported errors for calendar: %s", calendar["errors"])
        return [
            BusyInterval(start=_parse_rfc3339(b["start"]), end=_parse_rfc3339(b["end"]))
            for b in calendar.get("busy", [])
        ]

    def lookup_availability(
        self,
        start_date: date,
        end_date: date,
        time_of_day: TimeOfDay | str = TimeOfDay.ANY,
        duration_minutes: int = 60,
    ) -> list[Slot]:
        """Compute free slots for a date range, returning the first ``TOP_SLOTS``.

        Busy data is fetched for the whole days in the business timezone.
        """
        window_start = datetime.combine(start_date, time.min, tzinfo=self.tz)
        window_end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=self.tz)
        busy = self.get_busy_intervals(window_start, window_end)
        slots = compute_free_slots(
            start_date, end_date, busy, time_of_day, duration_minutes, tz=self.tz,
        )
        logger.debug(
            "Availability %s..%s (%s, %dmin): %d free, %d busy",
            start_date, end_date, time_of_day, duration_minutes, len(slots), len(busy),
        )
        return slots[:TOP_SLOTS]

    def create_event(self, draft: EventDraft) -> BookingResult:
        """Insert an appointment event (with a conference link request)."""
        body: dict[str, Any] = {
            "summary": draft.summary,
            "description": draft.description,
            "start": {"dateTime": draft.start_time, "timeZone": draft.timezone},
            "end": {"dateTime": draft.end_time, "timeZone": draft.timezone},
            "attendees": [{"email": email} for email in draft.attendees],
            "conferenceData": {
                "createRequest": {"requestId": f"aiden-{int(_time.time() * 1000)}"},
            },
        }
        data = self._execute(
            "events.insert",
            self.api.events().insert(
                calendarId=self.calendar_id, body=body, conferenceDataVersion=1,
            ),
        )
        entry_points = data.get("conferenceData", {}).get("entryPoints") or [{}]
        result = BookingResult(
            event_id=data["id"],
            link=data.get("htmlLink"),
            conference_link=entry_points[0].get("uri"),
        )
        logger.info("Calendar event created: %s", result.event_id)
        return result

    def cancel_event(self, event_id: str) -> bool:
        """Delete an appointment event.  Returns ``True`` once removed."""
        self._execute(
            "events.delete",
            self.api.events().delete(calendarId=self.calendar_id, eventId=event_id),
        )
        logger.info("Calendar event cancelled: %s", event_id)
        return True


_client: CalendarClient | None = None
_client_lock = threading.Lock()


def get_calendar_client() -> CalendarClient:
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = CalendarClient()
    return _client
