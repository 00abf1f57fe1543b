"""Outbound SMS through Twilio, plus the receptionist's canned messages."""

from __future__ import annotations

import logging
import threading
from datetime import datetime

from twilio.rest import Client

from sms_receptionist import config
from sms_receptionist.scheduling.slots import format_clock
from sms_receptionist.services.metrics import metrics

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "..."
ESCALATION_MESSAGE = (
    "Thanks for reaching out. I'm connecting you with a team member "
    "who will follow up shortly."
)


def truncate_sms(body: str, limit: int) -> str:
    """Cut *body* to *limit* characters, ending in ``...`` when shortened."""
    if len(body) <= limit:
        return body
    return body[: limit - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


def _parse_iso(iso_str: str) -> datetime:
    return datetime.fromisoformat(iso_str.replace("Z", "+00:00"))


def _friendly_time(iso_str: str) -> str:
    """``2026-03-02T09:00:00-05:00`` -> ``Mon, Mar 2 at 9:00 AM``."""
    start = _parse_iso(iso_str)
    return f"{start:%a, %b} {start.day} at {format_clock(start)}"


class MessagingService:
    """Sends SMS from the business number."""

    def __init__(
        self,
        account_sid: str | None = None,
        auth_token: str | None = None,
        from_number: str | None = None,
        *,
        max_length: int | None = None,
        client: Client | None = None,
    ) -> None:
        self._client = client or Client(
            account_sid or config.TWILIO_SID,
            auth_token or config.TWILIO_AUTH_TOKEN,
        )
        self._from = from_number or config.TWILIO_PHONE_NUMBER
        self._max_length = max_length or config.SMS_MAX_LENGTH

    def send(self, to: str, body: str) -> str:
        """Send *body* to *to*.  Returns the Twilio message SID."""
        body = truncate_sms(body, self._max_length)
        with metrics.track("twilio", "messages.create"):
            message = self._client.messages.create(to=to, from_=self._from, body=body)
        logger.info("SMS sent to %s (sid=%s, status=%s)", to, message.sid, message.status)
        return message.sid

    def send_booking_confirmation(self, to: str, service_type: str, start_time: str) -> str:
        return self.send(
            to,
            f"Booking confirmed! {service_type} scheduled for {_friendly_time(start_time)}. "
            "We'll send a reminder 24 hours before. Thank you!",
        )

    def send_reminder(self, to: str, service_type: str, start_time: str) -> str:
        return self.send(
            to,
            f"Reminder: Your {service_type} appointment is today at "
            f"{format_clock(_parse_iso(start_time))}. "
            "Reply STOP to cancel.",
        )

    def send_escalation(self, to: str) -> str:
        return self.send(to, ESCALATION_MESSAGE)


_service: MessagingService | None = None
_service_lock = threading.Lock()


def get_messaging_service() -> MessagingService:
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = MessagingService()
    return _service
