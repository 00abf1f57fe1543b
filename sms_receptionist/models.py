"""Domain types shared by the store, the slot calculator and the collaborators."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ConversationTurn(BaseModel):
    """One message in a customer's conversation.  Immutable once appended."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class BusyInterval(BaseModel):
    """A half-open ``[start, end)`` block reported busy by the calendar."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime


class Slot(BaseModel):
    """A bookable window offered to the customer."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    label: str


class PendingSlotHold(BaseModel):
    """Slots presented to a customer, held until they confirm or it expires."""

    model_config = ConfigDict(frozen=True)

    slots: tuple[Slot, ...]
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class LeadStatus(str, Enum):
    NEW = "new"
    BOOKED = "booked"


class LeadRecord(BaseModel):
    """A row in the lead sheet (columns A–K, in this field order)."""

    timestamp: str = ""
    customer_name: str = ""
    phone: str = ""
    email: str = ""
    service_type: str = ""
    address: str = ""
    message: str = ""
    source: str = "unknown"
    agent_notes: str = ""
    appointment_id: str = ""
    status: str = LeadStatus.NEW.value

    def to_row(self) -> list[str]:
        return [
            self.timestamp,
            self.customer_name,
            self.phone,
            self.email,
            self.service_type,
            self.address,
            self.message,
            self.source,
            self.agent_notes,
            self.appointment_id,
            self.status,
        ]

    @classmethod
    def from_row(cls, row: list[str]) -> LeadRecord:
        """Build a record from a sheet row; short rows are padded with blanks."""
        padded = list(row) + [""] * (len(LEAD_COLUMNS) - len(row))
        data = dict(zip(LEAD_FIELDS, padded))
        if not data["status"]:
            data["status"] = LeadStatus.NEW.value
        return cls(**data)


LEAD_FIELDS: tuple[str, ...] = tuple(LeadRecord.model_fields)

LEAD_COLUMNS: tuple[str, ...] = (
    "Timestamp",
    "Customer Name",
    "Phone",
    "Email",
    "Service Type",
    "Address",
    "Message",
    "Source",
    "Agent Notes",
    "Appointment ID",
    "Status",
)


class EventDraft(BaseModel):
    """Everything the calendar needs to create an appointment event."""

    summary: str
    description: str
    start_time: str
    end_time: str
    timezone: str
    attendees: list[str] = Field(default_factory=list)


class BookingResult(BaseModel):
    event_id: str
    link: str | None = None
    conference_link: str | None = None
