"""The tools the model may call, one pydantic model per tool.

``TOOL_ARGS`` is the closed set of known tools.  The dispatcher keeps a
handler for every entry and checks the two sets match when it is built, so
adding a tool without teaching the dispatcher about it fails at start-up.
``TOOL_SPECS`` is the same set rendered as Anthropic tool definitions.
"""

from __future__ import annotations

from datetime import date
from typing import Any, ClassVar

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator

from sms_receptionist.scheduling.slots import TimeOfDay


class ToolArgs(BaseModel):
    """Base for every tool's argument structure."""

    model_config = ConfigDict(extra="ignore")

    tool_name: ClassVar[str]
    description: ClassVar[str]


class LookupAvailabilityArgs(ToolArgs):
    tool_name: ClassVar[str] = "lookup_availability"
    description: ClassVar[str] = (
        "Find open appointment slots. Call this BEFORE proposing any time to the customer."
    )

    service_type: str = Field("", description="Requested service, e.g. 'plumbing repair'")
    start_date: date = Field(..., description="First acceptable day, YYYY-MM-DD")
    end_date: date = Field(..., description="Last acceptable day, YYYY-MM-DD")
    time_of_day: TimeOfDay = Field(TimeOfDay.ANY, description="Preferred part of the day")
    duration_minutes: int = Field(60, gt=0, description="Appointment length in minutes")


class BookAppointmentArgs(ToolArgs):
    tool_name: ClassVar[str] = "book_appointment"
    description: ClassVar[str] = (
        "Book a confirmed slot. Call ONLY after the customer explicitly picks one."
    )

    customer_name: str = Field(..., min_length=1)
    phone: str = Field("", description="Customer phone; defaults to the texting number")
    email: str = ""
    service_type: str = Field(..., min_length=1)
    start_time: AwareDatetime = Field(..., description="ISO 8601 start, exactly as offered")
    end_time: AwareDatetime = Field(..., description="ISO 8601 end, exactly as offered")
    address: str = ""
    notes: str = ""

    @model_validator(mode="after")
    def _end_after_start(self) -> BookAppointmentArgs:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class SaveLeadArgs(ToolArgs):
    tool_name: ClassVar[str] = "save_lead"
    description: ClassVar[str] = (
        "Record the customer's details for human follow-up (billing, complaints, "
        "or anything you cannot book)."
    )

    customer_name: str = ""
    phone: str = ""
    email: str = ""
    service_type: str = ""
    address: str = ""
    message: str = ""
    agent_notes: str = ""
    source: str = ""


class SendMessageArgs(ToolArgs):
    tool_name: ClassVar[str] = "send_message"
    description: ClassVar[str] = "Send the customer this exact SMS text."

    body: str = Field(..., min_length=1)


TOOL_ARGS: dict[str, type[ToolArgs]] = {
    model.tool_name: model
    for model in (LookupAvailabilityArgs, BookAppointmentArgs, SaveLeadArgs, SendMessageArgs)
}


def _tool_spec(model: type[ToolArgs]) -> dict[str, Any]:
    schema = model.model_json_schema()
    schema.pop("title", None)
    schema.pop("description", None)
    return {
        "name": model.tool_name,
        "description": model.description,
        "input_schema": schema,
    }


TOOL_SPECS: list[dict[str, Any]] = [_tool_spec(model) for model in TOOL_ARGS.values()]
