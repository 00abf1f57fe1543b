"""Tests for the model decision step and the tool definitions it is bound to."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from sms_receptionist.errors import ModelUnavailableError
from sms_receptionist.models import ConversationTurn, Role
from sms_receptionist.services.completion import (
    CompletionService,
    TextDecision,
    ToolCallDecision,
)
from sms_receptionist.tools.schemas import TOOL_ARGS, TOOL_SPECS

# ── Helpers ──────────────────────────────────────────────────────────


def _make_mock_llm(content, tool_calls: list | None = None):
    """Create a mock LLM that returns a fixed AIMessage."""
    mock_llm = MagicMock()
    ai_msg = AIMessage(content=content)
    if tool_calls:
        ai_msg.tool_calls = tool_calls
    mock_llm.invoke.return_value = ai_msg
    return mock_llm


def _call(name: str, args: dict, call_id: str = "call_1") -> dict:
    return {"name": name, "args": args, "id": call_id, "type": "tool_call"}


HISTORY = [
    ConversationTurn(role=Role.USER, content="I need a plumber"),
    ConversationTurn(role=Role.ASSISTANT, content="Sure! Which days work?"),
]


# ── TestDecide ───────────────────────────────────────────────────────


class TestDecide:
    def test_text_reply(self):
        llm = _make_mock_llm("  What's your address?  ")
        decision = CompletionService(llm=llm).decide("prompt", HISTORY, "Tomorrow")

        assert decision == TextDecision(text="What's your address?")

    def test_messages_in_order(self):
        llm = _make_mock_llm("ok")
        CompletionService(llm=llm).decide("system text", HISTORY, "Tomorrow")

        messages = llm.invoke.call_args[0][0]
        assert isinstance(messages[0], SystemMessage)
        assert messages[0].content == "system text"
        assert isinstance(messages[1], HumanMessage)
        assert isinstance(messages[2], AIMessage)
        assert messages[2].content == "Sure! Which days work?"
        assert isinstance(messages[-1], HumanMessage)
        assert messages[-1].content == "Tomorrow"

    def test_tool_call(self):
        llm = _make_mock_llm(
            "",
            tool_calls=[_call("lookup_availability", {"start_date": "2026-03-02"})],
        )
        decision = CompletionService(llm=llm).decide("prompt", [], "Monday?")

        assert isinstance(decision, ToolCallDecision)
        assert decision.name == "lookup_availability"
        assert decision.arguments == {"start_date": "2026-03-02"}

    def test_only_first_tool_call_used(self):
        llm = _make_mock_llm(
            "",
            tool_calls=[
                _call("save_lead", {"customer_name": "Sam"}, "call_1"),
                _call("send_message", {"body": "Hi"}, "call_2"),
            ],
        )
        decision = CompletionService(llm=llm).decide("prompt", [], "Hi")

        assert decision.name == "save_lead"

    def test_content_blocks_flattened(self):
        llm = _make_mock_llm([
            {"type": "text", "text": "Hello "},
            {"type": "text", "text": "there!"},
        ])
        decision = CompletionService(llm=llm).decide("prompt", [], "Hi")

        assert decision == TextDecision(text="Hello there!")

    def test_failure_becomes_model_unavailable(self):
        llm = MagicMock()
        llm.invoke.side_effect = TimeoutError("read timeout")

        with pytest.raises(ModelUnavailableError, match="read timeout"):
            CompletionService(llm=llm).decide("prompt", [], "Hi")


# ── TestToolSpecs ────────────────────────────────────────────────────


class TestToolSpecs:
    def test_four_tools_declared(self):
        assert [spec["name"] for spec in TOOL_SPECS] == [
            "lookup_availability",
            "book_appointment",
            "save_lead",
            "send_message",
        ]

    def test_specs_are_anthropic_format(self):
        for spec in TOOL_SPECS:
            assert set(spec) == {"name", "description", "input_schema"}
            assert spec["input_schema"]["type"] == "object"
            assert spec["description"]

    def test_required_fields(self):
        specs = {spec["name"]: spec for spec in TOOL_SPECS}
        assert set(specs["lookup_availability"]["input_schema"]["required"]) == {
            "start_date", "end_date",
        }
        assert set(specs["book_appointment"]["input_schema"]["required"]) == {
            "customer_name", "service_type", "start_time", "end_time",
        }
        assert "required" not in specs["save_lead"]["input_schema"]

    def test_time_of_day_is_enumerated(self):
        lookup = TOOL_ARGS["lookup_availability"]
        args = lookup.model_validate(
            {"start_date": "2026-03-02", "end_date": "2026-03-03", "time_of_day": "evening"}
        )
        assert args.time_of_day == "evening"
        assert args.duration_minutes == 60

    def test_unknown_arguments_ignored(self):
        args = TOOL_ARGS["send_message"].model_validate({"body": "Hi", "urgency": "high"})
        assert args.body == "Hi"
