"""Conversational tool-dispatch loop for one inbound SMS.

Architecture:
  Each inbound message runs once through a LangGraph ``StateGraph``:

    decide ──(tool call)──> execute_tool ──┐
       │                                   ├─> record ─> send ─(ok)──> END
       ├──(text)───────> compose_text ─────┘              └─(failed)─> escalate ─> END
       └──(model error)──────────────────────────────────────────────> escalate ─> END

  1. **decide**        — reads history and any held slots from the store,
                         asks the model for a text reply or one tool call,
                         then appends the user turn.
  2. **execute_tool**  — validates the arguments against the tool's model
                         and runs its handler (calendar / lead sheet / SMS).
  3. **compose_text**  — uses the model's prose verbatim.
  4. **record**        — appends the assistant turn.
  5. **send**          — texts the reply, unless a booking confirmation
                         already went out in this pass.
  6. **escalate**      — best-effort "a human will follow up" SMS.

  Failures never propagate: every node reports them through the ``outcome``
  field of the graph state, and ``handle_message`` always returns a
  ``DispatchResult``.  Side effects are not rolled back; a booking placed
  upstream stays placed even if a later step fails.

  The graph holds no per-customer state.  History and holds live in the
  ``ConversationStore``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from langgraph.graph import END, StateGraph
from pydantic import BaseModel, ValidationError
from typing_extensions import TypedDict

from sms_receptionist.errors import ToolExecutionError
from sms_receptionist.models import EventDraft, LeadRecord, LeadStatus, Role
from sms_receptionist.prompts import get_system_prompt
from sms_receptionist.services.calendar_client import CalendarClient, get_calendar_client
from sms_receptionist.services.completion import (
    CompletionService,
    Decision,
    ToolCallDecision,
)
from sms_receptionist.services.conversation_store import ConversationStore
from sms_receptionist.services.messaging import MessagingService, get_messaging_service
from sms_receptionist.services.sheets_client import SheetsClient, get_sheets_client
from sms_receptionist.tools.schemas import (
    TOOL_ARGS,
    BookAppointmentArgs,
    LookupAvailabilityArgs,
    SaveLeadArgs,
    SendMessageArgs,
    ToolArgs,
)

logger = logging.getLogger(__name__)

# Slots shown inline in one SMS
PRESENTED_SLOTS = 2

GREETING_REPLY = "How can I help you today?"
NO_SLOTS_REPLY = "Sorry, no slots available in that timeframe. Can you try different dates?"
SAVE_LEAD_REPLY = "Thanks! I've saved your info. A specialist will follow up soon."
UNKNOWN_TOOL_REPLY = "I'm not sure how to handle that. Let me connect you with a specialist."
TOOL_FAILURE_REPLY = "Sorry, something went wrong. I'm connecting you with our team."


class Outcome(str, Enum):
    OK = "ok"
    TOOL_ERROR = "tool_error"
    MODEL_ERROR = "model_error"
    DELIVERY_ERROR = "delivery_error"
    INTERNAL_ERROR = "internal_error"


class ToolOutcome(BaseModel):
    reply: str
    booking_confirmed: bool = False


class DispatchResult(BaseModel):
    """What happened to one inbound message."""

    reply: str = ""
    outcome: Outcome = Outcome.OK
    booking_confirmed: bool = False
    tool_name: str | None = None
    escalated: bool = False


class DispatchState(TypedDict, total=False):
    """State flowing through the graph for a single message."""

    customer_id: str
    text: str
    decision: Decision
    reply: str
    outcome: Outcome
    booking_confirmed: bool
    tool_name: str | None
    error: str | None
    escalated: bool


ToolHandler = Callable[[str, str, ToolArgs], ToolOutcome]


class ToolDispatcher:
    """Routes one inbound message to a reply, running at most one tool."""

    def __init__(
        self,
        store: ConversationStore,
        completion: CompletionService,
        calendar: CalendarClient,
        leads: SheetsClient,
        messaging: MessagingService,
    ) -> None:
        self._store = store
        self._completion = completion
        self._calendar = calendar
        self._leads = leads
        self._messaging = messaging

        self._handlers: dict[type[ToolArgs], ToolHandler] = {
            LookupAvailabilityArgs: self._lookup_availability,
            BookAppointmentArgs: self._book_appointment,
            SaveLeadArgs: self._save_lead,
            SendMessageArgs: self._send_message,
        }
        unhandled = set(TOOL_ARGS.values()) - set(self._handlers)
        if unhandled:
            raise RuntimeError(
                f"No handler for tool(s): {sorted(m.tool_name for m in unhandled)}"
            )

        self._graph = self._build_graph()

    # ── Entry point ──────────────────────────────────────────────────

    def handle_message(self, customer_id: str, text: str) -> DispatchResult:
        """Process one inbound SMS end to end.  Never raises."""
        logger.info("Incoming SMS from %s: %r", customer_id, text)
        try:
            final = self._graph.invoke(
                {
                    "customer_id": customer_id,
                    "text": text,
                    "outcome": Outcome.OK,
                    "booking_confirmed": False,
                    "reply": "",
                    "tool_name": None,
                    "escalated": False,
                }
            )
        except Exception:
            logger.exception("Unhandled error while processing SMS from %s", customer_id)
            return DispatchResult(
                outcome=Outcome.INTERNAL_ERROR,
                escalated=self._escalate_safely(customer_id),
            )

        result = DispatchResult(
            reply=final.get("reply", ""),
            outcome=final.get("outcome", Outcome.OK),
            booking_confirmed=final.get("booking_confirmed", False),
            tool_name=final.get("tool_name"),
            escalated=final.get("escalated", False),
        )
        logger.info(
            "SMS from %s processed (outcome=%s, tool=%s)",
            customer_id, result.outcome.value, result.tool_name,
        )
        return result

    # ── Graph assembly ───────────────────────────────────────────────

    def _build_graph(self):
        graph = StateGraph(DispatchState)

        graph.add_node("decide", self._decide_node)
        graph.add_node("execute_tool", self._execute_tool_node)
        graph.add_node("compose_text", self._compose_text_node)
        graph.add_node("record", self._record_node)
        graph.add_node("send", self._send_node)
        graph.add_node("escalate", self._escalate_node)

        graph.set_entry_point("decide")
        graph.add_conditional_edges(
            "decide",
            route_decision,
            {
                "execute_tool": "execute_tool",
                "compose_text": "compose_text",
                "escalate": "escalate",
            },
        )
        graph.add_edge("execute_tool", "record")
        graph.add_edge("compose_text", "record")
        graph.add_edge("record", "send")
        graph.add_conditional_edges(
            "send", route_after_send, {"escalate": "escalate", END: END},
        )
        graph.add_edge("escalate", END)

        return graph.compile()

    # ── Nodes ────────────────────────────────────────────────────────

    def _decide_node(self, state: DispatchState) -> dict:
        customer_id = state["customer_id"]
        text = state["text"]
        history = self._store.get_history(customer_id)
        held = self._store.get_pending_hold(customer_id) or ()

        try:
            decision = self._completion.decide(get_system_prompt(held), history, text)
        except Exception as exc:
            logger.error("Model decision failed for %s: %s", customer_id, exc)
            return {"outcome": Outcome.MODEL_ERROR, "error": str(exc)}

        self._store.append_turn(customer_id, Role.USER, text)
        return {"decision": decision}

    def _execute_tool_node(self, state: DispatchState) -> dict:
        customer_id = state["customer_id"]
        decision = state["decision"]
        name = decision.name
        logger.info("Tool call requested by %s: %s %s", customer_id, name, decision.arguments)

        args_model = TOOL_ARGS.get(name)
        if args_model is None:
            logger.warning("Model requested unknown tool %r", name)
            return {"reply": UNKNOWN_TOOL_REPLY, "tool_name": name}

        try:
            try:
                args = args_model.model_validate(decision.arguments)
            except ValidationError as exc:
                raise ToolExecutionError(
                    name, f"invalid arguments ({exc.error_count()} error(s))",
                ) from exc
            outcome = self._handlers[args_model](customer_id, state["text"], args)
        except Exception as exc:
            logger.exception("Tool %s failed for %s", name, customer_id)
            return {
                "reply": TOOL_FAILURE_REPLY,
                "outcome": Outcome.TOOL_ERROR,
                "tool_name": name,
                "error": str(exc),
            }

        return {
            "reply": outcome.reply,
            "booking_confirmed": outcome.booking_confirmed,
            "tool_name": name,
        }

    def _compose_text_node(self, state: DispatchState) -> dict:
        return {"reply": state["decision"].text or GREETING_REPLY}

    def _record_node(self, state: DispatchState) -> dict:
        self._store.append_turn(state["customer_id"], Role.ASSISTANT, state["reply"])
        return {}

    def _send_node(self, state: DispatchState) -> dict:
        if state.get("booking_confirmed"):
            # The confirmation SMS sent by the booking handler stands in for the reply
            return {}
        try:
            self._messaging.send(state["customer_id"], state["reply"])
        except Exception as exc:
            logger.exception("Failed to send reply to %s", state["customer_id"])
            return {"outcome": Outcome.DELIVERY_ERROR, "error": str(exc)}
        return {}

    def _escalate_node(self, state: DispatchState) -> dict:
        return {"escalated": self._escalate_safely(state["customer_id"])}

    def _escalate_safely(self, customer_id: str) -> bool:
        try:
            self._messaging.send_escalation(customer_id)
        except Exception:
            logger.exception("Failed to send escalation message to %s", customer_id)
            return False
        return True

    # ── Tool handlers ────────────────────────────────────────────────

    def _lookup_availability(
        self, customer_id: str, text: str, args: LookupAvailabilityArgs,
    ) -> ToolOutcome:
        if args.end_date < args.start_date:
            raise ToolExecutionError(args.tool_name, "end_date is before start_date")

        slots = self._calendar.lookup_availability(
            args.start_date, args.end_date, args.time_of_day, args.duration_minutes,
        )
        if not slots:
            return ToolOutcome(reply=NO_SLOTS_REPLY)

        self._store.set_pending_hold(customer_id, slots)
        shown = slots[:PRESENTED_SLOTS]
        options = "\n".join(f"{i}) {slot.label}" for i, slot in enumerate(shown, start=1))
        choices = " or ".join(f'"Book {i}"' for i in range(1, len(shown) + 1))
        return ToolOutcome(
            reply=f"Great! I found these times:\n{options}\nReply with {choices} to confirm."
        )

    def _book_appointment(
        self, customer_id: str, text: str, args: BookAppointmentArgs,
    ) -> ToolOutcome:
        draft = EventDraft(
            summary=f"{args.service_type} — {args.customer_name}",
            description=(
                f"Phone: {args.phone or customer_id}\n"
                f"Email: {args.email or 'N/A'}\n"
                f"Address: {args.address or 'N/A'}\n"
                f"Notes: {args.notes}"
            ),
            start_time=args.start_time.isoformat(),
            end_time=args.end_time.isoformat(),
            timezone=self._calendar.timezone,
            attendees=[args.email] if args.email else [],
        )
        booking = self._calendar.create_event(draft)

        self._leads.append_lead(
            LeadRecord(
                customer_name=args.customer_name,
                phone=customer_id,
                email=args.email,
                service_type=args.service_type,
                address=args.address,
                message=text,
                source="sms",
                agent_notes=f"Appointment booked: {args.service_type}",
                appointment_id=booking.event_id,
            )
        )
        self._leads.update_status(customer_id, LeadStatus.BOOKED.value)
        self._store.clear_pending_hold(customer_id)
        self._messaging.send_booking_confirmation(
            customer_id, args.service_type, args.start_time.isoformat(),
        )

        return ToolOutcome(
            reply=(
                f"Booked! Your {args.service_type} is scheduled. "
                f"Event: {booking.link or 'Calendar confirmed'}. "
                "We'll remind you 24 hours before."
            ),
            booking_confirmed=True,
        )

    def _save_lead(self, customer_id: str, text: str, args: SaveLeadArgs) -> ToolOutcome:
        lead = LeadRecord(
            **args.model_dump(exclude={"phone", "source"}),
            phone=args.phone or customer_id,
            source=args.source or "sms",
        )
        self._leads.append_lead(lead)
        return ToolOutcome(reply=SAVE_LEAD_REPLY)

    def _send_message(self, customer_id: str, text: str, args: SendMessageArgs) -> ToolOutcome:
        return ToolOutcome(reply=args.body)


# ── Conditional edges ────────────────────────────────────────────────


def route_decision(state: DispatchState) -> str:
    if state.get("outcome") == Outcome.MODEL_ERROR:
        return "escalate"
    if isinstance(state.get("decision"), ToolCallDecision):
        return "execute_tool"
    return "compose_text"


def route_after_send(state: DispatchState) -> str:
    if state.get("outcome", Outcome.OK) != Outcome.OK:
        return "escalate"
    return END


def build_dispatcher(store: ConversationStore) -> ToolDispatcher:
    """Wire a dispatcher to the process-wide collaborators."""
    return ToolDispatcher(
        store=store,
        completion=CompletionService(),
        calendar=get_calendar_client(),
        leads=get_sheets_client(),
        messaging=get_messaging_service(),
    )
