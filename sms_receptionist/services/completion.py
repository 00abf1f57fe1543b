"""Model decision step: text reply or a single named tool call.

Wraps a tool-bound ``ChatAnthropic``.  The model sees the system prompt,
the stored history and the new customer text, and either answers in prose
or picks exactly one of the declared tools.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Literal

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from pydantic import BaseModel, Field

from sms_receptionist import config
from sms_receptionist.errors import ModelUnavailableError
from sms_receptionist.models import ConversationTurn, Role
from sms_receptionist.services.metrics import metrics
from sms_receptionist.tools.schemas import TOOL_SPECS

logger = logging.getLogger(__name__)


class TextDecision(BaseModel):
    kind: Literal["text"] = "text"
    text: str = ""


class ToolCallDecision(BaseModel):
    kind: Literal["tool_call"] = "tool_call"
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


Decision = TextDecision | ToolCallDecision


def _build_llm():
    """Build the tool-bound chat model (kept short for SMS-length replies)."""
    llm = ChatAnthropic(
        model=config.MODEL_NAME,
        api_key=config.ANTHROPIC_API_KEY,
        temperature=0.7,
        max_tokens=500,
    )
    return llm.bind_tools(TOOL_SPECS)


def to_messages(history: Sequence[ConversationTurn]) -> list[BaseMessage]:
    return [
        HumanMessage(content=turn.content)
        if turn.role is Role.USER
        else AIMessage(content=turn.content)
        for turn in history
    ]


def _text_of(message: AIMessage) -> str:
    """Flatten Anthropic content blocks into plain text."""
    if isinstance(message.content, str):
        return message.content
    return "".join(
        block.get("text", "")
        for block in message.content
        if isinstance(block, dict) and block.get("type") == "text"
    )


class CompletionService:
    def __init__(self, llm=None) -> None:
        self._llm = llm if llm is not None else _build_llm()

    def decide(
        self,
        system_prompt: str,
        history: Sequence[ConversationTurn],
        user_text: str,
    ) -> Decision:
        """Ask the model what to do with *user_text*.

        Raises:
            ModelUnavailableError: the model call failed for any reason.
        """
        messages = [
            SystemMessage(content=system_prompt),
            *to_messages(history),
            HumanMessage(content=user_text),
        ]
        try:
            with metrics.track("anthropic", "llm_invoke"):
                response = self._llm.invoke(messages)
        except Exception as exc:
            raise ModelUnavailableError(f"Completion failed: {exc}") from exc

        tool_calls = getattr(response, "tool_calls", None) or []
        if tool_calls:
            call = tool_calls[0]
            if len(tool_calls) > 1:
                logger.warning(
                    "Model requested %d tool calls; only %s will run",
                    len(tool_calls), call["name"],
                )
            return ToolCallDecision(name=call["name"], arguments=call.get("args") or {})
        return TextDecision(text=_text_of(response).strip())
