"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from sms_receptionist.models import ConversationTurn, LeadRecord


class ConversationResponse(BaseModel):
    """A customer's stored history (admin view)."""

    phone: str
    history: list[ConversationTurn] = Field(default_factory=list)


class LeadsResponse(BaseModel):
    count: int
    leads: list[LeadRecord] = Field(default_factory=list)


class InitSheetResponse(BaseModel):
    success: bool = True
    headers_written: bool = Field(..., description="False when the sheet already had rows")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "sms-receptionist"
