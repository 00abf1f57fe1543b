"""FastAPI route definitions: SMS webhook, admin views and health."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, Form, HTTPException, Request, Response
from twilio.twiml.messaging_response import MessagingResponse

from sms_receptionist.api.schemas import (
    ConversationResponse,
    HealthResponse,
    InitSheetResponse,
    LeadsResponse,
)
from sms_receptionist.api.security import verify_twilio_signature

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_state(request: Request, name: str):
    """Fetch a collaborator the lifespan attached to ``app.state``."""
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=503,
            detail="The service is still starting up. Please try again in a moment.",
        )
    return value


def _empty_twiml() -> Response:
    return Response(content=str(MessagingResponse()), media_type="text/xml")


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.post("/webhook/sms", dependencies=[Depends(verify_twilio_signature)])
async def sms_webhook(
    http_request: Request,
    From: str = Form(...),  # noqa: N803 — Twilio's field names
    Body: str = Form(""),  # noqa: N803
):
    """Inbound SMS from Twilio.

    Always answers 200 with empty TwiML, whatever happens inside: the reply
    goes out through the REST API, and a non-2xx here would only make Twilio
    resend the message and the customer get duplicate replies.
    """
    request_id = getattr(http_request.state, "request_id", "?")
    dispatcher = getattr(http_request.app.state, "dispatcher", None)
    if dispatcher is None:
        logger.error("[%s] SMS from %s dropped: dispatcher not ready", request_id, From)
        return _empty_twiml()

    try:
        # The dispatcher makes blocking network calls; keep the event loop free
        result = await asyncio.to_thread(dispatcher.handle_message, From, Body)
        logger.info(
            "[%s] SMS from %s handled (outcome=%s)", request_id, From, result.outcome.value,
        )
    except Exception:
        logger.exception("[%s] Unexpected error handling SMS from %s", request_id, From)
    return _empty_twiml()


@router.get("/admin/conversations/{phone}", response_model=ConversationResponse)
async def get_conversation(phone: str, http_request: Request):
    """A customer's stored history.  Unauthenticated; keep off the public internet."""
    store = _get_state(http_request, "store")
    return ConversationResponse(phone=phone, history=store.get_history(phone))


@router.get("/admin/leads", response_model=LeadsResponse)
async def list_leads(http_request: Request):
    leads_store = _get_state(http_request, "leads")
    try:
        leads = await asyncio.to_thread(leads_store.list_leads)
    except Exception as e:
        logger.exception("Error fetching leads")
        raise HTTPException(status_code=500, detail="Failed to fetch leads") from e
    return LeadsResponse(count=len(leads), leads=leads)


@router.post("/admin/init-sheet", response_model=InitSheetResponse)
async def init_sheet(http_request: Request):
    """Write the lead sheet's header row if the sheet is empty."""
    leads_store = _get_state(http_request, "leads")
    try:
        written = await asyncio.to_thread(leads_store.initialize_sheet)
    except Exception as e:
        logger.exception("Error initializing sheet")
        raise HTTPException(status_code=500, detail="Failed to initialize sheet") from e
    return InitSheetResponse(headers_written=written)
