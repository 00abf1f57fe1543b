"""FastAPI server for the SMS receptionist.

Run with:
    uvicorn sms_receptionist.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import timedelta

import uvicorn
from fastapi import FastAPI, Request, Response

from sms_receptionist import config
from sms_receptionist.api.routes import router
from sms_receptionist.dispatcher import build_dispatcher
from sms_receptionist.services.conversation_store import ConversationStore, HoldSweeper
from sms_receptionist.services.sheets_client import get_sheets_client

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Start-up: build the store, the dispatcher and the hold sweeper once.

    Everything lives on ``app.state`` so routes and tests share one wiring
    point.  Shutdown stops the sweeper thread.
    """
    store = ConversationStore(
        history_limit=config.HISTORY_LIMIT,
        hold_ttl=timedelta(minutes=config.HOLD_TTL_MINUTES),
    )
    sweeper = HoldSweeper(store, config.SWEEP_INTERVAL_SECONDS)

    logger.info("Building dispatcher…")
    application.state.store = store
    application.state.leads = get_sheets_client()
    application.state.dispatcher = build_dispatcher(store)
    sweeper.start()
    logger.info("Receptionist ready (env=%s).", config.ENVIRONMENT)
    yield
    sweeper.stop()


app = FastAPI(
    title="SMS Receptionist",
    description="SMS booking assistant: availability, appointments and lead capture.",
    version="1.0.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a request ID to every request for log correlation."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "SMS Receptionist",
        "version": "1.0.0",
        "webhook": "/api/webhook/sms",
        "health": "/api/health",
    }


if __name__ == "__main__":
    logger.info("Starting SMS receptionist on %s:%d", config.SERVER_HOST, config.SERVER_PORT)
    uvicorn.run(
        "sms_receptionist.server:app",
        host=config.SERVER_HOST,
        port=config.SERVER_PORT,
        reload=not config.IS_PRODUCTION,
    )
