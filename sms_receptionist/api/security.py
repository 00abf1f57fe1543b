"""Twilio webhook signature verification.

Runs as a route dependency, so a bad signature is rejected with 403 before
the dispatcher ever sees the message.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from fastapi import HTTPException, Request
from twilio.request_validator import RequestValidator

from sms_receptionist import config
from sms_receptionist.errors import TransportAuthError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Twilio-Signature"


def check_signature(
    validator: RequestValidator,
    url: str,
    params: Mapping[str, str],
    signature: str | None,
) -> None:
    """Raise ``TransportAuthError`` unless *signature* signs *url* + *params*."""
    if not signature:
        raise TransportAuthError("Missing Twilio signature")
    if not validator.validate(url, dict(params), signature):
        raise TransportAuthError("Invalid Twilio signature")


async def verify_twilio_signature(request: Request) -> None:
    """FastAPI dependency guarding the SMS webhook.

    ``TWILIO_SKIP_VALIDATION=true`` disables the check for local curl
    testing; it is ignored in production.
    """
    if config.TWILIO_SKIP_VALIDATION and not config.IS_PRODUCTION:
        logger.warning("Twilio signature validation skipped (TWILIO_SKIP_VALIDATION=true)")
        return

    form = await request.form()
    url = config.TWILIO_WEBHOOK_URL or str(request.url)
    try:
        check_signature(
            RequestValidator(config.TWILIO_AUTH_TOKEN),
            url,
            {key: str(value) for key, value in form.items()},
            request.headers.get(SIGNATURE_HEADER),
        )
    except TransportAuthError as exc:
        logger.error("Rejected webhook call: %s", exc)
        raise HTTPException(status_code=403, detail="Invalid signature") from exc
