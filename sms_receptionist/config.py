"""Centralized configuration for the SMS receptionist.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/sms-receptionist/<VARIABLE_NAME>``.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_SSM_PREFIX = "/sms-receptionist"
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM, or ``None`` when it cannot be read."""
    try:
        import boto3  # noqa: PLC0415 — lazy import, only needed on AWS

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"{_SSM_PREFIX}/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed", name)
        return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value

    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store {_SSM_PREFIX}/{name} (AWS)."
    )


def _int_env(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


# ── Runtime ─────────────────────────────────────────────────────────
ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
IS_PRODUCTION: bool = ENVIRONMENT == "production"
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# ── LLM ─────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY: str = _require_env("ANTHROPIC_API_KEY")
MODEL_NAME: str = os.getenv("MODEL_NAME", "claude-haiku-4-5")

# ── Google (Calendar + Sheets share one OAuth client) ───────────────
GOOGLE_CLIENT_ID: str = _require_env("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET: str = _require_env("GOOGLE_CLIENT_SECRET")
GOOGLE_REFRESH_TOKEN: str = _require_env("GOOGLE_REFRESH_TOKEN")
GOOGLE_TOKEN_URL: str = "https://oauth2.googleapis.com/token"

BUSINESS_CALENDAR_ID: str = _require_env("BUSINESS_CALENDAR_ID")
CALENDAR_TIMEZONE: str = os.getenv("CALENDAR_TIMEZONE", "America/New_York")

GOOGLE_SHEETS_ID: str = _require_env("GOOGLE_SHEETS_ID")
GOOGLE_SHEET_NAME: str = os.getenv("GOOGLE_SHEET_NAME", "Leads")

# ── Twilio ──────────────────────────────────────────────────────────
TWILIO_SID: str = _require_env("TWILIO_SID")
TWILIO_AUTH_TOKEN: str = _require_env("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER: str = _require_env("TWILIO_PHONE_NUMBER")
# Public URL Twilio posts to; part of the signed payload
TWILIO_WEBHOOK_URL: str = os.getenv("TWILIO_WEBHOOK_URL", "")
# Local curl testing only; never honoured in production
TWILIO_SKIP_VALIDATION: bool = (
    os.getenv("TWILIO_SKIP_VALIDATION", "false").lower() == "true" and not IS_PRODUCTION
)
SMS_MAX_LENGTH: int = _int_env("SMS_MAX_LENGTH", 1600)

# ── Conversation state ──────────────────────────────────────────────
HISTORY_LIMIT: int = _int_env("HISTORY_LIMIT", 20)
HOLD_TTL_MINUTES: int = _int_env("HOLD_TTL_MINUTES", 10)
SWEEP_INTERVAL_SECONDS: int = _int_env("SWEEP_INTERVAL_SECONDS", 300)

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = _int_env("SERVER_PORT", 8000)
