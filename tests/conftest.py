"""Shared test fixtures for the SMS receptionist test suite."""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

import pytest

_TEST_ENV = {
    "ANTHROPIC_API_KEY": "test-anthropic-key-123",
    "GOOGLE_CLIENT_ID": "test-client-id",
    "GOOGLE_CLIENT_SECRET": "test-client-secret",
    "GOOGLE_REFRESH_TOKEN": "test-refresh-token",
    "BUSINESS_CALENDAR_ID": "business@example.com",
    "GOOGLE_SHEETS_ID": "sheet-123",
    "TWILIO_SID": "ACtest",
    "TWILIO_AUTH_TOKEN": "twilio-test-token",
    "TWILIO_PHONE_NUMBER": "+15550000000",
}


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    for name, value in _TEST_ENV.items():
        os.environ.setdefault(name, value)


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

