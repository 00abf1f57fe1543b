"""Shared plumbing for the Google Calendar and Sheets clients.

Both APIs go through ``googleapiclient`` discovery services authorised with
the business account's OAuth refresh token; ``google-auth`` mints and
refreshes access tokens as needed.  Requests retry with exponential backoff
on transport errors and 5xx responses; 4xx responses fail fast.

``httplib2`` connections are not thread-safe, and the webhook runs the
dispatcher on worker threads, so each thread builds its own service object.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

import google.auth.exceptions
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from sms_receptionist import config
from sms_receptionist.errors import GoogleAPIError
from sms_receptionist.services.metrics import metrics

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0

SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/spreadsheets",
]

_TRANSIENT_ERRORS = (TimeoutError, ConnectionError, google.auth.exceptions.TransportError)


def build_credentials() -> Credentials:
    """OAuth user credentials from the configured refresh token.

    No access token is stored; the first request triggers a refresh.
    """
    return Credentials(
        token=None,
        refresh_token=config.GOOGLE_REFRESH_TOKEN,
        client_id=config.GOOGLE_CLIENT_ID,
        client_secret=config.GOOGLE_CLIENT_SECRET,
        token_uri=config.GOOGLE_TOKEN_URL,
        scopes=SCOPES,
    )


def _status_of(exc: HttpError) -> int:
    return int(exc.resp.status)


class GoogleService:
    """Base class: one discovery API (e.g. ``calendar`` ``v3``) plus retries.

    Pass ``api`` to use a prebuilt (or mocked) service object for every
    thread instead of building one per thread.
    """

    service_name = "google"
    api_name = ""
    api_version = ""

    def __init__(self, credentials: Credentials | None = None, *, api: Any = None) -> None:
        self._credentials = credentials
        self._shared_api = api
        self._local = threading.local()

    @property
    def api(self) -> Any:
        if self._shared_api is not None:
            return self._shared_api
        service = getattr(self._local, "service", None)
        if service is None:
            if self._credentials is None:
                self._credentials = build_credentials()
            service = build(
                self.api_name, self.api_version,
                credentials=self._credentials, cache_discovery=False,
            )
            self._local.service = service
        return service

    def _execute(self, operation: str, request: Any) -> Any:
        """Run ``request.execute()`` with exponential-backoff retries."""
        last_error: Exception | None = None
        for attempt in range(1, MAX_RETRIES + 1):
            t0 = time.perf_counter()
            try:
                result = request.execute()
            except HttpError as exc:
                status = _status_of(exc)
                metrics.record_failure(self.service_name, operation, error_type=f"http_{status}")
                if status < 500:
                    raise GoogleAPIError(
                        f"Client error {status} on {operation}: {exc}", status_code=status,
                    ) from exc
                last_error = exc
                logger.warning(
                    "%s server error %d on attempt %d/%d. Retrying…",
                    self.service_name, status, attempt, MAX_RETRIES,
                )
            except google.auth.exceptions.RefreshError as exc:
                metrics.record_failure(self.service_name, operation, error_type="RefreshError")
                raise GoogleAPIError(f"Google credentials rejected: {exc}") from exc
            except _TRANSIENT_ERRORS as exc:
                last_error = exc
                metrics.record_failure(self.service_name, operation, error_type=type(exc).__name__)
                logger.warning(
                    "%s attempt %d/%d failed (%s). Retrying in %.1fs…",
                    self.service_name,
                    attempt,
                    MAX_RETRIES,
                    type(exc).__name__,
                    INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)),
                )
            else:
                metrics.record_success(
                    self.service_name, operation,
                    latency_ms=(time.perf_counter() - t0) * 1000,
                )
                return result

            time.sleep(INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)))

        status = _status_of(last_error) if isinstance(last_error, HttpError) else None
        raise GoogleAPIError(
            f"{self.service_name} {operation} failed after {MAX_RETRIES} retries: {last_error}",
            status_code=status,
        )
