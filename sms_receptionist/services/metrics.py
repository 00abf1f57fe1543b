"""CloudWatch custom metrics for every external call the receptionist makes.

Covers the model endpoint (``anthropic``), Google OAuth, Calendar, Sheets
and Twilio.  Each call produces a ``CallCount`` point, plus ``Latency`` when
it was timed and ``ErrorCount`` when it failed.  Points queue in memory and a
background flusher ships them every ``FLUSH_INTERVAL_SECONDS``.

Publishing is off unless ``METRICS_ENABLED=true``; locally the queue is just
drained and logged at DEBUG.

Usage
-----
>>> from sms_receptionist.services.metrics import metrics
>>> with metrics.track("twilio", "messages.create"):
...     client.messages.create(...)
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "SmsReceptionist"
FLUSH_INTERVAL_SECONDS = 60
# PutMetricData accepts at most this many points per call
PUT_BATCH_LIMIT = 1_000


def _dimensions(**pairs: str) -> list[dict[str, str]]:
    return [{"Name": name, "Value": value} for name, value in pairs.items()]


class MetricsClient:
    def __init__(self, enabled: bool | None = None, namespace: str = NAMESPACE) -> None:
        if enabled is None:
            enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self.enabled = enabled
        self.namespace = namespace
        self._pending: list[dict[str, Any]] = []
        self._pending_lock = threading.Lock()
        self._cloudwatch = None
        self._stopped = threading.Event()
        self._flusher: threading.Thread | None = None

        if self.enabled:
            self.start()

    @property
    def cloudwatch(self):
        if self._cloudwatch is None:
            import boto3

            self._cloudwatch = boto3.client("cloudwatch")
        return self._cloudwatch

    # ── Recording ────────────────────────────────────────────────────

    @contextmanager
    def track(self, service: str, operation: str) -> Iterator[None]:
        """Time the wrapped block and record it as a success or failure.

        Exceptions are recorded and re-raised unchanged.
        """
        started = time.perf_counter()
        try:
            yield
        except Exception as exc:
            self.record_failure(
                service, operation,
                error_type=type(exc).__name__,
                latency_ms=(time.perf_counter() - started) * 1000,
            )
            raise
        self.record_success(service, operation, latency_ms=(time.perf_counter() - started) * 1000)

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        self._enqueue(
            self._point("CallCount", 1, "Count", Service=service, Status="success"),
            self._point("Latency", latency_ms, "Milliseconds", Service=service, Operation=operation),
        )
        logger.debug("Metric: %s %s ok %.1fms", service, operation, latency_ms)

    def record_failure(
        self,
        service: str,
        operation: str,
        error_type: str,
        latency_ms: float = 0,
    ) -> None:
        points = [
            self._point("CallCount", 1, "Count", Service=service, Status="failure"),
            self._point("ErrorCount", 1, "Count", Service=service, ErrorType=error_type),
        ]
        # Connection failures have no meaningful latency
        if latency_ms > 0:
            points.append(
                self._point(
                    "Latency", latency_ms, "Milliseconds", Service=service, Operation=operation,
                )
            )
        self._enqueue(*points)
        logger.debug(
            "Metric: %s %s failed (%s) %.1fms", service, operation, error_type, latency_ms,
        )

    @staticmethod
    def _point(name: str, value: float, unit: str, **dimensions: str) -> dict[str, Any]:
        return {
            "MetricName": f"External/{name}",
            "Dimensions": _dimensions(**dimensions),
            "Timestamp": datetime.now(UTC),
            "Value": value,
            "Unit": unit,
        }

    def _enqueue(self, *points: dict[str, Any]) -> None:
        with self._pending_lock:
            self._pending.extend(points)

    # ── Publishing ───────────────────────────────────────────────────

    def flush(self) -> int:
        """Ship every queued point.  Returns how many CloudWatch accepted."""
        with self._pending_lock:
            points, self._pending = self._pending, []
        if not points:
            return 0
        if not self.enabled:
            logger.debug("Metrics disabled; dropped %d queued point(s)", len(points))
            return 0

        published = 0
        try:
            for offset in range(0, len(points), PUT_BATCH_LIMIT):
                batch = points[offset : offset + PUT_BATCH_LIMIT]
                self.cloudwatch.put_metric_data(Namespace=self.namespace, MetricData=batch)
                published += len(batch)
        except Exception:
            logger.exception(
                "CloudWatch publish failed; %d of %d point(s) lost",
                len(points) - published, len(points),
            )
        else:
            logger.info("Published %d metric point(s) to CloudWatch", published)
        return published

    def start(self) -> None:
        """Run the periodic flusher on a daemon thread (idempotent)."""
        if self._flusher is not None:
            return

        def _run():
            while not self._stopped.wait(FLUSH_INTERVAL_SECONDS):
                self.flush()

        self._flusher = threading.Thread(target=_run, daemon=True, name="metrics-flush")
        self._flusher.start()
        atexit.register(self.stop)
        logger.info("Metrics flusher started (every %ds)", FLUSH_INTERVAL_SECONDS)

    def stop(self) -> None:
        """Stop the flusher and publish whatever is still queued."""
        self._stopped.set()
        self.flush()


metrics = MetricsClient()
