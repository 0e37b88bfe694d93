"""CloudWatch custom metrics emitter with background batching.

Two families of metrics:

* ``Collaborator/*``: count, latency and errors of every external call a
  chat turn depends on (``llm``, ``neo4j``, ``embeddings``), recorded
  through the :func:`timed` context manager.
* ``Tool/InvocationCount``: one data point per tool the LLM asks for,
  split by tool and outcome, recorded by the tool registry.

Design
------
* Metrics are collected in a thread-safe in-memory buffer.
* A daemon thread flushes the buffer to CloudWatch every
  ``FLUSH_INTERVAL_SECONDS`` (default 60 s).
* When running locally (``METRICS_ENABLED != "true"``), metrics are
  logged at DEBUG level but **not** pushed to CloudWatch.
* Each ``put_metric_data`` call sends up to 1 000 metric data points
  (the CloudWatch API limit per request).

Usage
-----
>>> from webbrain.services.metrics import metrics
>>> metrics.record_success("neo4j", "fetch_embedded_nodes", latency_ms=42.0)
>>> metrics.record_failure("llm", "chat_completion", error_type="APITimeoutError")
>>> metrics.record_tool_call("search_materials", "success")
>>> with timed("embeddings", "embed_query"):
...     vector = model.encode([query])
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

NAMESPACE = "WebBrain"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000  # CloudWatch API limit per PutMetricData call


class MetricsClient:
    """Batched CloudWatch metrics publisher."""

    def __init__(self) -> None:
        self._enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None  # lazy-init

        if self._enabled:
            self._start_flush_thread()

    def _get_cw_client(self):
        """Create the boto3 CloudWatch client on first use."""
        if self._cw_client is None:
            import boto3

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    # ── Public API ────────────────────────────────────────────────────

    def record_success(
        self,
        service: str,
        operation: str,
        latency_ms: float,
    ) -> None:
        """Record a successful collaborator call."""
        now = datetime.now(UTC)
        self._point("Collaborator/RequestCount", now, Service=service, Status="success")
        self._point(
            "Collaborator/Latency", now, value=latency_ms, unit="Milliseconds",
            Service=service, Operation=operation,
        )
        logger.debug(
            "Metric: %s %s success latency=%.1fms", service, operation, latency_ms,
        )

    def record_failure(
        self,
        service: str,
        operation: str,
        error_type: str,
        latency_ms: float = 0,
    ) -> None:
        """Record a failed collaborator call.

        A call that failed before it could be timed (``latency_ms == 0``)
        adds no latency point.
        """
        now = datetime.now(UTC)
        self._point("Collaborator/RequestCount", now, Service=service, Status="failure")
        self._point("Collaborator/ErrorCount", now, Service=service, ErrorType=error_type)
        if latency_ms > 0:
            self._point(
                "Collaborator/Latency", now, value=latency_ms, unit="Milliseconds",
                Service=service, Operation=operation,
            )
        logger.debug(
            "Metric: %s %s failure error=%s latency=%.1fms",
            service, operation, error_type, latency_ms,
        )

    def record_tool_call(self, tool: str, outcome: str) -> None:
        """Record one tool execution requested by the LLM.

        *outcome* is ``success``, ``error`` (the tool answered with an error
        payload) or ``unknown_tool``.  Unknown names share one ``unknown``
        dimension value; the model can invent any number of them.
        """
        self._point(
            "Tool/InvocationCount", datetime.now(UTC),
            Tool="unknown" if outcome == "unknown_tool" else tool,
            Outcome=outcome,
        )
        logger.debug("Metric: tool %s outcome=%s", tool, outcome)

    def flush(self) -> int:
        """Send buffered metrics to CloudWatch.  Returns count sent."""
        with self._lock:
            if not self._buffer:
                return 0
            batch = self._buffer[:]
            self._buffer.clear()

        if not self._enabled:
            logger.debug("Metrics flush skipped (not enabled): %d items", len(batch))
            return 0

        sent = 0
        try:
            cw = self._get_cw_client()
            for i in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[i : i + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metrics to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    # ── Internal ──────────────────────────────────────────────────────

    def _point(
        self,
        name: str,
        timestamp: datetime,
        *,
        value: float = 1,
        unit: str = "Count",
        **dimensions: str,
    ) -> None:
        """Buffer one data point; keyword arguments become its dimensions."""
        metric_data = {
            "MetricName": name,
            "Dimensions": [{"Name": k, "Value": v} for k, v in dimensions.items()],
            "Timestamp": timestamp,
            "Value": value,
            "Unit": unit,
        }
        with self._lock:
            self._buffer.append(metric_data)

    def _start_flush_thread(self) -> None:
        """Start a daemon thread that flushes metrics periodically."""

        def _loop():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                try:
                    self.flush()
                except Exception:
                    logger.exception("Metrics flush thread error")

        t = threading.Thread(target=_loop, daemon=True, name="metrics-flush")
        t.start()
        atexit.register(self.flush)
        logger.info(
            "Metrics flush thread started (interval=%ds)", FLUSH_INTERVAL_SECONDS,
        )


@contextmanager
def timed(service: str, operation: str) -> Iterator[None]:
    """Record the wrapped collaborator call on the ``metrics`` singleton.

    Exceptions are recorded as failures and re-raised unchanged.
    """
    t0 = time.perf_counter()
    try:
        yield
    except Exception as exc:
        metrics.record_failure(
            service, operation,
            error_type=type(exc).__name__,
            latency_ms=(time.perf_counter() - t0) * 1000,
        )
        raise
    metrics.record_success(
        service, operation, latency_ms=(time.perf_counter() - t0) * 1000,
    )


# ── Module-level singleton ──────────────────────────────────────────
metrics = MetricsClient()
