"""Local error and metric collection.

The session reports every failure here before it is translated for the
user.  Reporting never blocks the UI: writes go to a single background
thread and any failure in that path is logged and dropped.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso_utc(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat()


class TelemetryCollector:
    """Stores errors and metrics in a sqlite database."""

    def __init__(self, db_path: Path):
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS metrics (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    metric_type TEXT NOT NULL,
                    value REAL NOT NULL,
                    tags_json TEXT NOT NULL DEFAULT '{}'
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS errors (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    error_type TEXT NOT NULL,
                    message TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_metrics_type_ts ON metrics(metric_type, timestamp)"
            )
            conn.commit()

    def record_metric(
        self,
        metric_type: str,
        value: float,
        tags: dict | None = None,
    ) -> None:
        """Record a single metric data point."""
        payload = json.dumps(tags or {}, sort_keys=True)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO metrics(timestamp, metric_type, value, tags_json)
                VALUES (?, ?, ?, ?)
                """,
                (_iso_utc(_utc_now()), metric_type, float(value), payload),
            )
            conn.commit()

    def record_error(self, error_type: str, message: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO errors(timestamp, error_type, message) VALUES (?, ?, ?)",
                (_iso_utc(_utc_now()), error_type, message),
            )
            conn.commit()


class LoggingReporter:
    """Reporter that only writes to the log."""

    def capture(self, exc: BaseException) -> None:
        logger.debug("Captured %s: %s", type(exc).__name__, exc)

    def record_metric(self, metric_type: str, value: float, tags: dict | None = None) -> None:
        logger.debug("Metric %s=%s %s", metric_type, value, tags or {})

    def close(self) -> None:
        pass


class TelemetryReporter:
    """Fire-and-forget reporter backed by a :class:`TelemetryCollector`."""

    def __init__(self, collector: TelemetryCollector):
        self._collector = collector
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="agentdeck-telemetry",
        )
        self._closed = False

    def _submit(self, fn, *args) -> None:
        if self._closed:
            return
        try:
            future = self._executor.submit(fn, *args)
        except RuntimeError:
            # Executor already shut down
            return
        future.add_done_callback(self._log_failure)

    @staticmethod
    def _log_failure(future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.debug("Telemetry write failed: %s", exc)

    def capture(self, exc: BaseException) -> None:
        logger.debug("Captured %s: %s", type(exc).__name__, exc)
        self._submit(self._collector.record_error, type(exc).__name__, str(exc))

    def record_metric(self, metric_type: str, value: float, tags: dict | None = None) -> None:
        self._submit(self._collector.record_metric, metric_type, value, tags)

    def close(self) -> None:
        """Flush pending writes and stop the worker thread."""
        self._closed = True
        self._executor.shutdown(wait=True)
