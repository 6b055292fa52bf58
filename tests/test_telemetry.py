"""Tests for agentdeck.telemetry: sqlite collector and reporters."""

from __future__ import annotations

import sqlite3

from agentdeck.telemetry import LoggingReporter, TelemetryCollector, TelemetryReporter


def test_record_metric_persists_row_and_tags(tmp_path):
    db_path = tmp_path / "telemetry.db"
    collector = TelemetryCollector(db_path)
    collector.record_metric("command_latency_seconds", 0.25, {"command": "fetch_task"})

    conn = sqlite3.connect(db_path)
    try:
        row = conn.execute(
            "SELECT metric_type, value, tags_json FROM metrics ORDER BY id DESC LIMIT 1"
        ).fetchone()
    finally:
        conn.close()

    assert row[0] == "command_latency_seconds"
    assert float(row[1]) == 0.25
    assert "fetch_task" in row[2]


def fetch_rows(db_path, query):
    conn = sqlite3.connect(db_path)
    try:
        return conn.execute(query).fetchall()
    finally:
        conn.close()


def test_record_error_creates_parent_directory(tmp_path):
    db_path = tmp_path / "nested" / "telemetry.db"
    collector = TelemetryCollector(db_path)
    collector.record_error("RpcError", "unavailable: down")
    collector.record_error("OSError", "refused")

    rows = fetch_rows(db_path, "SELECT error_type, message FROM errors ORDER BY id")
    assert rows == [("RpcError", "unavailable: down"), ("OSError", "refused")]


def test_reporter_flushes_on_close(tmp_path):
    db_path = tmp_path / "telemetry.db"
    collector = TelemetryCollector(db_path)
    reporter = TelemetryReporter(collector)
    reporter.capture(ValueError("bad value"))
    reporter.record_metric("latency", 2.0)
    reporter.close()

    assert fetch_rows(db_path, "SELECT error_type, message FROM errors") == [("ValueError", "bad value")]
    assert fetch_rows(db_path, "SELECT metric_type, value FROM metrics") == [("latency", 2.0)]

    # Writes after close are dropped
    reporter.capture(ValueError("late"))
    assert len(fetch_rows(db_path, "SELECT id FROM errors")) == 1


def test_logging_reporter_is_inert():
    reporter = LoggingReporter()
    reporter.capture(RuntimeError("x"))
    reporter.record_metric("latency", 1.0)
    reporter.close()
