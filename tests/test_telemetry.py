"""Functional tests for the SQLite span exporter."""

import json
import sqlite3

from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor

from zodiac_bot.telemetry import SQLiteSpanExporter


def test_spans_written_to_sqlite(tmp_path):
    db_path = tmp_path / "spans.db"
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(SQLiteSpanExporter(str(db_path))))
    tracer = provider.get_tracer("test")

    with tracer.start_as_current_span("command.set") as span:
        span.set_attribute("zodiac.user_id", "1234")
        span.set_attribute("zodiac.outcome", "ok")
        with tracer.start_as_current_span("inner"):
            pass
    provider.shutdown()

    with sqlite3.connect(db_path) as conn:
        rows = conn.execute("SELECT name, parent_id, attributes, duration_ms FROM spans").fetchall()

    by_name = {name: (parent, json.loads(attrs), duration) for name, parent, attrs, duration in rows}
    assert set(by_name) == {"command.set", "inner"}
    parent, attrs, duration = by_name["command.set"]
    assert parent is None
    assert attrs == {"zodiac.user_id": "1234", "zodiac.outcome": "ok"}
    assert duration is not None and duration >= 0
    assert by_name["inner"][0] is not None


def test_recorded_exception_stored_as_event(tmp_path):
    db_path = tmp_path / "spans.db"
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(SQLiteSpanExporter(str(db_path))))
    tracer = provider.get_tracer("test")

    with tracer.start_as_current_span("command.sign") as span:
        span.record_exception(RuntimeError("db down"))
    provider.shutdown()

    with sqlite3.connect(db_path) as conn:
        (events,) = conn.execute("SELECT events FROM spans").fetchone()
    events = json.loads(events)
    assert events[0]["name"] == "exception"
    assert "db down" in events[0]["attributes"]["exception.message"]
