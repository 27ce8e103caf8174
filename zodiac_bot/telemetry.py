import sqlite3
import json
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter, SpanExportResult
from zodiac_bot.config import DATA_DIR

TRACE_DB = DATA_DIR / "zodiac-bot.db"


class SQLiteSpanExporter(SpanExporter):
    """Writes finished command spans to a local SQLite file."""

    def __init__(self, db_path: str = str(TRACE_DB)):
        self.db_path = db_path
        self._init_db()

    def _init_db(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS spans (
                    id TEXT PRIMARY KEY,
                    trace_id TEXT NOT NULL,
                    parent_id TEXT,
                    name TEXT NOT NULL,
                    start_time INTEGER NOT NULL,
                    end_time INTEGER,
                    duration_ms REAL,
                    status_code TEXT,
                    attributes TEXT,
                    events TEXT
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_spans_name ON spans(name)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_spans_start ON spans(start_time DESC)")

    def export(self, spans: list[ReadableSpan]) -> SpanExportResult:
        with sqlite3.connect(self.db_path) as conn:
            for span in spans:
                span_id = format(span.context.span_id, '016x')
                trace_id = format(span.context.trace_id, '032x')
                parent_id = format(span.parent.span_id, '016x') if span.parent else None

                duration_ms = None
                if span.end_time and span.start_time:
                    duration_ms = (span.end_time - span.start_time) / 1_000_000

                status_code = span.status.status_code.name if span.status else "UNSET"

                # Exceptions recorded at the dispatch boundary arrive as events
                events = [
                    {
                        "name": e.name,
                        "timestamp": e.timestamp,
                        "attributes": dict(e.attributes) if e.attributes else {},
                    }
                    for e in span.events
                ]

                conn.execute(
                    "INSERT OR REPLACE INTO spans VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        span_id,
                        trace_id,
                        parent_id,
                        span.name,
                        span.start_time,
                        span.end_time,
                        duration_ms,
                        status_code,
                        json.dumps(dict(span.attributes) if span.attributes else {}),
                        json.dumps(events),
                    )
                )
        return SpanExportResult.SUCCESS

    def shutdown(self):
        pass


def setup_tracing(version: str, db_path: str = str(TRACE_DB)) -> TracerProvider:
    """Install a global TracerProvider that batches spans into SQLite."""
    resource = Resource.create({
        "service.name": "zodiac-bot",
        "service.version": version,
    })
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(SQLiteSpanExporter(db_path)))
    trace.set_tracer_provider(provider)
    return provider
