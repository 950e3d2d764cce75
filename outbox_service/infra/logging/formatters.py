"""JSON Lines formatter with trace correlation."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from opentelemetry import trace

# Attributes every LogRecord carries; anything else on a record came from
# ``extra=`` or the context filter and is copied into the output.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}

DEFAULT_FMT_KEYS = {"level": "levelname", "logger": "name", "message": "message"}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, timestamps in UTC.

    Extras such as event_id, event_type, activity or attempt_count land at the
    top level, so a log backend can follow one outbox event across the
    process, retry and cleanup jobs:

        {"timestamp": "2026-01-01T00:00:00.123Z", "level": "WARNING",
         "logger": "outbox_service.infra.events.outbox.bus",
         "message": "Outbox event delivery failed", "event_id": "...",
         "activity": "retry", "service": "outbox-service"}

    Args:
        fmt_keys: Output key to LogRecord attribute mapping.
        static: Fields added to every record.
    """

    def __init__(
        self,
        fmt_keys: dict[str, str] | None = None,
        static: dict[str, Any] | None = None,
    ) -> None:
        super().__init__()
        self.fmt_keys = fmt_keys or DEFAULT_FMT_KEYS
        self.static = static or {}

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        created = datetime.fromtimestamp(record.created, tz=UTC)
        data: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        }
        data.update((key, getattr(record, attr, None)) for key, attr in self.fmt_keys.items())

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            data["trace_id"] = format(span_context.trace_id, "032x")
            data["span_id"] = format(span_context.span_id, "016x")

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            data["stack_trace"] = self.formatStack(record.stack_info)

        data.update(self.static)
        data.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and key not in data
        )

        # json.dumps escapes embedded newlines, so tracebacks stay on one line
        return json.dumps(data, ensure_ascii=False, default=str)


__all__ = ["DEFAULT_FMT_KEYS", "JSONFormatter"]
