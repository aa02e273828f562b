"""Structured event logging for gridcalc.

Provides a unified event schema, filesystem NDJSON sink, and safe
emit helpers that never raise uncaught exceptions.
"""

from gridcalc.logging.events import (
    EventLevel,
    EventType,
    GridcalcEvent,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    reset_sink,
    set_project_dir,
    truncate_context,
)
from gridcalc.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "GridcalcEvent",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
    "reset_sink",
    "set_project_dir",
    "truncate_context",
]
