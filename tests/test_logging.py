"""Tests for the gridcalc structured event logging system."""

from __future__ import annotations

import json
from pathlib import Path

import pytest


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Create a minimal project directory."""
    (tmp_path / "logs").mkdir()
    return tmp_path


@pytest.fixture
def sink(project_dir: Path):
    from gridcalc.logging.sink import EventSink

    return EventSink(project_dir)


def _global_lines(project_dir: Path) -> list[dict]:
    log_path = project_dir / "logs" / "events.ndjson"
    if not log_path.exists():
        return []
    return [json.loads(line) for line in log_path.read_text().strip().splitlines()]


# ---------------------------------------------------------------------------
# A) Event schema
# ---------------------------------------------------------------------------


class TestGridcalcEvent:
    def test_event_defaults(self):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        evt = GridcalcEvent(
            level=EventLevel.info,
            event_type=EventType.cell_updated,
            message="hello",
        )
        assert evt.schema_version == 1
        assert evt.ts.endswith("Z")
        assert evt.level == "info"
        assert evt.event_type == "cell_updated"
        assert evt.context == {}
        assert evt.error_code is None

    def test_event_with_error_code(self):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        evt = GridcalcEvent(
            level=EventLevel.warning,
            event_type=EventType.eval_error,
            message="#DIV/0! in A1",
            error_code="#DIV/0!",
            context={"cell": "A1"},
        )
        assert evt.error_code == "#DIV/0!"
        assert evt.context["cell"] == "A1"

    def test_all_event_types_exist(self):
        from gridcalc.logging.events import EventType

        expected = {
            "cell_updated", "cell_cleared", "fill_applied",
            "parse_error", "eval_error", "cycle_detected",
            "recalc_completed", "recalc_cycle_fallback",
            "sheet_loaded",
        }
        actual = {e.value for e in EventType}
        assert expected == actual

    def test_truncate_context(self):
        from gridcalc.logging.events import truncate_context

        ctx = truncate_context({"formula": "=" + "A1+" * 200, "nested": {"x": "y" * 300}, "n": 3})
        assert ctx["formula"].endswith("...[truncated]")
        assert ctx["nested"]["x"].endswith("...[truncated]")
        assert ctx["n"] == 3


# ---------------------------------------------------------------------------
# B) Filesystem NDJSON sink
# ---------------------------------------------------------------------------


class TestEventSink:
    def test_write_creates_global_log(self, sink, project_dir):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        sink.write(GridcalcEvent(
            level=EventLevel.info,
            event_type=EventType.cell_updated,
            message="Set A1",
        ))

        lines = _global_lines(project_dir)
        assert len(lines) == 1
        assert lines[0]["message"] == "Set A1"
        assert lines[0]["level"] == "info"

    def test_write_creates_per_sheet_log(self, sink, project_dir):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        sink.write(
            GridcalcEvent(level=EventLevel.info, event_type=EventType.sheet_loaded, message="loaded"),
            sheet_id="budget",
        )

        sheet_log = project_dir / "logs" / "sheets" / "budget.ndjson"
        assert sheet_log.exists()
        assert len(sheet_log.read_text().strip().splitlines()) == 1

    def test_unsafe_sheet_id_skips_sheet_log(self, sink, project_dir):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        sink.write(
            GridcalcEvent(level=EventLevel.info, event_type=EventType.sheet_loaded, message="x"),
            sheet_id="../escape",
        )

        assert len(_global_lines(project_dir)) == 1
        assert list((project_dir / "logs" / "sheets").iterdir()) == []

    def test_json_sort_keys(self, sink, project_dir):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        sink.write(GridcalcEvent(level=EventLevel.info, event_type=EventType.cell_updated, message="m"))

        line = (project_dir / "logs" / "events.ndjson").read_text().strip()
        keys = list(json.loads(line).keys())
        assert keys == sorted(keys)

    def test_read_global_returns_most_recent_first(self, sink):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        for i in range(5):
            sink.write(GridcalcEvent(
                level=EventLevel.info,
                event_type=EventType.cell_updated,
                message=f"edit {i}",
            ))

        events = sink.read_global()
        assert len(events) == 5
        assert events[0]["message"] == "edit 4"
        assert events[4]["message"] == "edit 0"

    def test_read_global_filters(self, sink):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        sink.write(GridcalcEvent(
            level=EventLevel.info,
            event_type=EventType.cell_updated,
            message="Set A1",
            context={"cell": "A1"},
        ))
        sink.write(GridcalcEvent(
            level=EventLevel.warning,
            event_type=EventType.eval_error,
            message="#VALUE! in B1",
            context={"cell": "B1"},
        ))

        assert [e["message"] for e in sink.read_global(level="warning")] == ["#VALUE! in B1"]
        assert [e["message"] for e in sink.read_global(event_type="cell_updated")] == ["Set A1"]
        assert [e["message"] for e in sink.read_global(cell="B1")] == ["#VALUE! in B1"]

    def test_read_global_limit(self, sink):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        for i in range(10):
            sink.write(GridcalcEvent(
                level=EventLevel.info,
                event_type=EventType.cell_updated,
                message=f"edit {i}",
            ))

        assert len(sink.read_global(limit=3)) == 3

    def test_tail_read_drops_partial_line(self, project_dir):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent
        from gridcalc.logging.sink import EventSink

        sink = EventSink(project_dir, tail_bytes=400)
        for i in range(20):
            sink.write(GridcalcEvent(
                level=EventLevel.info,
                event_type=EventType.cell_updated,
                message=f"edit {i}",
            ))

        events = sink.read_global()
        assert 0 < len(events) < 20
        assert events[0]["message"] == "edit 19"

    def test_read_missing_log_returns_empty(self, sink):
        assert sink.read_sheet_log("nonexistent") == []
        assert sink.read_global() == []


# ---------------------------------------------------------------------------
# C) Module-level emit helpers (safety)
# ---------------------------------------------------------------------------


class TestEmitHelpers:
    def test_emit_without_project_dir_is_noop(self, project_dir):
        from gridcalc.logging.events import EventType, emit_info

        emit_info(EventType.cell_updated, "test")
        assert _global_lines(project_dir) == []

    def test_set_project_dir_enables_logging(self, project_dir):
        from gridcalc.logging.events import EventType, emit_info, set_project_dir

        set_project_dir(project_dir)
        emit_info(EventType.cell_updated, "hello from test")

        lines = _global_lines(project_dir)
        assert len(lines) == 1
        assert lines[0]["message"] == "hello from test"

    def test_logging_disabled_in_config(self, project_dir):
        from gridcalc.logging.events import EventType, emit_info, set_project_dir

        (project_dir / "gridcalc.yaml").write_text("logging_enabled: false\n")
        set_project_dir(project_dir)
        emit_info(EventType.cell_updated, "dropped")

        assert _global_lines(project_dir) == []

    def test_emit_warning_sets_error_code(self, project_dir):
        from gridcalc.logging.events import EventType, emit_warning, set_project_dir

        set_project_dir(project_dir)
        emit_warning(EventType.cycle_detected, "Circular reference in A1", error_code="#CYCLE!")

        parsed = _global_lines(project_dir)[0]
        assert parsed["error_code"] == "#CYCLE!"
        assert parsed["level"] == "warning"

    def test_emit_error(self, project_dir):
        from gridcalc.logging.events import EventType, emit_error, set_project_dir

        set_project_dir(project_dir)
        emit_error(EventType.eval_error, "boom", error_code="#ERROR!")

        assert _global_lines(project_dir)[0]["level"] == "error"

    def test_emit_never_raises(self, project_dir, monkeypatch):
        import gridcalc.logging.events as mod
        from gridcalc.logging.events import EventType, emit_info, set_project_dir

        set_project_dir(project_dir)

        def broken_write(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(mod._sink, "write", broken_write)
        monkeypatch.setattr(mod, "_last_stderr_ts", 0.0)
        emit_info(EventType.cell_updated, "lost")


# ---------------------------------------------------------------------------
# D) Events emitted by sheet edits
# ---------------------------------------------------------------------------


class TestSheetEvents:
    def test_edit_and_recalc_events(self, project_dir):
        from gridcalc.logging import set_project_dir
        from gridcalc.sheet import Sheet

        set_project_dir(project_dir)
        sheet = Sheet(10, 5, sheet_id="demo")
        sheet.set_cell("A1", "1")
        sheet.set_cell("B1", "=A1+1")
        sheet.set_cell("A1", "2")

        types = [e["event_type"] for e in _global_lines(project_dir)]
        assert types.count("cell_updated") == 3
        assert "recalc_completed" in types

        sheet_log = project_dir / "logs" / "sheets" / "demo.ndjson"
        assert len(sheet_log.read_text().strip().splitlines()) == len(types)

    def test_error_events(self, project_dir):
        from gridcalc.logging import set_project_dir
        from gridcalc.sheet import Sheet

        set_project_dir(project_dir)
        sheet = Sheet(10, 5)
        sheet.set_cell("A1", "=1 +")
        sheet.set_cell("B1", "=1/0")
        sheet.set_cell("C1", "=C1")

        warnings = {
            e["event_type"]: e
            for e in _global_lines(project_dir)
            if e["level"] == "warning"
        }
        assert warnings["parse_error"]["context"]["cell"] == "A1"
        assert warnings["eval_error"]["error_code"] == "#DIV/0!"
        assert warnings["cycle_detected"]["context"]["path"] == ["r0c2", "r0c2"]
