"""Sheet session: wires parsing, evaluation and the dependency graph.

A :class:`Sheet` holds the cells of one grid and the graph of references
between them.  Setting a cell classifies its text, evaluates formulas,
records the references they used, marks cycles and recomputes every
dependent cell in dependency order before returning.

Usage::

    sheet = Sheet(n_rows=10, n_cols=5)
    sheet.set_cell("A1", "2")
    sheet.set_cell("B1", "=A1 * 10")
    sheet.get_display("B1")  # "20"
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Union

from pydantic import BaseModel

from gridcalc.cell_graph import DependencyGraph
from gridcalc.formulas.errors import ERROR_CYCLE, ERROR_GENERIC
from gridcalc.formulas.evaluator import compute_formula, format_number, parse_numeric_prefix
from gridcalc.formulas.fill import generate_fill_values
from gridcalc.logging import EventType, emit_info, emit_warning
from gridcalc.notation import (
    CellAddress,
    address_to_a1,
    cell_key,
    is_valid_address,
    key_to_address,
    parse_addr,
    ref_to_key,
    strip_markers,
)

CellTarget = Union[str, CellAddress]


class CellKind(str, Enum):
    empty = "empty"
    text = "text"
    number = "number"
    formula = "formula"
    error = "error"


class Cell(BaseModel):
    """Stored state of one cell.

    ``raw`` is what the user typed, ``display`` what the grid shows.
    ``message`` carries the parser's explanation for ``#ERROR!`` cells.
    """

    kind: CellKind = CellKind.empty
    display: str = ""
    value: float | None = None
    raw: str | None = None
    error: str | None = None
    message: str | None = None

    @property
    def is_formula(self) -> bool:
        return bool(self.raw) and self.raw.startswith("=")


EMPTY_CELL = Cell()


class Sheet:
    """One grid of cells plus its dependency graph.

    Parameters
    ----------
    n_rows, n_cols : int
        Grid dimensions; edits outside them are rejected.
    graph : DependencyGraph | None
        Graph to share with the host, a fresh one by default.
    sheet_id : str | None
        Identifier used to route log events to a per-sheet log.
    """

    def __init__(
        self,
        n_rows: int = 100,
        n_cols: int = 26,
        *,
        graph: DependencyGraph | None = None,
        sheet_id: str | None = None,
    ) -> None:
        self.n_rows = n_rows
        self.n_cols = n_cols
        self.graph = graph if graph is not None else DependencyGraph()
        self.sheet_id = sheet_id
        self.cells: dict[str, Cell] = {}

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------

    def _resolve(self, target: CellTarget) -> CellAddress:
        if isinstance(target, CellAddress):
            address = target
        else:
            address = key_to_address(target) or parse_addr(strip_markers(target))
        if not is_valid_address(address, self.n_rows, self.n_cols):
            raise ValueError(
                f"Cell {address_to_a1(address)} is outside the "
                f"{self.n_rows}x{self.n_cols} grid"
            )
        return address

    # ------------------------------------------------------------------
    # Lookup callback for the evaluator
    # ------------------------------------------------------------------

    def lookup(self, ref: str) -> float | str | None:
        """Current value of the cell named by *ref* (``$`` markers allowed)."""
        key = ref_to_key(ref)
        if key is None:
            return None
        cell = self.cells.get(key)
        if cell is None or cell.kind in (CellKind.empty, CellKind.error):
            return None
        if cell.kind == CellKind.text:
            return cell.raw or None
        return cell.value

    # ------------------------------------------------------------------
    # Classification and evaluation
    # ------------------------------------------------------------------

    def process_cell(self, raw: str, address: CellAddress) -> Cell:
        """Turn typed text into a cell, evaluating it if it is a formula.

        For formulas this also records the cell's dependencies in the graph
        and overrides the result with ``#CYCLE!`` when a cycle is reachable.
        """
        trimmed = raw.strip()
        if not trimmed:
            return Cell()

        if trimmed.startswith("="):
            return self._process_formula(trimmed, address)

        num = parse_numeric_prefix(trimmed)
        if num is not None and format_number(num) == trimmed:
            return Cell(kind=CellKind.number, display=trimmed, value=num, raw=trimmed)

        return Cell(kind=CellKind.text, display=trimmed, raw=trimmed)

    def _process_formula(self, formula: str, address: CellAddress) -> Cell:
        key = cell_key(address)
        a1 = address_to_a1(address)
        result = compute_formula(formula, self.lookup)

        used_keys = [ref_to_key(ref) or ref for ref in result.used_references]
        self.graph.update_cell(key, used_keys)

        if result.parse_failed:
            emit_warning(
                EventType.parse_error,
                f"Cannot parse formula in {a1}",
                {"cell": a1, "formula": formula, "detail": result.message},
                error_code=ERROR_GENERIC,
                sheet_id=self.sheet_id,
            )
            return Cell(
                kind=CellKind.error,
                display=ERROR_GENERIC,
                raw=formula,
                error=ERROR_GENERIC,
                message=result.message,
            )

        cycle = self.graph.find_cycle(key)
        if cycle is not None:
            emit_warning(
                EventType.cycle_detected,
                f"Circular reference in {a1}",
                {"cell": a1, "path": cycle},
                error_code=ERROR_CYCLE,
                sheet_id=self.sheet_id,
            )
            return Cell(kind=CellKind.error, display=ERROR_CYCLE, raw=formula, error=ERROR_CYCLE)

        if result.error is not None:
            emit_warning(
                EventType.eval_error,
                f"{result.error} in {a1}",
                {"cell": a1, "formula": formula},
                error_code=result.error,
                sheet_id=self.sheet_id,
            )
            return Cell(
                kind=CellKind.error,
                display=result.error,
                raw=formula,
                error=result.error,
                message=result.message,
            )

        return Cell(
            kind=CellKind.formula,
            display=result.text or "",
            value=result.value,
            raw=formula,
        )

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def _store(self, key: str, raw: str, address: CellAddress) -> Cell:
        cell = self.process_cell(raw, address)
        if not cell.is_formula and key in self.graph:
            # No longer a formula: keep the node only as a placeholder.
            self.graph.update_cell(key, [])
        if cell.kind == CellKind.empty:
            self.cells.pop(key, None)
        else:
            self.cells[key] = cell
        return cell

    def set_cell(self, target: CellTarget, raw: str) -> list[str]:
        """Store *raw* in a cell and recompute everything that depends on it.

        Returns:
            Storage keys of every cell that was reprocessed, the edited cell
            first.
        """
        address = self._resolve(target)
        key = cell_key(address)
        cell = self._store(key, raw, address)
        emit_info(
            EventType.cell_updated,
            f"Set {address_to_a1(address)}",
            {"cell": address_to_a1(address), "kind": cell.kind.value, "raw": raw},
            sheet_id=self.sheet_id,
        )
        updated = self.recalculate_dependents([key])
        return [key] + [k for k in updated if k != key]

    def clear_cell(self, target: CellTarget) -> list[str]:
        """Empty a cell; its graph node is dropped once nothing reads it."""
        address = self._resolve(target)
        key = cell_key(address)
        self._store(key, "", address)
        if key in self.graph and not self.graph.get_dependents(key):
            self.graph.remove_cell(key)
        emit_info(
            EventType.cell_cleared,
            f"Cleared {address_to_a1(address)}",
            {"cell": address_to_a1(address)},
            sheet_id=self.sheet_id,
        )
        updated = self.recalculate_dependents([key])
        return [key] + [k for k in updated if k != key]

    def recalculate_dependents(self, changed_keys: list[str]) -> dict[str, Cell]:
        """Reprocess every cell affected by *changed_keys*, dependencies first."""
        updated: dict[str, Cell] = {}
        order = self.graph.get_recalc_order(changed_keys)
        fell_back = bool(order) and self.graph.get_topological_order(order) is None
        for key in order:
            cell = self.cells.get(key)
            address = key_to_address(key)
            if cell is None or not cell.raw or address is None:
                continue
            new_cell = self.process_cell(cell.raw, address)
            self.cells[key] = new_cell
            updated[key] = new_cell

        if updated:
            cyclic = sorted(k for k, c in updated.items() if c.error == ERROR_CYCLE)
            emit_info(
                EventType.recalc_completed,
                f"Recalculated {len(updated)} cell(s)",
                {"changed": list(changed_keys), "recalculated": len(updated), "cyclic": cyclic},
                sheet_id=self.sheet_id,
            )
            if fell_back:
                emit_warning(
                    EventType.recalc_cycle_fallback,
                    "Recalculation order fell back to unordered affected cells",
                    {"changed": list(changed_keys), "cyclic": cyclic},
                    error_code=ERROR_CYCLE,
                    sheet_id=self.sheet_id,
                )
        return updated

    def recalculate_all(self) -> None:
        """Re-evaluate every formula cell.

        The first pass records each formula's dependencies; the second
        evaluates in dependency order (arbitrary order when cyclic).
        """
        formula_keys = [k for k, c in self.cells.items() if c.is_formula]
        for key in formula_keys:
            self._store(key, self.cells[key].raw or "", key_to_address(key))
        order = self.graph.get_topological_order(formula_keys) or sorted(formula_keys)
        for key in order:
            self._store(key, self.cells[key].raw or "", key_to_address(key))

    def fill(self, source: CellTarget, target_start: CellTarget, target_end: CellTarget) -> list[str]:
        """Copy *source* down a column or across a row, adjusting formulas.

        Returns:
            Storage keys of every cell that was reprocessed.
        """
        src = self._resolve(source)
        start = self._resolve(target_start)
        end = self._resolve(target_end)
        raw = self.get_cell(src).raw or ""

        values = generate_fill_values(raw, src, start, end)
        changed: list[str] = []
        for key, text in values.items():
            if key == cell_key(src):
                continue
            for k in self.set_cell(key, text):
                if k not in changed:
                    changed.append(k)

        emit_info(
            EventType.fill_applied,
            f"Filled {len(values)} cell(s) from {address_to_a1(src)}",
            {
                "cell": address_to_a1(src),
                "target": f"{address_to_a1(start)}:{address_to_a1(end)}",
                "written": len(values),
            },
            sheet_id=self.sheet_id,
        )
        return changed

    def clear(self) -> None:
        self.cells.clear()
        self.graph.clear()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_cell(self, target: CellTarget) -> Cell:
        return self.cells.get(cell_key(self._resolve(target)), EMPTY_CELL)

    def get_display(self, target: CellTarget) -> str:
        return self.get_cell(target).display

    def snapshot(self) -> dict[str, str]:
        """A1 address -> display text for every non-empty cell, row-major."""
        out: dict[str, str] = {}
        for key in sorted(self.cells, key=lambda k: (key_to_address(k).row, key_to_address(k).column)):
            out[address_to_a1(key_to_address(key))] = self.cells[key].display
        return out

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_spec(cls, spec: dict[str, Any], *, sheet_id: str | None = None) -> Sheet:
        """Build a sheet from ``{"n_rows", "n_cols", "cells": {A1: raw}}``."""
        sheet = cls(
            n_rows=int(spec.get("n_rows", 100)),
            n_cols=int(spec.get("n_cols", 26)),
            sheet_id=sheet_id,
        )
        cells: dict[str, str] = spec.get("cells") or {}

        formulas: dict[str, str] = {}
        for addr, raw in cells.items():
            address = sheet._resolve(addr)
            key = cell_key(address)
            if str(raw).strip().startswith("="):
                formulas[key] = str(raw).strip()
            else:
                sheet._store(key, str(raw), address)

        for key, raw in formulas.items():
            sheet.cells[key] = Cell(kind=CellKind.formula, raw=raw)
        sheet.recalculate_all()

        emit_info(
            EventType.sheet_loaded,
            f"Loaded sheet with {len(sheet.cells)} cell(s)",
            {"cells": len(sheet.cells), "formulas": len(formulas)},
            sheet_id=sheet_id,
        )
        return sheet
