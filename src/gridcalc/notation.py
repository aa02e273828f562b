"""A1 notation helpers.

Conversions between zero-based ``(row, column)`` pairs, A1-style text such
as ``B12`` or ``$A$1``, and the ``r{row}c{col}`` storage keys used by the
dependency graph.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class CellAddress(BaseModel):
    """Zero-based grid position."""

    model_config = ConfigDict(frozen=True)

    row: int
    column: int


class CellRef(BaseModel):
    """A parsed cell reference with its absolute markers."""

    model_config = ConfigDict(frozen=True)

    column: int
    row: int
    absolute_column: bool = False
    absolute_row: bool = False

    @property
    def address(self) -> CellAddress:
        return CellAddress(row=self.row, column=self.column)


# ---------------------------------------------------------------------------
# Column letters
# ---------------------------------------------------------------------------

_ADDR_RE = re.compile(r"^([A-Z]+)(\d+)$", re.IGNORECASE)
_REF_RE = re.compile(r"^(\$?)([A-Z]+)(\$?)(\d+)$", re.IGNORECASE)
_KEY_RE = re.compile(r"^r(\d+)c(\d+)$")


def col_letter_to_index(letters: str) -> int:
    """Convert column letter(s) to 0-based index.  A=0, B=1, ..., Z=25, AA=26."""
    idx = 0
    for ch in letters.upper():
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx - 1


def index_to_col_letter(idx: int) -> str:
    """Convert 0-based column index to letter(s).  0=A, 25=Z, 26=AA."""
    result = ""
    n = idx + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        result = chr(65 + rem) + result
    return result


# ---------------------------------------------------------------------------
# A1 text <-> address
# ---------------------------------------------------------------------------


def parse_addr(addr: str) -> CellAddress:
    """Parse ``'A1'`` into a zero-based :class:`CellAddress`.

    ``$`` markers are not accepted here; strip them first.

    Raises:
        ValueError: On a malformed address or a row number below 1.
    """
    m = _ADDR_RE.match(addr)
    if not m:
        raise ValueError(f"Invalid cell address: {addr!r}")
    row = int(m.group(2)) - 1
    if row < 0:
        raise ValueError(f"Invalid cell address: {addr!r}")
    return CellAddress(row=row, column=col_letter_to_index(m.group(1)))


def try_parse_addr(addr: str) -> CellAddress | None:
    """Like :func:`parse_addr` but returns ``None`` instead of raising."""
    try:
        return parse_addr(addr)
    except ValueError:
        return None


def make_addr(row: int, col: int) -> str:
    """Build cell address from 0-based row/col."""
    return f"{index_to_col_letter(col)}{row + 1}"


def address_to_a1(address: CellAddress) -> str:
    return make_addr(address.row, address.column)


def strip_markers(ref: str) -> str:
    """Drop ``$`` absolute markers from a reference."""
    return ref.replace("$", "")


# ---------------------------------------------------------------------------
# Absolute-aware references
# ---------------------------------------------------------------------------


def parse_cell_ref(ref: str) -> CellRef | None:
    """Parse ``'$A1'`` style text into a :class:`CellRef`.

    Returns ``None`` when *ref* is not a reference.
    """
    m = _REF_RE.match(ref)
    if not m:
        return None
    row = int(m.group(4)) - 1
    if row < 0:
        return None
    return CellRef(
        column=col_letter_to_index(m.group(2)),
        row=row,
        absolute_column=m.group(1) == "$",
        absolute_row=m.group(3) == "$",
    )


def cell_ref_to_a1(ref: CellRef) -> str:
    """Render a :class:`CellRef`, keeping its ``$`` markers."""
    col = ("$" if ref.absolute_column else "") + index_to_col_letter(ref.column)
    row = ("$" if ref.absolute_row else "") + str(ref.row + 1)
    return col + row


def adjust_ref_for_fill(ref: CellRef, delta_row: int, delta_col: int) -> CellRef:
    """Shift the relative components of *ref*; absolute ones stay fixed."""
    return CellRef(
        column=ref.column if ref.absolute_column else ref.column + delta_col,
        row=ref.row if ref.absolute_row else ref.row + delta_row,
        absolute_column=ref.absolute_column,
        absolute_row=ref.absolute_row,
    )


# ---------------------------------------------------------------------------
# Storage keys
# ---------------------------------------------------------------------------


def cell_key(address: CellAddress) -> str:
    """``CellAddress(row=0, column=0)`` -> ``"r0c0"``."""
    return f"r{address.row}c{address.column}"


def key_to_address(key: str) -> CellAddress | None:
    m = _KEY_RE.match(key)
    if not m:
        return None
    return CellAddress(row=int(m.group(1)), column=int(m.group(2)))


def ref_to_key(ref: str) -> str | None:
    """Translate A1 text (``$`` allowed) into its storage key."""
    address = try_parse_addr(strip_markers(ref))
    if address is None:
        return None
    return cell_key(address)


def key_to_a1(key: str) -> str | None:
    address = key_to_address(key)
    if address is None:
        return None
    return address_to_a1(address)


# ---------------------------------------------------------------------------
# Ranges and bounds
# ---------------------------------------------------------------------------


def range_cells(start: CellAddress, end: CellAddress) -> list[CellAddress]:
    """Expand an inclusive rectangle into addresses (row-major).

    The corners may be given in any order; each axis is normalised
    independently.
    """
    r0, r1 = min(start.row, end.row), max(start.row, end.row)
    c0, c1 = min(start.column, end.column), max(start.column, end.column)
    cells: list[CellAddress] = []
    for r in range(r0, r1 + 1):
        for c in range(c0, c1 + 1):
            cells.append(CellAddress(row=r, column=c))
    return cells


def is_valid_address(address: CellAddress, n_rows: int, n_cols: int) -> bool:
    return 0 <= address.column < n_cols and 0 <= address.row < n_rows
