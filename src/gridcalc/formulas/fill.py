"""Reference adjustment for fill/copy, and AST-to-text rendering.

Copying a formula to another cell shifts its relative references by the
row/column distance; ``$``-marked components stay fixed.  The formula is
parsed, rebuilt with shifted references and rendered back to text.
"""

from __future__ import annotations

from decimal import Decimal

from gridcalc.formulas.errors import FormulaError, FormulaRefError
from gridcalc.formulas.nodes import (
    BinaryOperation,
    CellReference,
    FunctionCall,
    Node,
    NumberNode,
    RangeReference,
    TextNode,
    UnaryOperation,
)
from gridcalc.formulas.parser import parse_formula
from gridcalc.notation import (
    CellAddress,
    adjust_ref_for_fill,
    cell_key,
    cell_ref_to_a1,
    parse_cell_ref,
)

_PRECEDENCE = {"^": 3, "*": 2, "/": 2, "+": 1, "-": 1}


# ---------------------------------------------------------------------------
# Reference shifting
# ---------------------------------------------------------------------------


def _shift_ref(ref: str, delta_row: int, delta_col: int) -> str:
    parsed = parse_cell_ref(ref)
    if parsed is None:
        return ref
    shifted = adjust_ref_for_fill(parsed, delta_row, delta_col)
    if shifted.row < 0 or shifted.column < 0:
        raise FormulaRefError(ref)
    return cell_ref_to_a1(shifted)


def adjust_references(node: Node, delta_row: int, delta_col: int) -> Node:
    """Return a new tree with every cell/range reference shifted.

    Raises:
        FormulaRefError: If a relative reference would leave the grid.
    """
    if isinstance(node, CellReference):
        return CellReference(ref=_shift_ref(node.ref, delta_row, delta_col))
    if isinstance(node, RangeReference):
        return RangeReference(
            start=_shift_ref(node.start, delta_row, delta_col),
            end=_shift_ref(node.end, delta_row, delta_col),
        )
    if isinstance(node, BinaryOperation):
        return BinaryOperation(
            operator=node.operator,
            left=adjust_references(node.left, delta_row, delta_col),
            right=adjust_references(node.right, delta_row, delta_col),
        )
    if isinstance(node, UnaryOperation):
        return UnaryOperation(
            operator=node.operator,
            operand=adjust_references(node.operand, delta_row, delta_col),
        )
    if isinstance(node, FunctionCall):
        return FunctionCall(
            name=node.name,
            args=tuple(adjust_references(arg, delta_row, delta_col) for arg in node.args),
        )
    return node


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _needs_parens(operand: Node, parent_op: str, *, right: bool) -> bool:
    if not isinstance(operand, BinaryOperation):
        return False
    inner = _PRECEDENCE.get(operand.operator, 0)
    outer = _PRECEDENCE.get(parent_op, 0)
    if inner != outer:
        return inner < outer
    # ^ groups to the right, everything else to the left.
    return right != (parent_op == "^")


def _render_number(value: float) -> str:
    """Positional decimal text; the tokenizer has no exponent syntax."""
    text = format(Decimal(repr(value)), "f")
    if text.endswith(".0"):
        text = text[:-2]
    return text


def render_formula(node: Node) -> str:
    """Render an AST as formula text without the leading ``=``.

    Operands are parenthesised when their operator binds more loosely than
    the parent's, or equally loosely on the side the parser would not group
    them, so the text parses back to the same tree.
    """
    if isinstance(node, NumberNode):
        return _render_number(node.value)
    if isinstance(node, TextNode):
        return f'"{node.value}"'
    if isinstance(node, CellReference):
        return node.ref
    if isinstance(node, RangeReference):
        return f"{node.start}:{node.end}"
    if isinstance(node, BinaryOperation):
        left = render_formula(node.left)
        right = render_formula(node.right)
        if _needs_parens(node.left, node.operator, right=False):
            left = f"({left})"
        if _needs_parens(node.right, node.operator, right=True):
            right = f"({right})"
        if node.operator == "-" and right[:1].isdigit():
            # "A1-2" would lex as A1 followed by the literal -2.
            return f"{left} - {right}"
        return f"{left}{node.operator}{right}"
    if isinstance(node, UnaryOperation):
        operand = render_formula(node.operand)
        if isinstance(node.operand, (BinaryOperation, UnaryOperation)):
            operand = f"({operand})"
        # The parser has no prefix operators, so this text does not parse back.
        return f"{node.operator}{operand}"
    if isinstance(node, FunctionCall):
        return f"{node.name}({','.join(render_formula(arg) for arg in node.args)})"
    raise TypeError(f"Cannot render node: {node!r}")


def adjust_formula_for_fill(formula: str, delta_row: int, delta_col: int) -> str:
    """Shift the relative references of *formula* for a fill or copy.

    Returns the original text unchanged if it cannot be parsed or a shifted
    reference would fall off the grid.

    Example::

        >>> adjust_formula_for_fill("=A1+$B$1", 1, 0)
        '=A2+$B$1'
    """
    try:
        node = parse_formula(formula)
        adjusted = adjust_references(node, delta_row, delta_col)
    except FormulaError:
        return formula
    return "=" + render_formula(adjusted)


# ---------------------------------------------------------------------------
# Fill handle
# ---------------------------------------------------------------------------


def generate_fill_values(
    source_value: str,
    source: CellAddress,
    target_start: CellAddress,
    target_end: CellAddress,
) -> dict[str, str]:
    """Compute the contents of a fill-down or fill-right from *source*.

    The target rectangle must lie in the source column (vertical fill) or
    the source row (horizontal fill); any other shape yields an empty
    mapping.  Formulas are adjusted per target cell, plain values copied.

    Returns:
        Mapping of storage key -> raw cell text.
    """
    vertical = target_start.column == source.column and target_end.column == source.column
    horizontal = target_start.row == source.row and target_end.row == source.row
    is_formula = source_value.strip().startswith("=")

    result: dict[str, str] = {}
    if vertical:
        for row in range(target_start.row, target_end.row + 1):
            key = cell_key(CellAddress(row=row, column=source.column))
            if is_formula:
                result[key] = adjust_formula_for_fill(source_value, row - source.row, 0)
            else:
                result[key] = source_value
    elif horizontal:
        for col in range(target_start.column, target_end.column + 1):
            key = cell_key(CellAddress(row=source.row, column=col))
            if is_formula:
                result[key] = adjust_formula_for_fill(source_value, 0, col - source.column)
            else:
                result[key] = source_value
    return result
