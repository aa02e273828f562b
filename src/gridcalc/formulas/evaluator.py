"""Tree-walking evaluator for parsed formula expressions.

The evaluator never looks at a sheet directly.  Cell contents are read
through a lookup callback supplied by the host, and every reference the
walk consults is recorded so the host can update the dependency graph,
even when evaluation fails.
"""

from __future__ import annotations

import math
import re
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Union

from pydantic import BaseModel, ConfigDict, computed_field

from gridcalc.formulas.errors import (
    ERROR_DIV0,
    ERROR_GENERIC,
    ERROR_VALUE,
    FormulaEvalError,
    FormulaFunctionError,
    FormulaParseError,
    FormulaRefError,
)
from gridcalc.formulas.fn_aggregate import AGGREGATE_FUNCTIONS
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
from gridcalc.notation import make_addr, range_cells, strip_markers, try_parse_addr

CellValue = Union[float, str]

# Reference text (``$`` markers included) -> number, text, or None when empty.
CellLookup = Callable[[str], "CellValue | int | None"]


# ---------------------------------------------------------------------------
# Result model
# ---------------------------------------------------------------------------


class ResultKind(str, Enum):
    ok = "ok"
    parse_error = "parse_error"
    eval_error = "eval_error"


class EvalResult(BaseModel):
    """Outcome of evaluating one formula.

    ``value``/``text`` are set on success (a number carries both), ``error``
    on failure.  ``used_references`` lists every reference consulted, in
    first-use order, and is populated on failure too.
    """

    model_config = ConfigDict(frozen=True)

    value: float | None = None
    text: str | None = None
    error: str | None = None
    message: str | None = None
    used_references: tuple[str, ...] = ()
    parse_failed: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def kind(self) -> ResultKind:
        if self.parse_failed:
            return ResultKind.parse_error
        if self.error is not None:
            return ResultKind.eval_error
        return ResultKind.ok

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------

# Leading-prefix float syntax, as accepted by JavaScript's parseFloat.
_NUMERIC_PREFIX_RE = re.compile(
    r"\s*([+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))"
)


def parse_numeric_prefix(text: str) -> float | None:
    """Parse the longest numeric prefix of *text*, or ``None``."""
    m = _NUMERIC_PREFIX_RE.match(text)
    if not m:
        return None
    return float(m.group(1))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_number(value: Any) -> float:
    """Strict coercion used by arithmetic.

    Raises:
        FormulaEvalError: ``#VALUE!`` when *value* has no numeric reading.
    """
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        num = parse_numeric_prefix(value)
        if num is not None:
            return num
    raise FormulaEvalError(ERROR_VALUE)


def try_to_number(value: Any) -> float | None:
    """Tolerant coercion used when collecting function arguments."""
    try:
        return to_number(value)
    except FormulaEvalError:
        return None


def _power(base: float, exponent: float) -> float:
    try:
        return math.pow(base, exponent)
    except OverflowError:
        if base < 0 and exponent.is_integer() and int(exponent) % 2 == 1:
            return -math.inf
        return math.inf
    except ValueError:
        # 0 to a negative power, or a negative base with a fractional exponent.
        if base == 0:
            if exponent.is_integer() and int(exponent) % 2 == 1:
                return math.copysign(math.inf, base)
            return math.inf
        return math.nan


def format_number(value: float) -> str:
    """Canonical decimal text for a number (``3.0`` renders as ``3``)."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" not in text:
        return text
    mantissa, exp = text.split("e")
    exponent = int(exp)
    if -7 < exponent < 21:
        return format(Decimal(text), "f")
    return f"{mantissa}e{'+' if exponent > 0 else '-'}{abs(exponent)}"


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class Evaluator:
    """Walks one AST against a lookup, collecting the references it reads."""

    def __init__(self, lookup: CellLookup) -> None:
        self._lookup = lookup
        self._used: dict[str, None] = {}

    @property
    def used_references(self) -> tuple[str, ...]:
        return tuple(self._used)

    def _use(self, ref: str) -> None:
        self._used.setdefault(ref, None)

    def evaluate(self, node: Node) -> Any:
        """Evaluate *node*; ranges produce a list of the present values."""
        if isinstance(node, NumberNode):
            return node.value
        if isinstance(node, TextNode):
            return node.value
        if isinstance(node, CellReference):
            return self._eval_cell(node.ref)
        if isinstance(node, RangeReference):
            return self._eval_range(node.start, node.end)
        if isinstance(node, BinaryOperation):
            return self._eval_binary(node)
        if isinstance(node, UnaryOperation):
            operand = to_number(self.evaluate(node.operand))
            if node.operator == "-":
                return -operand
            if node.operator == "+":
                return operand
            raise FormulaEvalError(f"Unknown operator: {node.operator}")
        if isinstance(node, FunctionCall):
            return self._eval_call(node)
        raise FormulaEvalError(f"Unknown node type: {type(node).__name__}")

    def _eval_cell(self, ref: str) -> Any:
        self._use(ref)
        value = self._lookup(ref)
        if value is None:
            # Empty cell
            return 0.0
        return float(value) if _is_number(value) else value

    def _eval_range(self, start: str, end: str) -> list[CellValue]:
        self._use(start)
        self._use(end)
        start_addr = try_parse_addr(strip_markers(start))
        end_addr = try_parse_addr(strip_markers(end))
        if start_addr is None:
            raise FormulaRefError(start)
        if end_addr is None:
            raise FormulaRefError(end)

        values: list[CellValue] = []
        for addr in range_cells(start_addr, end_addr):
            ref = make_addr(addr.row, addr.column)
            self._use(ref)
            value = self._lookup(ref)
            if value is not None:
                values.append(float(value) if _is_number(value) else value)
        return values

    def _eval_binary(self, node: BinaryOperation) -> float:
        left = to_number(self.evaluate(node.left))
        right = to_number(self.evaluate(node.right))
        op = node.operator
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op == "/":
            if right == 0:
                raise FormulaEvalError(ERROR_DIV0)
            return left / right
        if op == "^":
            return _power(left, right)
        raise FormulaEvalError(f"Unknown operator: {op}")

    def _eval_call(self, node: FunctionCall) -> float:
        values = self._collect_numbers(node.args)
        fn = AGGREGATE_FUNCTIONS.get(node.name)
        if fn is None:
            raise FormulaFunctionError(node.name)
        return fn(values)

    def _collect_numbers(self, args: tuple[Node, ...]) -> list[float]:
        """Flatten scalar and range arguments, dropping non-numeric values."""
        numbers: list[float] = []
        for arg in args:
            result = self.evaluate(arg)
            items = result if isinstance(result, list) else [result]
            for item in items:
                num = try_to_number(item)
                if num is not None:
                    numbers.append(num)
        return numbers


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def evaluate_formula(node: Node, lookup: CellLookup) -> EvalResult:
    """Evaluate a parsed formula and shape the top-level result.

    Never raises: evaluation failures become ``EvalResult.error``.
    """
    evaluator = Evaluator(lookup)
    try:
        result = evaluator.evaluate(node)
    except FormulaEvalError as exc:
        return EvalResult(error=exc.code, used_references=evaluator.used_references)
    except Exception as exc:
        return EvalResult(
            error=ERROR_GENERIC,
            message=str(exc),
            used_references=evaluator.used_references,
        )

    used = evaluator.used_references
    if _is_number(result):
        return EvalResult(value=result, text=format_number(result), used_references=used)
    if isinstance(result, str):
        return EvalResult(text=result, used_references=used)
    return EvalResult(error=ERROR_VALUE, used_references=used)


def compute_formula(text: str, lookup: CellLookup) -> EvalResult:
    """Parse and evaluate formula text in one step.

    A syntax error yields a ``parse_error`` result with ``#ERROR!`` and the
    parser's message instead of raising.
    """
    try:
        node = parse_formula(text)
    except FormulaParseError as exc:
        return EvalResult(error=ERROR_GENERIC, message=exc.message, parse_failed=True)
    return evaluate_formula(node, lookup)
