"""Spreadsheet formula parsing, evaluation and reference adjustment.

Public API::

    from gridcalc.formulas import parse_formula, evaluate_formula, adjust_formula_for_fill
"""

from gridcalc.formulas.errors import (
    ERROR_CYCLE,
    ERROR_DIV0,
    ERROR_GENERIC,
    ERROR_REF,
    ERROR_VALUE,
    FormulaError,
    FormulaEvalError,
    FormulaFunctionError,
    FormulaParseError,
    FormulaRefError,
)
from gridcalc.formulas.evaluator import (
    EvalResult,
    Evaluator,
    ResultKind,
    compute_formula,
    evaluate_formula,
    format_number,
)
from gridcalc.formulas.fill import (
    adjust_formula_for_fill,
    adjust_references,
    generate_fill_values,
    render_formula,
)
from gridcalc.formulas.parser import Parser, parse_formula, strip_formula_prefix
from gridcalc.formulas.tokenizer import Tokenizer, tokenize
from gridcalc.formulas.tokens import Token, TokenKind

__all__ = [
    "ERROR_CYCLE",
    "ERROR_DIV0",
    "ERROR_GENERIC",
    "ERROR_REF",
    "ERROR_VALUE",
    "EvalResult",
    "Evaluator",
    "FormulaError",
    "FormulaEvalError",
    "FormulaFunctionError",
    "FormulaParseError",
    "FormulaRefError",
    "Parser",
    "ResultKind",
    "Token",
    "TokenKind",
    "Tokenizer",
    "adjust_formula_for_fill",
    "adjust_references",
    "compute_formula",
    "evaluate_formula",
    "format_number",
    "generate_fill_values",
    "parse_formula",
    "render_formula",
    "strip_formula_prefix",
    "tokenize",
]
