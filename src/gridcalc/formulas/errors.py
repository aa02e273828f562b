"""Error types for formula parsing and evaluation."""

from __future__ import annotations

# Error codes surfaced to the host.
ERROR_VALUE = "#VALUE!"
ERROR_DIV0 = "#DIV/0!"
ERROR_REF = "#REF!"
ERROR_CYCLE = "#CYCLE!"
ERROR_GENERIC = "#ERROR!"


class FormulaError(Exception):
    """Base class for all formula-related errors."""


class FormulaParseError(FormulaError):
    """Syntax error in a formula expression.

    Attributes:
        position: Character position where the error was detected.
        message: Human-readable description.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        self.message = message
        full = f"Formula parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class FormulaEvalError(FormulaError):
    """Failure during evaluation, identified by its error code.

    Attributes:
        code: The text reported to the host, e.g. ``#VALUE!``.
    """

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(code)


class FormulaRefError(FormulaEvalError):
    """A reference that does not resolve to a grid position."""

    def __init__(self, ref: str) -> None:
        self.ref = ref
        super().__init__(ERROR_REF)


class FormulaFunctionError(FormulaEvalError):
    """Call to a function outside the fixed function table.

    Attributes:
        func_name: The function that caused the error.
    """

    def __init__(self, func_name: str) -> None:
        self.func_name = func_name
        super().__init__(f"Unknown function: {func_name}")
