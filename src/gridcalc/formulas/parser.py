"""Recursive-descent parser for spreadsheet formulas.

Grammar (lowest to highest precedence)::

    expression := term (('+'|'-') term)*
    term       := factor (('*'|'/') factor)*
    factor     := primary ('^' factor)?          # right-associative
    primary    := NUMBER | STRING
                | '(' expression ')'
                | CELL_REF (':' CELL_REF)?
                | IDENTIFIER '(' (expression (',' expression)*)? ')'
"""

from __future__ import annotations

from gridcalc.formulas.errors import FormulaParseError
from gridcalc.formulas.nodes import (
    BinaryOperation,
    CellReference,
    FunctionCall,
    Node,
    NumberNode,
    RangeReference,
    TextNode,
)
from gridcalc.formulas.tokenizer import tokenize
from gridcalc.formulas.tokens import Token, TokenKind


class Parser:
    """Builds an AST from a token list with one token of lookahead."""

    def __init__(self, tokens: list[Token]) -> None:
        if not tokens or tokens[-1].kind != TokenKind.END:
            raise ValueError("token list must end with an END token")
        self.tokens = tokens
        self.pos = 0

    def parse(self) -> Node:
        result = self._expression()
        current = self._current()
        if current.kind != TokenKind.END:
            raise FormulaParseError(f"Unexpected token: {current.text}", current.position)
        return result

    # ------------------------------------------------------------------
    # Token cursor
    # ------------------------------------------------------------------

    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]

    def _consume(self, expected: TokenKind | None = None) -> Token:
        token = self._current()
        if expected is not None and token.kind != expected:
            raise FormulaParseError(
                f"Expected {expected.value}, got {token.kind.value}", token.position
            )
        self.pos += 1
        return token

    def _at_operator(self, operators: str) -> bool:
        token = self._current()
        return token.kind == TokenKind.OPERATOR and token.text in operators

    # ------------------------------------------------------------------
    # Grammar rules
    # ------------------------------------------------------------------

    def _expression(self) -> Node:
        left = self._term()
        while self._at_operator("+-"):
            operator = self._consume().text
            left = BinaryOperation(operator=operator, left=left, right=self._term())
        return left

    def _term(self) -> Node:
        left = self._factor()
        while self._at_operator("*/"):
            operator = self._consume().text
            left = BinaryOperation(operator=operator, left=left, right=self._factor())
        return left

    def _factor(self) -> Node:
        left = self._primary()
        if self._at_operator("^"):
            self._consume()
            return BinaryOperation(operator="^", left=left, right=self._factor())
        return left

    def _primary(self) -> Node:
        token = self._current()

        if token.kind == TokenKind.NUMBER:
            self._consume()
            return NumberNode(value=float(token.text))

        if token.kind == TokenKind.STRING:
            self._consume()
            return TextNode(value=token.text)

        if token.kind == TokenKind.LPAREN:
            self._consume()
            expr = self._expression()
            self._consume(TokenKind.RPAREN)
            return expr

        if token.kind == TokenKind.CELL_REF:
            self._consume()
            if self._current().kind == TokenKind.COLON:
                self._consume()
                end = self._consume(TokenKind.CELL_REF)
                return RangeReference(start=token.text, end=end.text)
            return CellReference(ref=token.text)

        if token.kind == TokenKind.IDENTIFIER:
            self._consume()
            if self._current().kind != TokenKind.LPAREN:
                raise FormulaParseError(f"Unexpected identifier: {token.text}", token.position)
            return self._call(token.text)

        raise FormulaParseError(f"Unexpected token: {token.text}", token.position)

    def _call(self, name: str) -> FunctionCall:
        self._consume(TokenKind.LPAREN)
        args: list[Node] = []
        if self._current().kind != TokenKind.RPAREN:
            args.append(self._expression())
            while self._current().kind == TokenKind.COMMA:
                self._consume()
                args.append(self._expression())
        self._consume(TokenKind.RPAREN)
        return FunctionCall(name=name.upper(), args=tuple(args))


def strip_formula_prefix(text: str) -> str:
    """Trim *text* and drop at most one leading ``=``."""
    text = text.strip()
    if text.startswith("="):
        return text[1:]
    return text


def parse_formula(text: str) -> Node:
    """Parse formula text (leading ``=`` optional) into an AST.

    Args:
        text: The formula text, e.g. ``"=SUM(A1:A3) * 2"``.

    Returns:
        The root node of the parsed expression.

    Raises:
        FormulaParseError: If the formula has invalid syntax.
    """
    return Parser(tokenize(strip_formula_prefix(text))).parse()
