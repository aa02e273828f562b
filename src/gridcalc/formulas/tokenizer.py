"""Formula tokenizer.

Scans a formula body (without the leading ``=``) into a flat token list
terminated by an END token.

A ``-`` immediately followed by a digit always starts a signed NUMBER,
even right after an operand: ``A1-2`` and ``A1 -2`` both produce
``CELL_REF NUMBER(-2)``.  Subtraction of a literal therefore needs a
space after the minus (``A1 - 2``).  This is a lexical rule, not a
parser decision.
"""

from __future__ import annotations

import re

from gridcalc.formulas.errors import FormulaParseError
from gridcalc.formulas.tokens import Token, TokenKind

_CELL_REF_RE = re.compile(r"(\$?)([A-Z]+)(\$?)(\d+)", re.IGNORECASE)
_IDENT_RE = re.compile(r"[A-Za-z0-9_]+")

_OPERATORS = "+-*/^"
_PUNCTUATION = {
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    ",": TokenKind.COMMA,
    ":": TokenKind.COLON,
}


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def _is_letter(ch: str) -> bool:
    return ("a" <= ch <= "z") or ("A" <= ch <= "Z")


class Tokenizer:
    """Single-use scanner over one formula body."""

    def __init__(self, text: str) -> None:
        self.text = text.strip()
        self.pos = 0

    def tokenize(self) -> list[Token]:
        tokens: list[Token] = []
        text = self.text

        while self.pos < len(text):
            ch = text[self.pos]

            if ch.isspace():
                self.pos += 1
                continue

            if _is_digit(ch) or (ch == "-" and _is_digit(self._peek())):
                tokens.append(self._read_number())
                continue

            if ch == '"':
                tokens.append(self._read_string())
                continue

            if ch in _OPERATORS:
                tokens.append(Token(kind=TokenKind.OPERATOR, text=ch, position=self.pos))
                self.pos += 1
                continue

            if ch in _PUNCTUATION:
                tokens.append(Token(kind=_PUNCTUATION[ch], text=ch, position=self.pos))
                self.pos += 1
                continue

            if ch == "$" or _is_letter(ch):
                token = self._read_ref_or_identifier()
                if token is not None:
                    tokens.append(token)
                    continue

            raise FormulaParseError(f"Unexpected character: {ch}", self.pos)

        tokens.append(Token(kind=TokenKind.END, text="", position=self.pos))
        return tokens

    # ------------------------------------------------------------------
    # Scanners
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 1) -> str:
        idx = self.pos + offset
        return self.text[idx] if idx < len(self.text) else ""

    def _read_number(self) -> Token:
        start = self.pos
        text = self.text
        if text[self.pos] == "-":
            self.pos += 1
        seen_dot = False
        while self.pos < len(text):
            ch = text[self.pos]
            if _is_digit(ch):
                self.pos += 1
            elif ch == "." and not seen_dot:
                seen_dot = True
                self.pos += 1
            else:
                break
        return Token(kind=TokenKind.NUMBER, text=text[start:self.pos], position=start)

    def _read_string(self) -> Token:
        start = self.pos
        close = self.text.find('"', start + 1)
        if close < 0:
            raise FormulaParseError("Unterminated string", start)
        self.pos = close + 1
        return Token(kind=TokenKind.STRING, text=self.text[start + 1:close], position=start)

    def _read_ref_or_identifier(self) -> Token | None:
        start = self.pos
        m = _CELL_REF_RE.match(self.text, start)
        if m:
            self.pos = m.end()
            return Token(kind=TokenKind.CELL_REF, text=m.group(0), position=start)

        m = _IDENT_RE.match(self.text, start)
        if not m:
            # A '$' that does not introduce a cell reference.
            return None
        self.pos = m.end()
        return Token(kind=TokenKind.IDENTIFIER, text=m.group(0), position=start)


def tokenize(text: str) -> list[Token]:
    """Tokenize a formula body into a list ending with an END token.

    Raises:
        FormulaParseError: On an unterminated string or an unexpected
            character.
    """
    return Tokenizer(text).tokenize()
