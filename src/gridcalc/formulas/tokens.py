"""Lexical tokens produced by the tokenizer."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class TokenKind(str, Enum):
    NUMBER = "NUMBER"
    STRING = "STRING"
    OPERATOR = "OPERATOR"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    COMMA = "COMMA"
    COLON = "COLON"
    CELL_REF = "CELL_REF"
    IDENTIFIER = "IDENTIFIER"
    END = "END"


class Token(BaseModel):
    """A single token.

    ``position`` is the zero-based offset into the (trimmed) formula body
    and is only used for error reporting.
    """

    model_config = ConfigDict(frozen=True)

    kind: TokenKind
    text: str
    position: int
