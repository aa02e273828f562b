"""AST node variants for parsed formulas.

Every node is a frozen pydantic model tagged by its ``type`` literal, so
trees compare structurally and can be rebuilt but never mutated.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict


class _Node(BaseModel):
    model_config = ConfigDict(frozen=True)


class NumberNode(_Node):
    type: Literal["number"] = "number"
    value: float


class TextNode(_Node):
    type: Literal["text"] = "text"
    value: str


class CellReference(_Node):
    """Single cell reference; ``ref`` keeps the text as written, ``$`` included."""

    type: Literal["cell_ref"] = "cell_ref"
    ref: str


class RangeReference(_Node):
    type: Literal["range_ref"] = "range_ref"
    start: str
    end: str


class BinaryOperation(_Node):
    type: Literal["binary"] = "binary"
    operator: str
    left: Node
    right: Node


class UnaryOperation(_Node):
    type: Literal["unary"] = "unary"
    operator: str
    operand: Node


class FunctionCall(_Node):
    type: Literal["call"] = "call"
    name: str
    args: tuple[Node, ...] = ()


Node = Union[
    NumberNode,
    TextNode,
    CellReference,
    RangeReference,
    BinaryOperation,
    UnaryOperation,
    FunctionCall,
]

BinaryOperation.model_rebuild()
UnaryOperation.model_rebuild()
FunctionCall.model_rebuild()
