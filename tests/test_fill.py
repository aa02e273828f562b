"""Tests for fill/copy reference adjustment and formula rendering."""

from __future__ import annotations

import pytest

from gridcalc.formulas import (
    FormulaRefError,
    adjust_formula_for_fill,
    adjust_references,
    generate_fill_values,
    parse_formula,
    render_formula,
)
from gridcalc.formulas.nodes import BinaryOperation, CellReference, NumberNode, UnaryOperation
from gridcalc.notation import parse_addr


class TestAdjustFormula:
    def test_relative_refs_shift(self) -> None:
        assert adjust_formula_for_fill("=A1+B1", 1, 0) == "=A2+B2"

    def test_absolute_column_fixed(self) -> None:
        assert adjust_formula_for_fill("=$A1+B1", 0, 2) == "=$A1+D1"

    def test_mixed_markers_in_range(self) -> None:
        assert adjust_formula_for_fill("=SUM($A1:B$2)", 2, 1) == "=SUM($A3:C$2)"

    def test_parentheses_preserved_where_needed(self) -> None:
        assert adjust_formula_for_fill("=($A$1+B2)*C3", 1, 1) == "=($A$1+C3)*D4"

    def test_fully_absolute_unchanged(self) -> None:
        assert adjust_formula_for_fill("=$B$2*2", 5, 5) == "=$B$2*2"

    def test_zero_offset_is_identity(self) -> None:
        for formula in ("=A1+B1", "=SUM(A1:B2)", "=(A1+B1)*C1", "=A1^B1^C1"):
            assert adjust_formula_for_fill(formula, 0, 0) == formula

    def test_unparseable_returned_unchanged(self) -> None:
        assert adjust_formula_for_fill("=INVALID(((", 1, 1) == "=INVALID((("

    def test_off_grid_returned_unchanged(self) -> None:
        assert adjust_formula_for_fill("=A1+B2", -1, 0) == "=A1+B2"
        assert adjust_formula_for_fill("=B1", 0, -2) == "=B1"

    def test_absolute_component_never_goes_off_grid(self) -> None:
        assert adjust_formula_for_fill("=A$1", -0, 3) == "=D$1"
        assert adjust_formula_for_fill("=$A2", -1, -5) == "=$A1"

    def test_function_names_uppercased(self) -> None:
        assert adjust_formula_for_fill("=sum(A1, 2)", 1, 0) == "=SUM(A2,2)"

    def test_text_literals_kept(self) -> None:
        assert adjust_formula_for_fill('="total"', 3, 3) == '="total"'

    def test_subtraction_of_literal_stays_subtraction(self) -> None:
        adjusted = adjust_formula_for_fill("=A1 - 2", 1, 0)
        assert adjusted == "=A2 - 2"
        assert parse_formula(adjusted) == BinaryOperation(
            operator="-", left=CellReference(ref="A2"), right=NumberNode(value=2)
        )


class TestAdjustReferences:
    def test_returns_new_tree(self) -> None:
        node = parse_formula("=A1*2")
        adjusted = adjust_references(node, 1, 1)
        assert adjusted == BinaryOperation(
            operator="*", left=CellReference(ref="B2"), right=NumberNode(value=2)
        )
        assert node == BinaryOperation(
            operator="*", left=CellReference(ref="A1"), right=NumberNode(value=2)
        )

    def test_off_grid_raises(self) -> None:
        with pytest.raises(FormulaRefError):
            adjust_references(CellReference(ref="A1"), -1, 0)


class TestRenderFormula:
    @pytest.mark.parametrize(
        "text",
        [
            "1+2*3",
            "(1+2)*3",
            "2^3^2",
            "(2^3)^2",
            "A1/B1/C1",
            "A1-(B1-C1)",
            "SUM(A1:B2,3)",
            "MAX(A1,MIN(B1,C1))",
            '"a b"',
            "$A$1*1.5",
            "0.0000001",
            "1000000000000000000000",
            "A1*0.00000025",
        ],
    )
    def test_render_reparses_to_same_tree(self, text: str) -> None:
        node = parse_formula(text)
        assert parse_formula(render_formula(node)) == node

    def test_minimal_parentheses(self) -> None:
        assert render_formula(parse_formula("(A1*B1)+C1")) == "A1*B1+C1"

    def test_numbers_never_use_exponent_form(self) -> None:
        assert render_formula(NumberNode(value=1e-7)) == "0.0000001"
        assert render_formula(NumberNode(value=1e21)) == "1000000000000000000000"
        assert render_formula(NumberNode(value=2.0)) == "2"
        assert render_formula(NumberNode(value=-2.5)) == "-2.5"

    def test_small_literal_survives_fill(self) -> None:
        assert adjust_formula_for_fill("=A1*0.00000025", 1, 0) == "=A2*0.00000025"

    def test_unary(self) -> None:
        node = UnaryOperation(operator="-", operand=CellReference(ref="A1"))
        assert render_formula(node) == "-A1"

    def test_unary_parenthesises_compound_operand(self) -> None:
        operand = BinaryOperation(
            operator="+", left=CellReference(ref="A1"), right=CellReference(ref="B1")
        )
        assert render_formula(UnaryOperation(operator="-", operand=operand)) == "-(A1+B1)"


class TestGenerateFillValues:
    def test_fill_down(self) -> None:
        values = generate_fill_values("=A1*2", parse_addr("B1"), parse_addr("B1"), parse_addr("B3"))
        assert values == {
            "r0c1": "=A1*2",
            "r1c1": "=A2*2",
            "r2c1": "=A3*2",
        }

    def test_fill_right(self) -> None:
        values = generate_fill_values("=A1+$A$2", parse_addr("B1"), parse_addr("C1"), parse_addr("D1"))
        assert values == {
            "r0c2": "=B1+$A$2",
            "r0c3": "=C1+$A$2",
        }

    def test_plain_value_copied(self) -> None:
        values = generate_fill_values("42", parse_addr("A1"), parse_addr("A2"), parse_addr("A3"))
        assert values == {"r1c0": "42", "r2c0": "42"}

    def test_fill_up_keeps_formula_when_off_grid(self) -> None:
        values = generate_fill_values("=A1", parse_addr("B2"), parse_addr("B1"), parse_addr("B1"))
        assert values == {"r0c1": "=A1"}

    def test_rectangle_not_supported(self) -> None:
        values = generate_fill_values("=A1", parse_addr("A1"), parse_addr("B2"), parse_addr("C3"))
        assert values == {}
