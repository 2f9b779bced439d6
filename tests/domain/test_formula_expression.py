"""
Tests for the restricted formula expression grammar.
"""

import pytest

from records_kernel.domain.expression import (
    ArithmeticExpression,
    parse_expression,
    validate_expression,
)


class TestAllowedExpressions:

    @pytest.mark.parametrize(
        "expression",
        [
            "amount * 0.1",
            "amount + tax",
            "(amount - discount) / 2",
            "-amount",
            "+amount",
            "1e3 * rate",
            "  amount  ",
        ],
    )
    def test_valid(self, expression):
        assert validate_expression(expression) == []

    def test_names_in_first_appearance_order(self):
        parsed = parse_expression("b * a + b - c")
        assert isinstance(parsed, ArithmeticExpression)
        assert parsed.names == ("b", "a", "c")

    def test_literal_only_has_no_names(self):
        parsed = parse_expression("2 * 3")
        assert parsed.names == ()


class TestRejectedExpressions:

    @pytest.mark.parametrize(
        "expression, fragment",
        [
            ("__import__('os')", "Function calls"),
            ("amount.real", "Attribute"),
            ("amount[0]", "Subscript"),
            ("amount > 5", "Comparisons"),
            ("amount and tax", "BoolOp"),
            ("'a' + amount", "literal"),
            ("True * amount", "literal"),
            ("amount ** 2", "Pow"),
            ("amount % 2", "Mod"),
            ("amount // 2", "FloorDiv"),
            ("not amount", "Not"),
            ("lambda: 1", "Lambda"),
            ("[amount]", "List"),
        ],
    )
    def test_disallowed(self, expression, fragment):
        errors = validate_expression(expression)
        assert errors
        assert any(fragment in e.message for e in errors)

    def test_empty(self):
        assert validate_expression("   ")[0].message == "Empty expression"

    def test_syntax_error(self):
        errors = validate_expression("amount +")
        assert errors[0].message.startswith("Syntax error")

    def test_statement_is_syntax_error(self):
        assert validate_expression("x = 1")

    def test_parse_returns_errors(self):
        result = parse_expression("amount ** 2")
        assert isinstance(result, list)
