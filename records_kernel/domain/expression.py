"""
Restricted AST for formula expressions.

Formula fields carry an arithmetic expression over sibling field names.
This module parses and validates expressions, rejecting anything that
could execute code or reach outside the record.

Allowed:
  - Numeric literals: 10, 0.05, 1e3
  - Field names: bare identifiers (amount, tax_rate)
  - Binary operators: +, -, *, /
  - Unary operators: +, -
  - Parentheses

Rejected:
  - function calls, attribute access, subscripts, comparisons,
    boolean logic, string literals, lambda, comprehensions, walrus,
    any other node type
"""

from __future__ import annotations

import ast
from dataclasses import dataclass


ALLOWED_BINARY_OPERATORS: tuple[type[ast.operator], ...] = (
    ast.Add, ast.Sub, ast.Mult, ast.Div,
)

ALLOWED_UNARY_OPERATORS: tuple[type[ast.unaryop], ...] = (ast.UAdd, ast.USub)


@dataclass(frozen=True)
class ExpressionError:
    """A validation error found in a formula expression."""

    expression: str
    message: str
    node_type: str = ""
    col_offset: int = 0


@dataclass(frozen=True)
class ArithmeticExpression:
    """A parsed and validated formula expression.

    ``names`` lists referenced field names in first-appearance order.
    """

    source: str
    tree: ast.expr
    names: tuple[str, ...]


def validate_expression(expression: str) -> list[ExpressionError]:
    """Validate a formula expression against the restricted AST.

    Returns a list of errors. Empty list means the expression is valid.
    """
    if not isinstance(expression, str) or not expression.strip():
        return [ExpressionError(expression=str(expression), message="Empty expression")]

    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as e:
        return [
            ExpressionError(
                expression=expression,
                message=f"Syntax error: {e.msg}",
                col_offset=e.offset or 0,
            )
        ]

    errors: list[ExpressionError] = []
    _validate_node(tree.body, expression, errors)
    return errors


def parse_expression(expression: str) -> ArithmeticExpression | list[ExpressionError]:
    """Parse a formula expression.

    Returns the parsed expression, or the validation errors when the
    expression falls outside the restricted grammar.
    """
    errors = validate_expression(expression)
    if errors:
        return errors
    tree = ast.parse(expression.strip(), mode="eval").body
    return ArithmeticExpression(
        source=expression,
        tree=tree,
        names=referenced_names(tree),
    )


def referenced_names(tree: ast.AST) -> tuple[str, ...]:
    """Field names referenced by a validated expression tree."""
    seen: list[str] = []

    def visit(node: ast.AST) -> None:
        if isinstance(node, ast.Name) and node.id not in seen:
            seen.append(node.id)
        # iter_child_nodes yields left before right
        for child in ast.iter_child_nodes(node):
            visit(child)

    visit(tree)
    return tuple(seen)


def _validate_node(
    node: ast.AST, expression: str, errors: list[ExpressionError]
) -> None:
    """Recursively validate an AST node."""

    if isinstance(node, ast.BinOp):
        if isinstance(node.op, ALLOWED_BINARY_OPERATORS):
            _validate_node(node.left, expression, errors)
            _validate_node(node.right, expression, errors)
        else:
            errors.append(
                ExpressionError(
                    expression=expression,
                    message=f"Disallowed binary operator: {type(node.op).__name__}",
                    node_type=type(node.op).__name__,
                    col_offset=node.col_offset,
                )
            )

    elif isinstance(node, ast.UnaryOp):
        if isinstance(node.op, ALLOWED_UNARY_OPERATORS):
            _validate_node(node.operand, expression, errors)
        else:
            errors.append(
                ExpressionError(
                    expression=expression,
                    message=f"Disallowed unary operator: {type(node.op).__name__}",
                    node_type=type(node.op).__name__,
                    col_offset=node.col_offset,
                )
            )

    elif isinstance(node, ast.Name):
        if not isinstance(node.ctx, ast.Load):
            errors.append(
                ExpressionError(
                    expression=expression,
                    message=f"Assignment to {node.id} is not allowed",
                    node_type="Name",
                    col_offset=node.col_offset,
                )
            )

    elif isinstance(node, ast.Constant):
        # bool is an int subclass; True/False are not numeric literals here
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            errors.append(
                ExpressionError(
                    expression=expression,
                    message=f"Disallowed literal: {node.value!r}",
                    node_type="Constant",
                    col_offset=node.col_offset,
                )
            )

    elif isinstance(node, ast.Call):
        errors.append(
            ExpressionError(
                expression=expression,
                message=f"Function calls are not allowed: {_get_name(node.func)}",
                node_type="Call",
                col_offset=node.col_offset,
            )
        )

    elif isinstance(node, ast.Compare):
        errors.append(
            ExpressionError(
                expression=expression,
                message="Comparisons are not allowed",
                node_type="Compare",
                col_offset=node.col_offset,
            )
        )

    else:
        errors.append(
            ExpressionError(
                expression=expression,
                message=f"Disallowed expression element: {type(node).__name__}",
                node_type=type(node).__name__,
                col_offset=getattr(node, "col_offset", 0),
            )
        )


def _get_name(node: ast.AST) -> str:
    """Extract a human-readable name from an AST node."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return f"{_get_name(node.value)}.{node.attr}"
    return type(node).__name__
