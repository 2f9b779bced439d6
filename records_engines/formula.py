"""
records_engines.formula -- Sandboxed evaluation of formula fields.

Responsibility:
    Compute the value of every applicable ``formula`` field from its
    sibling field values.  Results replace whatever the caller supplied.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Expressions are parsed by
    ``records_kernel.domain.expression`` (restricted AST) and walked here;
    nothing is ever passed to ``eval``/``exec``.

Invariants enforced:
    - Only numeric literals, field names, ``+ - * /``, unary ``+``/``-`` and
      parentheses are evaluated.
    - Identifiers resolve to Decimal values of applicable fields.  An unknown
      or unset identifier is an error; it is never treated as zero.
    - Formulas may reference formulas.  They are evaluated in dependency
      order; a dependency cycle is an error.
    - Arithmetic is Decimal-only under a fixed context (28 digits), so the
      same inputs always give the same result.

Failure modes:
    - FormulaSyntaxError: expression missing or outside the grammar.
    - UnresolvedFieldError: identifier with no value.
    - FieldTypeError: identifier bound to a non-numeric value.
    - CyclicFormulaError: formulas reference each other in a loop.
    - FormulaEvaluationError: division by zero, overflow, invalid operation.
"""

from __future__ import annotations

import ast
from collections.abc import Mapping, Sequence
from decimal import (
    Context,
    Decimal,
    DivisionByZero,
    InvalidOperation,
    Overflow,
    localcontext,
)

from records_engines.tracer import traced_engine
from records_kernel.domain.expression import ArithmeticExpression, parse_expression
from records_kernel.domain.schema import FieldDefinition
from records_kernel.domain.values import FieldValue, is_numeric
from records_kernel.exceptions import (
    CyclicFormulaError,
    FieldTypeError,
    FormulaEvaluationError,
    FormulaSyntaxError,
    UnresolvedFieldError,
)

_ARITHMETIC = Context(prec=28, traps=[DivisionByZero, InvalidOperation, Overflow])


@traced_engine("formula", "1.0", fingerprint_fields=("fields", "definitions"))
def evaluate_formulas(
    fields: Mapping[str, FieldValue],
    definitions: Sequence[FieldDefinition],
) -> dict[str, FieldValue]:
    """
    Return ``fields`` with every formula field computed.

    ``definitions`` are the definitions applicable to the record's type;
    values of fields outside them are not visible to formulas.
    """
    applicable = {d.name for d in definitions}
    values: dict[str, FieldValue] = {
        name: value for name, value in fields.items() if name in applicable
    }

    parsed: dict[str, ArithmeticExpression] = {}
    for definition in definitions:
        if definition.is_formula:
            parsed[definition.name] = _parse(definition)

    for name in evaluation_order(parsed):
        values[name] = _evaluate(name, parsed[name], values)

    result = dict(fields)
    for name in parsed:
        result[name] = values[name]
    return result


def evaluation_order(parsed: Mapping[str, ArithmeticExpression]) -> list[str]:
    """
    Formula names ordered so each comes after the formulas it references.

    Ties keep the order of ``parsed``.

    Raises:
        CyclicFormulaError: with the cycle as ``(a, b, ..., a)``.
    """
    order: list[str] = []
    done: set[str] = set()
    path: list[str] = []

    def visit(name: str) -> None:
        if name in done:
            return
        if name in path:
            raise CyclicFormulaError(tuple(path[path.index(name):]) + (name,))
        path.append(name)
        for dependency in parsed[name].names:
            if dependency in parsed:
                visit(dependency)
        path.pop()
        done.add(name)
        order.append(name)

    for name in parsed:
        visit(name)
    return order


def _parse(definition: FieldDefinition) -> ArithmeticExpression:
    expression = definition.expression or ""
    parsed = parse_expression(expression)
    if isinstance(parsed, list):
        reason = parsed[0].message if parsed else "invalid expression"
        raise FormulaSyntaxError(definition.name, expression, reason)
    return parsed


def _evaluate(
    field_name: str,
    expression: ArithmeticExpression,
    values: Mapping[str, FieldValue],
) -> Decimal:
    bindings: dict[str, Decimal] = {}
    for name in expression.names:
        if name not in values:
            raise UnresolvedFieldError(field_name, name)
        value = values[name]
        if not is_numeric(value):
            raise FieldTypeError(name, "number", value)
        bindings[name] = value

    try:
        with localcontext(_ARITHMETIC):
            result = _walk(expression.tree, bindings)
    except ZeroDivisionError:
        raise FormulaEvaluationError(field_name, "division by zero") from None
    except (InvalidOperation, Overflow) as exc:
        raise FormulaEvaluationError(
            field_name, f"invalid arithmetic ({type(exc).__name__})"
        ) from None
    if not result.is_finite():
        raise FormulaEvaluationError(field_name, "result is not a finite number")
    return result


def _walk(node: ast.AST, bindings: Mapping[str, Decimal]) -> Decimal:
    if isinstance(node, ast.Constant):
        return Decimal(str(node.value))
    if isinstance(node, ast.Name):
        return bindings[node.id]
    if isinstance(node, ast.UnaryOp):
        operand = _walk(node.operand, bindings)
        return -operand if isinstance(node.op, ast.USub) else +operand
    if isinstance(node, ast.BinOp):
        left = _walk(node.left, bindings)
        right = _walk(node.right, bindings)
        if isinstance(node.op, ast.Add):
            return left + right
        if isinstance(node.op, ast.Sub):
            return left - right
        if isinstance(node.op, ast.Mult):
            return left * right
        return left / right
    # parse_expression already rejected every other node type
    raise InvalidOperation(type(node).__name__)
