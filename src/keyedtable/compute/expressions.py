"""Arithmetic, comparison and logical expressions.

Filters will need a ``predicate``, so an expression that
returns ``true`` or ``false`` for each row that has to be
filtered. Projections will need an expression that computes
the values of new columns, for example ``A + B``.

Each operator is mapped to the :mod:`pyarrow.compute` function
that implements it, the same function works on arrays
(row-wise mode) and on scalars (aggregate mode).

>>> from keyedtable.storage import Table
>>> from keyedtable.compute import col
>>> table = Table.from_pydict({"a": [1, 2, 3], "b": [0.5, 0.5, 2.0]})
>>> (col("a") * col("b")).apply(table.view()).to_pylist()
[0.5, 1.0, 6.0]
>>> (col("a") / 2).apply(table.view()).to_pylist()
[0.5, 1.0, 1.5]
"""

from typing import Any

import pyarrow as pa
import pyarrow.compute as pc

from ..errors import ColumnTypeError
from ..storage import View
from ..storage.column import decode
from .base import ColumnRef, Expression, Group, ensure_expression

ARITHMETIC_OPERATORS = {
    "+": pc.add,
    "-": pc.subtract,
    "*": pc.multiply,
    "/": pc.divide,
}

COMPARISON_OPERATORS = {
    "==": pc.equal,
    "!=": pc.not_equal,
    "<": pc.less,
    "<=": pc.less_equal,
    ">": pc.greater,
    ">=": pc.greater_equal,
}


def _is_numeric(arrow_type: pa.DataType) -> bool:
    return (
        pa.types.is_integer(arrow_type)
        or pa.types.is_floating(arrow_type)
        or pa.types.is_null(arrow_type)
    )


def _describe(expr: Expression) -> str | None:
    return expr.name if isinstance(expr, ColumnRef) else None


class BinaryOp(Expression):
    """Apply an arithmetic or comparison operator to two expressions.

    Arithmetic follows the widest type: when either side is a floating
    point value, integers are promoted to floating point.
    Division always produces floating point values.
    """

    def __init__(self, op: str, left: Any, right: Any) -> None:
        """
        :param op: One of ``+ - * /`` or ``== != < <= > >=``.
        :param left: The left operand, plain values are treated as literals.
        :param right: The right operand, plain values are treated as literals.
        """
        if op not in ARITHMETIC_OPERATORS and op not in COMPARISON_OPERATORS:
            raise ValueError(f"Unsupported operator: {op}")
        self.op = op
        self.left = ensure_expression(left)
        self.right = ensure_expression(right)

    @property
    def is_comparison(self) -> bool:
        return self.op in COMPARISON_OPERATORS

    def children(self) -> tuple[Expression, ...]:
        return (self.left, self.right)

    def apply(self, view: View) -> pa.Array | pa.Scalar:
        return self._compute(self.left.apply(view), self.right.apply(view))

    def apply_group(self, group: Group) -> pa.Scalar:
        return self._compute(self.left.apply_group(group), self.right.apply_group(group))

    def _compute(self, left: Any, right: Any) -> Any:
        left, right = decode(left), decode(right)
        if self.is_comparison:
            func = COMPARISON_OPERATORS[self.op]
        else:
            for operand, expr in ((left, self.left), (right, self.right)):
                if not _is_numeric(operand.type):
                    raise ColumnTypeError(
                        f"Operator {self.op} requires numeric operands, got {operand.type} from {expr}",
                        column=_describe(expr),
                    )
            if self.op == "/":
                left = left.cast(pa.float64())
                right = right.cast(pa.float64())
            func = ARITHMETIC_OPERATORS[self.op]

        try:
            return func(left, right)
        except (pa.ArrowNotImplementedError, pa.ArrowTypeError) as e:
            raise ColumnTypeError(
                f"Can't apply {self.op} to {left.type} and {right.type}: {e}",
                column=_describe(self.left) or _describe(self.right),
            ) from e

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, BinaryOp)
            and other.op == self.op
            and other.left == self.left
            and other.right == self.right
        )

    __hash__ = None

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"


class LogicalOp(Expression):
    """Combine boolean expressions with ``and``, ``or`` or ``not``.

    Nulls follow Kleene logic, so ``null and false`` is ``false``.
    """

    FUNCTIONS = {
        "and": pc.and_kleene,
        "or": pc.or_kleene,
        "not": pc.invert,
    }

    def __init__(self, op: str, *operands: Any) -> None:
        """
        :param op: ``and``, ``or`` or ``not``.
        :param operands: Two operands for ``and`` and ``or``, one for ``not``.
        """
        if op not in self.FUNCTIONS:
            raise ValueError(f"Unsupported logical operator: {op}")
        expected = 1 if op == "not" else 2
        if len(operands) != expected:
            raise ValueError(f"Operator {op} expects {expected} operands, got {len(operands)}")
        self.op = op
        self.operands = tuple(ensure_expression(o) for o in operands)

    def children(self) -> tuple[Expression, ...]:
        return self.operands

    def apply(self, view: View) -> pa.Array | pa.Scalar:
        return self._compute([o.apply(view) for o in self.operands])

    def apply_group(self, group: Group) -> pa.Scalar:
        return self._compute([o.apply_group(group) for o in self.operands])

    def _compute(self, values: list[Any]) -> Any:
        for value, expr in zip(values, self.operands):
            if not (pa.types.is_boolean(value.type) or pa.types.is_null(value.type)):
                raise ColumnTypeError(
                    f"Operator {self.op} requires boolean operands, got {value.type} from {expr}",
                    column=_describe(expr),
                )
        return self.FUNCTIONS[self.op](*values)

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, LogicalOp)
            and other.op == self.op
            and other.operands == self.operands
        )

    __hash__ = None

    def __str__(self) -> str:
        if self.op == "not":
            return f"(not {self.operands[0]})"
        return f"({self.operands[0]} {self.op} {self.operands[1]})"


class NamedExpression(Expression):
    """Bind the result of an expression to an output column name.

    Projections are made of named expressions, the name
    is the column where the result of the expression is stored.
    """

    def __init__(self, name: str, expression: Any) -> None:
        """
        :param name: The name of the output column.
        :param expression: The expression computing the values of the column.
        """
        if not isinstance(name, str) or not name:
            raise ValueError(f"Invalid output column name: {name!r}")
        self.name = name
        self.expression = ensure_expression(expression)

    def children(self) -> tuple[Expression, ...]:
        return (self.expression,)

    def apply(self, view: View) -> pa.Array | pa.Scalar:
        return self.expression.apply(view)

    def apply_group(self, group: Group) -> pa.Scalar:
        return self.expression.apply_group(group)

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, NamedExpression)
            and other.name == self.name
            and other.expression == self.expression
        )

    __hash__ = None

    def __str__(self) -> str:
        return f"{self.name}={self.expression}"


def eq(left: Any, right: Any) -> BinaryOp:
    """Equality test, ``left == right``."""
    return BinaryOp("==", left, right)


def ne(left: Any, right: Any) -> BinaryOp:
    """Inequality test, ``left != right``."""
    return BinaryOp("!=", left, right)


def and_(*operands: Any) -> Expression:
    """Conjunction of any number of boolean expressions."""
    if not operands:
        raise ValueError("and_ requires at least one operand")
    result = ensure_expression(operands[0])
    for operand in operands[1:]:
        result = LogicalOp("and", result, operand)
    return result


def or_(*operands: Any) -> Expression:
    """Disjunction of any number of boolean expressions."""
    if not operands:
        raise ValueError("or_ requires at least one operand")
    result = ensure_expression(operands[0])
    for operand in operands[1:]:
        result = LogicalOp("or", result, operand)
    return result


def not_(operand: Any) -> LogicalOp:
    return LogicalOp("not", operand)
