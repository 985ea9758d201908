"""Base classes and interfaces for expressions.

Expressions are trees of nodes, each node knows how to compute
its own value from the values of its children. The tree is
evaluated in one of two modes:

* **row-wise**, through :meth:`Expression.apply`: the expression
  is evaluated for every row of a :class:`keyedtable.storage.View`
  and produces one value per row, so a :class:`pyarrow.Array`.
* **aggregate**, through :meth:`Expression.apply_group`: the expression
  is evaluated once for a whole :class:`Group` of rows and
  produces a single :class:`pyarrow.Scalar`.

As the engine is column major, evaluating an expression row-wise
never loops over the rows in Python, every node works
on whole columns through :mod:`pyarrow.compute`.
"""

import abc
from typing import Any, Iterator

import pyarrow as pa

from ..errors import MixedAggregationError, NotFoundError, UnknownColumnError
from ..storage import View
from ..storage.column import decode


def broadcast(value: pa.Array | pa.Scalar, length: int) -> pa.Array:
    """Turn a scalar into an array of ``length`` copies of it.

    Arrays are returned unchanged.
    """
    if isinstance(value, pa.Scalar):
        return pa.repeat(value, length)
    return value


class Group:
    """Rows sharing the same values for the group-by keys.

    >>> from keyedtable.storage import Table
    >>> table = Table.from_pydict({"asset": ["A", "B", "A"], "signal": [1.0, 2.0, 3.0]})
    >>> group = Group(View(table, [0, 2]), ("asset",), ("A",))
    >>> group.key_value("asset")
    <pyarrow.StringScalar: 'A'>
    """

    def __init__(self, view: View, keys: tuple[str, ...], key: tuple) -> None:
        """
        :param view: The rows of the group.
        :param keys: The names of the group-by columns.
        :param key: The values of the group-by columns for this group.
        """
        self.view = view
        self.keys = keys
        self.key = key

    def key_value(self, name: str) -> pa.Scalar:
        """The value of a group-by column for this group."""
        position = self.keys.index(name)
        arrow_type = self.view.source_column(name).arrow_type
        if pa.types.is_dictionary(arrow_type):
            arrow_type = arrow_type.value_type
        return pa.scalar(self.key[position], type=arrow_type)

    def __len__(self) -> int:
        return self.view.num_rows

    def __str__(self) -> str:
        return f"Group({dict(zip(self.keys, self.key))}, rows={self.view.num_rows})"


class Expression(abc.ABC):
    """An operation that computes new data from the data of a view.

    Typical example of expressions are: ``A + B``
    which is expected to sum column A of the view to
    column B of the view and return the resulting column.

    Expressions support Python operators to build bigger expressions::

        (col("signal") * 2 > col("threshold")) & col("enabled")

    Equality is not overloaded, so that expressions can be compared
    with each other, use :meth:`eq` and :meth:`ne` instead.
    """

    is_aggregate = False

    @abc.abstractmethod
    def apply(self, view: View) -> pa.Array | pa.Scalar:
        """Evaluate the expression for each row of the view.

        Expressions that do not depend on the rows, like literals,
        can return a :class:`pyarrow.Scalar` that the caller
        will broadcast as needed.
        """
        ...

    @abc.abstractmethod
    def apply_group(self, group: Group) -> pa.Scalar:
        """Evaluate the expression once for a whole group of rows."""
        ...

    @abc.abstractmethod
    def __str__(self) -> str:
        """Human readable representation of the expression."""
        ...

    def __repr__(self) -> str:
        return str(self)

    def children(self) -> tuple["Expression", ...]:
        return ()

    def walk(self) -> Iterator["Expression"]:
        """Iterate over this node and all its descendants."""
        yield self
        for child in self.children():
            yield from child.walk()

    def columns(self) -> set[str]:
        """The names of all the columns referenced by the expression."""
        return {node.name for node in self.walk() if isinstance(node, ColumnRef)}

    def contains_aggregate(self) -> bool:
        return any(node.is_aggregate for node in self.walk())

    def named(self, name: str) -> "Expression":
        """Bind the result of the expression to an output column name."""
        from .expressions import NamedExpression

        return NamedExpression(name, self)

    def _binary(self, op: str, other: Any, reverse: bool = False) -> "Expression":
        from .expressions import BinaryOp

        other = ensure_expression(other)
        if reverse:
            return BinaryOp(op, other, self)
        return BinaryOp(op, self, other)

    def __add__(self, other: Any) -> "Expression":
        return self._binary("+", other)

    def __radd__(self, other: Any) -> "Expression":
        return self._binary("+", other, reverse=True)

    def __sub__(self, other: Any) -> "Expression":
        return self._binary("-", other)

    def __rsub__(self, other: Any) -> "Expression":
        return self._binary("-", other, reverse=True)

    def __mul__(self, other: Any) -> "Expression":
        return self._binary("*", other)

    def __rmul__(self, other: Any) -> "Expression":
        return self._binary("*", other, reverse=True)

    def __truediv__(self, other: Any) -> "Expression":
        return self._binary("/", other)

    def __rtruediv__(self, other: Any) -> "Expression":
        return self._binary("/", other, reverse=True)

    def __lt__(self, other: Any) -> "Expression":
        return self._binary("<", other)

    def __le__(self, other: Any) -> "Expression":
        return self._binary("<=", other)

    def __gt__(self, other: Any) -> "Expression":
        return self._binary(">", other)

    def __ge__(self, other: Any) -> "Expression":
        return self._binary(">=", other)

    def eq(self, other: Any) -> "Expression":
        return self._binary("==", other)

    def ne(self, other: Any) -> "Expression":
        return self._binary("!=", other)

    def __and__(self, other: Any) -> "Expression":
        from .expressions import LogicalOp

        return LogicalOp("and", self, ensure_expression(other))

    def __or__(self, other: Any) -> "Expression":
        from .expressions import LogicalOp

        return LogicalOp("or", self, ensure_expression(other))

    def __invert__(self) -> "Expression":
        from .expressions import LogicalOp

        return LogicalOp("not", self)


class ColumnRef(Expression):
    """References a column of the view being evaluated.

    When applied to a view returns the data for that column.
    In aggregate mode, only the group-by columns can be referenced
    outside of an aggregation, as they are the only columns
    that have a single value for the whole group.
    """

    def __init__(self, name: str) -> None:
        """
        :param name: The name of the column being referenced.
        """
        self.name = name

    def apply(self, view: View) -> pa.Array:
        """Get the data for the column."""
        try:
            return view.column(self.name)
        except NotFoundError:
            raise UnknownColumnError(self.name) from None

    def apply_group(self, group: Group) -> pa.Scalar:
        if self.name not in group.keys:
            if self.name not in group.view.column_names:
                raise UnknownColumnError(self.name)
            raise MixedAggregationError(
                self.name,
                f"Column {self.name} must be aggregated or be one of the group-by keys {list(group.keys)}",
            )
        return group.key_value(self.name)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ColumnRef) and other.name == self.name

    def __hash__(self) -> int:
        return hash((ColumnRef, self.name))

    def __str__(self) -> str:
        return f"ColumnRef({self.name})"


class Literal(Expression):
    """A constant value.

    The value is the same for every row, so it's kept as a scalar
    and broadcast only when it has to be combined with columns.
    """

    def __init__(self, value: Any) -> None:
        """
        :param value: A Python value or a :class:`pyarrow.Scalar`.
        """
        if not isinstance(value, pa.Scalar):
            value = pa.scalar(value)
        self.value = decode(value)

    def apply(self, view: View) -> pa.Scalar:
        return self.value

    def apply_group(self, group: Group) -> pa.Scalar:
        return self.value

    def as_py(self) -> Any:
        return self.value.as_py()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Literal) and other.value.equals(self.value)

    def __hash__(self) -> int:
        return hash((Literal, self.value.as_py()))

    def __str__(self) -> str:
        return f"Literal({self.value.as_py()!r})"


def ensure_expression(value: Any) -> Expression:
    """Wrap plain values into a :class:`Literal`."""
    if isinstance(value, Expression):
        return value
    return Literal(value)


col = ColumnRef
lit = Literal
