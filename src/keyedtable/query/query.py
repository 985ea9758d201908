"""Description of a query.

A query is made of three optional parts, the same three parts
of a ``DT[i, j, by]`` expression in data.table or of a
``SELECT j FROM DT WHERE i GROUP BY by`` in SQL:

* ``where``: a predicate selecting the rows.
* ``select``: a :class:`Projection`, computing the output columns.
* ``by``: the columns to group the rows by.

Projections come in two forms:

* :func:`select` creates a new table with the computed columns.
* :func:`update` writes the computed columns in the queried table itself.

>>> from keyedtable.compute import col
>>> select(col("asset"), doubled=col("signal") * 2)
Projection(select, asset=ColumnRef(asset), doubled=(ColumnRef(signal) * Literal(2)))
"""

from typing import Any, Iterable

from ..compute import ColumnRef, Expression, NamedExpression
from ..compute.base import ensure_expression


class Projection:
    """The output columns of a query and where they are stored."""

    def __init__(self, bindings: Iterable[NamedExpression], in_place: bool = False) -> None:
        """
        :param bindings: The expressions computing the output columns.
        :param in_place: ``True`` when the columns have to be written
                         into the queried table (update form).
        """
        self.bindings = list(bindings)
        self.in_place = in_place
        names = [b.name for b in self.bindings]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"Duplicate output columns: {sorted(duplicates)}")
        if in_place and not self.bindings:
            raise ValueError("An update requires at least one column to assign")

    @property
    def names(self) -> list[str]:
        return [b.name for b in self.bindings]

    def contains_aggregate(self) -> bool:
        return any(b.contains_aggregate() for b in self.bindings)

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, Projection)
            and other.in_place == self.in_place
            and other.bindings == self.bindings
        )

    __hash__ = None

    def __str__(self) -> str:
        form = "update" if self.in_place else "select"
        bindings = ", ".join(str(b) for b in self.bindings)
        return f"Projection({form}, {bindings})"

    __repr__ = __str__


def _bindings(items: tuple[Any, ...], named: dict[str, Any]) -> list[NamedExpression]:
    bindings = []
    for item in items:
        if isinstance(item, NamedExpression):
            bindings.append(item)
        elif isinstance(item, ColumnRef):
            bindings.append(NamedExpression(item.name, item))
        elif isinstance(item, str):
            bindings.append(NamedExpression(item, ColumnRef(item)))
        else:
            raise ValueError(
                f"Unnamed expression {item}, use .named() or a keyword argument"
            )
    bindings.extend(NamedExpression(name, ensure_expression(e)) for name, e in named.items())
    return bindings


def select(*columns: Any, **expressions: Any) -> Projection:
    """Create a projection that produces a new table.

    :param columns: Column names, column references or named expressions.
    :param expressions: ``{name: expression}`` of the computed columns.
    """
    return Projection(_bindings(columns, expressions), in_place=False)


def update(*assignments: NamedExpression, **expressions: Any) -> Projection:
    """Create a projection that assigns columns of the queried table.

    Existing columns are overwritten for the selected rows, new
    columns are created with null values for the rows not selected.
    """
    for item in assignments:
        if not isinstance(item, NamedExpression):
            raise ValueError(f"Update requires named expressions, got {item}")
    return Projection(_bindings(assignments, expressions), in_place=True)


class Query:
    """A query to run on a table."""

    def __init__(
        self,
        where: Expression | None = None,
        select: Projection | None = None,
        by: str | Iterable[str] | None = None,
    ) -> None:
        """
        :param where: The predicate choosing the rows, all rows when ``None``.
        :param select: The projection, all columns of the selected rows when ``None``.
        :param by: The columns to group by.
        """
        if where is not None and not isinstance(where, Expression):
            raise ValueError(f"Filter must be an expression, got {where!r}")
        if select is not None and not isinstance(select, Projection):
            raise ValueError(f"Projection must be built with select() or update(), got {select!r}")
        if isinstance(by, str):
            by = [by]
        self.where = where
        self.select = select
        self.by = tuple(by or ())
        if len(set(self.by)) != len(self.by):
            raise ValueError(f"Duplicate group-by columns: {list(self.by)}")

    @property
    def is_update(self) -> bool:
        return self.select is not None and self.select.in_place

    @property
    def is_grouped(self) -> bool:
        """If the projection is evaluated once per group instead of once per row."""
        return bool(self.by) or (self.select is not None and self.select.contains_aggregate())

    def columns(self) -> set[str]:
        """All the columns the query reads."""
        columns = set(self.by)
        if self.where is not None:
            columns |= self.where.columns()
        if self.select is not None:
            for binding in self.select.bindings:
                columns |= binding.columns()
        return columns

    def __str__(self) -> str:
        return f"Query(where={self.where}, select={self.select}, by={list(self.by)})"

    __repr__ = __str__
