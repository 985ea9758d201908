"""Evaluation of expression trees.

The :class:`ExpressionEvaluator` is the interpreter that runs
expressions in row-wise or aggregate mode, after checking that
the expression is valid for that mode:

* row-wise evaluation can't contain aggregations.
* aggregate evaluation can only reference, outside of aggregations,
  the columns that the rows are grouped by.
* aggregations must be enabled in the engine configuration.
"""

from typing import Iterable, Iterator

import pyarrow as pa
import pyarrow.compute as pc

from ..config import AGGREGATE_FUNCTIONS
from ..errors import ColumnTypeError, MixedAggregationError, UnsupportedAggregateError
from ..storage import View
from .aggregate import AggregateCall
from .base import ColumnRef, Expression, Group, broadcast


def free_columns(expr: Expression) -> Iterator[ColumnRef]:
    """The column references that are not the argument of an aggregation."""
    if isinstance(expr, AggregateCall):
        return
    if isinstance(expr, ColumnRef):
        yield expr
    for child in expr.children():
        yield from free_columns(child)


class ExpressionEvaluator:
    """Evaluate expressions against views and groups of rows.

    >>> from keyedtable.storage import Table, View
    >>> from keyedtable.compute import col, agg
    >>> table = Table.from_pydict({"asset": ["A", "B", "A"], "signal": [1.0, 2.0, 3.0]})
    >>> evaluator = ExpressionEvaluator()
    >>> evaluator.evaluate_rows(col("signal") * 2, table.view()).to_pylist()
    [2.0, 4.0, 6.0]
    >>> group = Group(View(table, [0, 2]), ("asset",), ("A",))
    >>> evaluator.evaluate_group(agg.sum(col("signal")), group).as_py()
    4.0
    """

    def __init__(self, aggregate_fns: Iterable[str] = AGGREGATE_FUNCTIONS) -> None:
        """
        :param aggregate_fns: The aggregations expressions are allowed to invoke.
        """
        self.aggregate_fns = frozenset(aggregate_fns)

    def check_functions(self, expr: Expression) -> None:
        """Ensure the expression only invokes enabled aggregations."""
        for node in expr.walk():
            if isinstance(node, AggregateCall) and node.function not in self.aggregate_fns:
                raise UnsupportedAggregateError(node.function)

    def check_grouped(self, expr: Expression, keys: Iterable[str]) -> None:
        """Ensure the expression can be evaluated once per group.

        Columns outside aggregations must be group-by keys,
        otherwise they would have a different value for each row.
        """
        keys = set(keys)
        for ref in free_columns(expr):
            if ref.name not in keys:
                raise MixedAggregationError(
                    ref.name,
                    f"Column {ref.name} is neither aggregated nor a group-by key in {expr}",
                )

    def evaluate_rows(self, expr: Expression, view: View) -> pa.Array:
        """Evaluate the expression producing one value for each row of the view."""
        self.check_functions(expr)
        if expr.contains_aggregate():
            raise MixedAggregationError(
                None, f"Aggregations require aggregate evaluation: {expr}"
            )
        return broadcast(expr.apply(view), view.num_rows)

    def evaluate_group(self, expr: Expression, group: Group) -> pa.Scalar:
        """Evaluate the expression producing one value for the whole group."""
        self.check_functions(expr)
        self.check_grouped(expr, group.keys)
        return expr.apply_group(group)

    def evaluate_predicate(self, expr: Expression, view: View) -> pa.BooleanArray:
        """Evaluate a filter, rows where the result is null are not selected."""
        mask = self.evaluate_rows(expr, view)
        if pa.types.is_null(mask.type):
            mask = mask.cast(pa.bool_())
        if not pa.types.is_boolean(mask.type):
            raise ColumnTypeError(f"Filter must produce boolean values, got {mask.type} from {expr}")
        return pc.fill_null(mask, False)
