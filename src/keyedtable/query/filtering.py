"""Selection of the rows a query applies to.

Rows can be selected in two ways:

* **Index lookup**: when the filter is a conjunction of equality tests
  between key columns and literals, like ``asset == "A" and day == 1``,
  and an index exists whose key starts with exactly those columns,
  the rows are found with a binary search on the index.
* **Full scan**: any other filter is evaluated for every row of
  the table, and the rows where it's ``true`` are selected.

Both ways produce a :class:`keyedtable.storage.View` of the selected rows
and select the same set of rows, the index lookup emits them in key
order while the full scan keeps the table order.
"""

import logging
import math
from typing import Any

import pyarrow as pa
import pyarrow.compute as pc

from ..compute import BinaryOp, ColumnRef, Expression, ExpressionEvaluator, Literal, LogicalOp
from ..indexing import Index, IndexManager
from ..storage import Table, View

logger = logging.getLogger(__name__)


def equality_terms(expr: Expression) -> dict[str, Any] | None:
    """Extract ``{column: value}`` from a conjunction of equality tests.

    Returns ``None`` when the expression is not a conjunction of
    ``column == literal`` tests, or tests the same column twice.

    >>> from keyedtable.compute import col
    >>> equality_terms(col("asset").eq("A") & col("day").eq(1))
    {'asset': 'A', 'day': 1}
    >>> equality_terms(col("signal") > 1) is None
    True
    """
    if isinstance(expr, LogicalOp):
        if expr.op != "and":
            return None
        terms: dict[str, Any] = {}
        for operand in expr.operands:
            operand_terms = equality_terms(operand)
            if operand_terms is None or terms.keys() & operand_terms.keys():
                return None
            terms.update(operand_terms)
        return terms

    if isinstance(expr, BinaryOp) and expr.op == "==":
        left, right = expr.left, expr.right
        if isinstance(left, Literal) and isinstance(right, ColumnRef):
            left, right = right, left
        if isinstance(left, ColumnRef) and isinstance(right, Literal):
            value = right.as_py()
            # Comparing with null or NaN is never true, the index would match them.
            if value is None or (isinstance(value, float) and math.isnan(value)):
                return None
            return {left.name: value}
    return None


def plan_index_lookup(
    table: Table, where: Expression, indexes: IndexManager
) -> tuple[Index, tuple] | None:
    """Find the index and the key to lookup to evaluate the filter, if any."""
    terms = equality_terms(where)
    if not terms:
        return None
    index = indexes.find(table, terms)
    if index is None:
        return None
    key = tuple(terms[name] for name in index.keys[: len(terms)])
    return index, key


def filter_rows(
    table: Table,
    where: Expression | None,
    evaluator: ExpressionEvaluator,
    indexes: IndexManager,
) -> View:
    """Select the rows of the table matching the filter."""
    if where is None:
        return table.view()

    plan = plan_index_lookup(table, where, indexes)
    if plan is not None:
        index, key = plan
        logger.debug("Filter %s uses %s with key %r", where, index, key)
        return View(table, indexes.lookup(index, key))

    logger.debug("Filter %s requires a full scan of %s", where, table)
    mask = evaluator.evaluate_predicate(where, table.view())
    positions = pc.indices_nonzero(mask).cast(pa.int64())
    if len(positions) == table.num_rows:
        return table.view()
    return View(table, positions)
