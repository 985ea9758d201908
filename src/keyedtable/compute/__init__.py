"""The KeyedTable expression language.

Expressions describe how to compute values from the columns of a table.
They are trees made of column references, literals, arithmetic, comparison
and logical operators, aggregations and named results:

>>> from keyedtable.storage import Table
>>> from keyedtable.compute import col, agg, ExpressionEvaluator
>>> table = Table.from_pydict({"asset": ["A", "B", "A", "B"], "signal": [1.0, 2.0, 3.0, 4.0]})
>>> predicate = (col("signal") > 1.5) & col("asset").eq("B")
>>> print(predicate)
((ColumnRef(signal) > Literal(1.5)) and (ColumnRef(asset) == Literal('B')))
>>> ExpressionEvaluator().evaluate_predicate(predicate, table.view()).to_pylist()
[False, True, False, True]

Expressions are evaluated by the :class:`ExpressionEvaluator`,
either once for each row or once for each group of rows
when they contain aggregations like ``agg.mean(col("signal"))``.
"""

from . import agg
from .aggregate import AGGREGATIONS, UNDEFINED, AggregateCall
from .base import ColumnRef, Expression, Group, Literal, col, lit
from .evaluator import ExpressionEvaluator
from .expressions import BinaryOp, LogicalOp, NamedExpression, and_, eq, ne, not_, or_

__all__ = (
    "agg",
    "AGGREGATIONS",
    "UNDEFINED",
    "AggregateCall",
    "BinaryOp",
    "ColumnRef",
    "Expression",
    "ExpressionEvaluator",
    "Group",
    "Literal",
    "LogicalOp",
    "NamedExpression",
    "and_",
    "col",
    "eq",
    "lit",
    "ne",
    "not_",
    "or_",
)
