"""Queries on tables.

A query selects rows with a ``where`` predicate, optionally groups
them ``by`` some columns and computes output columns with a
``select`` or ``update`` projection:

>>> from keyedtable.storage import Table
>>> from keyedtable.compute import col, agg
>>> from keyedtable.query import QueryEngine, select
>>> table = Table.from_pydict({"asset": ["A", "B", "A", "B"], "signal": [1.0, 2.0, 3.0, 4.0]})
>>> result = QueryEngine().execute(
...     table,
...     where=col("signal") > 1.5,
...     select=select(total=agg.sum(col("signal"))),
...     by="asset",
... )
>>> result.to_pydict()
{'asset': ['B', 'A'], 'total': [6.0, 3.0]}
"""

from .engine import QueryEngine, QueryExecution, QueryState
from .filtering import equality_terms, filter_rows
from .grouping import partition
from .query import Projection, Query, select, update

__all__ = (
    "Projection",
    "Query",
    "QueryEngine",
    "QueryExecution",
    "QueryState",
    "equality_terms",
    "filter_rows",
    "partition",
    "select",
    "update",
)
