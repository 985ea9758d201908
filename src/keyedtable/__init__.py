"""KeyedTable

An in-memory columnar table engine with keyed indexes.

KeyedTable stores tables as named, typed columns, indexes them on key
columns to find rows by key without scanning the whole table and answers
queries made of a filter, a projection and a grouping, the same
``DT[i, j, by]`` queries of R's data.table.

The engine is constituted by multiple components, each isolated within its own
module and each self documented in literate programming style.

The primary components are:

* The Storage, in charge of tables, views over their rows and columns mutations
  (:mod:`keyedtable.storage`).
* The Indexes, which sort the rows by their key to find them
  with a binary search (:mod:`keyedtable.indexing`).
* The Expressions, which describe how values are computed from
  the columns (:mod:`keyedtable.compute`).
* The Query Engine, which runs queries against tables
  (:mod:`keyedtable.query`).

A quick tour:

>>> from keyedtable import QueryEngine, ColumnStore, col, agg, select, update
>>> engine = QueryEngine()
>>> table = ColumnStore().create_table({
...     "id": [1, 2, 3, 4],
...     "asset": ["A", "B", "A", "B"],
...     "signal": [1.0, 2.0, 3.0, 4.0],
... })
>>> index = engine.build_index(table, ["asset"])
>>> engine.indexes.lookup(index, "A").to_pylist()
[0, 2]
>>> engine.execute(table, select=select(avg=agg.mean(col("signal"))), by="asset").to_pydict()
{'asset': ['A', 'B'], 'avg': [2.0, 3.0]}
>>> engine.execute(table, where=col("signal") > 2.5, select=["id"]).to_pydict()
{'id': [3, 4]}

For the user guide and code documentation of each component, refer to the
component itself.
"""

from . import compute, errors, indexing, io, query, storage
from .compute import agg, col, lit
from .config import EngineConfig
from .errors import KeyedTableError
from .indexing import Index, IndexManager
from .io import load
from .query import Query, QueryEngine, select, update
from .storage import ColumnSpec, ColumnStore, ColumnType, Table, View

__all__ = (
    "compute",
    "errors",
    "indexing",
    "io",
    "query",
    "storage",
    "agg",
    "col",
    "lit",
    "ColumnSpec",
    "ColumnStore",
    "ColumnType",
    "EngineConfig",
    "Index",
    "IndexManager",
    "KeyedTableError",
    "Query",
    "QueryEngine",
    "Table",
    "View",
    "load",
    "select",
    "update",
)
