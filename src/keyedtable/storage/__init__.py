"""Columnar storage.

Tables are stored column by column, each column being
an immutable :class:`pyarrow.Array`. Immutability is what makes
views and copy-on-write cheap: a view only records row positions,
and materializing it reuses the arrays of every column that is not
being written.

The :class:`ColumnStore` is the entry point to create and mutate tables:

>>> store = ColumnStore()
>>> table = store.create_table({"id": [1, 2, 3, 4], "signal": [1.0, 2.0, 3.0, 4.0]})
>>> copy = store.materialize(store.slice(table, range(4)), pending={"signal": [0.0] * 4})
>>> copy.column("id") is table.column("id")
True
>>> table.column("signal").data.to_pylist()
[1.0, 2.0, 3.0, 4.0]
"""

from .column import Column, ColumnType
from .store import ColumnSpec, ColumnStore
from .table import Table, View, row_positions

__all__ = (
    "Column",
    "ColumnType",
    "ColumnSpec",
    "ColumnStore",
    "Table",
    "View",
    "row_positions",
)
