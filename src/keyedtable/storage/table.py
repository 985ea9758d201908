"""Tables and views over their rows.

A :class:`Table` is an ordered collection of :class:`Column` objects
that all share the same number of rows.

A :class:`View` is a lightweight reference to a subset of the rows of
a table. Creating a view never copies data, it only records which rows
are part of it. The column values for the rows of a view are resolved
when they are first requested:

* contiguous row ranges are resolved with :meth:`pyarrow.Array.slice`,
  which is a zero-copy operation.
* arbitrary position lists are resolved with :meth:`pyarrow.Array.take`.

>>> import pyarrow as pa
>>> table = Table.from_arrow(pa.table({"id": [1, 2, 3, 4], "asset": ["A", "B", "A", "B"]}))
>>> view = View(table, range(1, 3))
>>> view.to_pydict()
{'id': [2, 3], 'asset': ['B', 'A']}
"""

import contextlib
import threading
from typing import Any, Iterable, Iterator, Self

import pyarrow as pa
import pyarrow.compute as pc

from ..errors import NotFoundError, SchemaError
from .column import Column, ColumnType


def row_positions(num_rows: int) -> pa.Int64Array:
    """All the row positions of a table with ``num_rows`` rows."""
    return pa.array(range(num_rows), type=pa.int64())


class Table:
    """A set of named columns with the same number of rows.

    Beside its columns, a table owns the indexes built over it
    and a lock that writers must hold while they mutate it.

    Tables should be mutated only through :class:`keyedtable.storage.ColumnStore`,
    which takes care of invalidating the indexes that the mutation affects.
    """

    def __init__(self, columns: Iterable[Column] = ()) -> None:
        """
        :param columns: The columns of the table, in order.
        """
        self._columns: dict[str, Column] = {}
        self._num_rows = 0
        for column in columns:
            if column.name in self._columns:
                raise SchemaError(f"Duplicate column name: {column.name}", column=column.name)
            if self._columns and len(column) != self._num_rows:
                raise SchemaError(
                    f"Column {column.name} has {len(column)} rows, expected {self._num_rows}",
                    column=column.name,
                )
            self._columns[column.name] = column
            self._num_rows = len(column)

        # {key_columns: Index}, managed by keyedtable.indexing.IndexManager
        self.indexes: dict[tuple[str, ...], Any] = {}
        self._lock = threading.RLock()

    @classmethod
    def from_arrow(cls, data: pa.Table | pa.RecordBatch) -> Self:
        """Create a table from a :class:`pyarrow.Table` or :class:`pyarrow.RecordBatch`."""
        columns = []
        for name, values in zip(data.column_names, data.columns):
            if isinstance(values, pa.ChunkedArray):
                values = values.combine_chunks()
            columns.append(Column(name, values))
        return cls(columns)

    @classmethod
    def from_pydict(cls, data: dict[str, Any]) -> Self:
        """Create a table from a dictionary of Python sequences."""
        try:
            return cls.from_arrow(pa.table(data))
        except (pa.ArrowInvalid, pa.ArrowTypeError) as e:
            raise SchemaError(f"Invalid table data: {e}") from e

    @property
    def num_rows(self) -> int:
        return self._num_rows

    @property
    def num_columns(self) -> int:
        return len(self._columns)

    @property
    def column_names(self) -> list[str]:
        return list(self._columns)

    @property
    def schema(self) -> dict[str, ColumnType]:
        """The type of each column of the table."""
        return {name: c.type for name, c in self._columns.items()}

    @property
    def columns(self) -> list[Column]:
        return list(self._columns.values())

    def column(self, name: str) -> Column:
        """Get a column by name."""
        try:
            return self._columns[name]
        except KeyError:
            raise NotFoundError(name) from None

    def __contains__(self, name: str) -> bool:
        return name in self._columns

    def __len__(self) -> int:
        return self._num_rows

    @contextlib.contextmanager
    def exclusive(self) -> Iterator[Self]:
        """Hold exclusive write access to the table.

        Writers (updates, index builds) serialize on this lock,
        readers never need to acquire it because they only
        see immutable column snapshots.
        """
        with self._lock:
            yield self

    def invalidate_indexes(self, columns: Iterable[str] | None = None) -> None:
        """Mark as stale the indexes whose key includes any of ``columns``.

        When ``columns`` is ``None`` all indexes are invalidated,
        which is what happens when rows are added or removed.
        """
        columns = None if columns is None else set(columns)
        for keys, index in self.indexes.items():
            if columns is None or columns.intersection(keys):
                index.invalidate()

    def _set_columns(self, columns: Iterable[Column]) -> None:
        """Replace the whole content of the table, ColumnStore only."""
        self._columns = {c.name: c for c in columns}
        self._num_rows = len(next(iter(self._columns.values()))) if self._columns else 0

    def _put_column(self, column: Column) -> None:
        """Replace or append one column, ColumnStore only."""
        if not self._columns:
            self._num_rows = len(column)
        self._columns[column.name] = column

    def _pop_column(self, name: str) -> Column:
        column = self._columns.pop(name)
        if not self._columns:
            self._num_rows = 0
        return column

    def view(self) -> "View":
        """A view spanning all the rows of the table."""
        return View(self, range(self._num_rows))

    def head(self, n: int = 5) -> "View":
        return self.view().head(n)

    def tail(self, n: int = 5) -> "View":
        return self.view().tail(n)

    def iter_rows(self, limit: int | None = None) -> Iterator[dict[str, Any]]:
        """Iterate over the rows of the table as dictionaries."""
        return self.view().iter_rows(limit)

    def to_arrow(self) -> pa.Table:
        return pa.table({name: c.data for name, c in self._columns.items()})

    def to_pydict(self) -> dict[str, list]:
        return {name: c.data.to_pylist() for name, c in self._columns.items()}

    def __str__(self) -> str:
        return f"Table(columns={self.column_names}, rows={self._num_rows})"

    __repr__ = __str__


class View:
    """A read-only reference to a subset of the rows of a table.

    The view captures the columns of the table at the moment it is created,
    so a concurrent update to the table, which always replaces columns
    instead of modifying them, is never visible through an existing view.
    """

    def __init__(self, table: Table, rows: range | pa.Array) -> None:
        """
        :param table: The table the view refers to.
        :param rows: The positions of the rows of the table that are part
                     of the view. A ``range`` with step 1 for contiguous rows
                     or an array of integer positions.
        """
        if isinstance(rows, range):
            if rows.step != 1:
                rows = pa.array(rows, type=pa.int64())
            elif rows.start < 0 or rows.stop > table.num_rows:
                raise IndexError(f"Rows {rows} out of range for {table.num_rows} rows")
        elif not isinstance(rows, pa.Array):
            rows = pa.array(rows, type=pa.int64())

        if isinstance(rows, pa.Array):
            if not pa.types.is_integer(rows.type):
                raise TypeError(f"Row positions must be integers, got {rows.type}")
            if rows.type != pa.int64():
                rows = rows.cast(pa.int64())
            if len(rows) and (rows.null_count or not self._in_bounds(rows, table.num_rows)):
                raise IndexError(f"Row positions out of range for {table.num_rows} rows")

        self.table = table
        self.rows = rows
        self._columns = dict(table._columns)
        self._table_rows = table.num_rows
        self._cache: dict[str, pa.Array] = {}

    @staticmethod
    def _in_bounds(rows: pa.Array, num_rows: int) -> bool:
        bounds = pc.min_max(rows)
        return bounds["min"].as_py() >= 0 and bounds["max"].as_py() < num_rows

    @property
    def is_contiguous(self) -> bool:
        return isinstance(self.rows, range)

    @property
    def spans_table(self) -> bool:
        """If the view includes all the rows of the table in their original order."""
        return self.is_contiguous and self.rows == range(self._table_rows)

    @property
    def num_rows(self) -> int:
        return len(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def column_names(self) -> list[str]:
        return list(self._columns)

    @property
    def schema(self) -> dict[str, ColumnType]:
        return {name: c.type for name, c in self._columns.items()}

    def source_column(self, name: str) -> Column:
        """The column of the table the view refers to."""
        try:
            return self._columns[name]
        except KeyError:
            raise NotFoundError(name) from None

    def column(self, name: str) -> pa.Array:
        """The values of a column for the rows of the view."""
        values = self._cache.get(name)
        if values is None:
            data = self.source_column(name).data
            if self.spans_table:
                values = data
            elif self.is_contiguous:
                values = data.slice(self.rows.start, len(self.rows))
            else:
                values = data.take(self.rows)
            self._cache[name] = values
        return values

    def positions(self) -> pa.Int64Array:
        """The positions in the table of the rows of the view."""
        if self.is_contiguous:
            return pa.array(self.rows, type=pa.int64())
        return self.rows

    def subview(self, rows: range | pa.Array) -> "View":
        """A view over some of the rows of this view.

        :param rows: Positions relative to this view.
        """
        if isinstance(rows, range) and self.is_contiguous:
            absolute = self.rows[rows.start:rows.stop]
        else:
            if isinstance(rows, range):
                rows = pa.array(rows, type=pa.int64())
            absolute = self.positions().take(rows)
        view = View.__new__(View)
        view.table = self.table
        view.rows = absolute
        view._columns = self._columns
        view._table_rows = self._table_rows
        view._cache = {}
        return view

    def head(self, n: int = 5) -> "View":
        return self.subview(range(0, min(n, self.num_rows)))

    def tail(self, n: int = 5) -> "View":
        return self.subview(range(max(self.num_rows - n, 0), self.num_rows))

    def iter_rows(self, limit: int | None = None) -> Iterator[dict[str, Any]]:
        """Iterate over the rows of the view as dictionaries.

        :param limit: The maximum number of rows to emit.
        """
        view = self if limit is None else self.head(limit)
        names = view.column_names
        values = [view.column(name).to_pylist() for name in names]
        for row in zip(*values):
            yield dict(zip(names, row))

    def to_arrow(self) -> pa.Table:
        return pa.table({name: self.column(name) for name in self._columns})

    def to_pydict(self) -> dict[str, list]:
        return {name: self.column(name).to_pylist() for name in self._columns}

    def __str__(self) -> str:
        kind = "range" if self.is_contiguous else "positions"
        return f"View({self.table}, {kind}, rows={self.num_rows})"

    __repr__ = __str__
