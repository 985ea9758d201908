"""Sort order indexes for fast key lookups.

Looking for the rows where a column has a specific value requires
scanning the whole column, which is ``O(n)``. When the same lookup
happens many times, it is convenient to pay once the cost of sorting
the rows by the key columns and then find the rows of any key
using binary search in ``O(log m)``, where ``m`` is the number of
distinct keys.

An :class:`Index` is made of two parts:

* The permutation of the row positions that sorts the table by its keys.
  The sort is stable, so rows with the same key keep their original order.
* The boundaries table, which for each distinct key tells where
  its rows start and end in the permutation.

For example given the rows ``asset: [B, A, B, A]`` the index would be::

    permutation: [1, 3, 0, 2]
    boundaries:  (A,) -> 0:2
                 (B,) -> 2:4

Looking up ``A`` means finding ``(A,)`` in the boundaries with
a binary search and returning the ``0:2`` slice of the permutation,
so rows ``[1, 3]``.

>>> import pyarrow as pa
>>> from keyedtable.storage import Table
>>> table = Table.from_arrow(pa.table({"asset": ["B", "A", "B", "A"], "day": [2, 1, 1, 2]}))
>>> index = IndexManager().build(table, ["asset", "day"])
>>> IndexManager().lookup(index, ("B", 1)).to_pylist()
[2]
>>> IndexManager().lookup(index, "A").to_pylist()
[1, 3]
"""

import bisect
import logging
import math
from typing import Any, Iterable, Sequence

import pyarrow as pa
import pyarrow.compute as pc

from .config import TIES_POLICIES
from .errors import (
    ColumnTypeError,
    ConfigError,
    NotFoundError,
    SchemaError,
    StaleIndexError,
)
from .storage import Table, row_positions
from .storage.column import decode

logger = logging.getLogger(__name__)


def sortable(value: Any) -> tuple:
    """Make a key value comparable with any other value of the same column.

    Python can't compare ``None`` with other values, and ``NaN``
    is not comparable at all, so they are ranked after every
    other value, the same place where Arrow sorts them.
    """
    if value is None:
        return (2, 0)
    if isinstance(value, float) and math.isnan(value):
        return (1, 0)
    return (0, value)


def sortable_key(key: Iterable[Any]) -> tuple:
    return tuple(sortable(v) for v in key)


class Index:
    """A sort order index over one or more key columns of a table.

    Indexes are created by :meth:`IndexManager.build`, and are
    only valid until the table is mutated in a way that affects
    the key columns, at that point the index is marked as stale.
    """

    def __init__(
        self,
        keys: tuple[str, ...],
        permutation: pa.Int64Array,
        key_values: list[tuple],
        offsets: list[int],
        ties: str,
    ) -> None:
        """
        :param keys: The key columns, in the order they are compared.
        :param permutation: Row positions sorted by key.
        :param key_values: The distinct keys, sorted.
        :param offsets: Where the rows of each key start in the permutation,
                        plus a final entry with the total number of rows.
        :param ties: How rows with the same key were ordered.
        """
        self.keys = keys
        self.permutation = permutation
        self.key_values = key_values
        self.offsets = offsets
        self.ties = ties
        self.stale = False
        self._sort_keys = [sortable_key(k) for k in key_values]

    @property
    def num_keys(self) -> int:
        """Number of distinct keys in the index."""
        return len(self.key_values)

    @property
    def num_rows(self) -> int:
        return len(self.permutation)

    def invalidate(self) -> None:
        if not self.stale:
            logger.debug("Invalidating %s", self)
        self.stale = True

    def boundaries(self) -> list[tuple[tuple, int, int]]:
        """The ``(key, start, end)`` entries of the index, in key order."""
        return [
            (key, self.offsets[i], self.offsets[i + 1])
            for i, key in enumerate(self.key_values)
        ]

    def __str__(self) -> str:
        state = "stale" if self.stale else "fresh"
        return f"Index(keys={list(self.keys)}, distinct={self.num_keys}, rows={self.num_rows}, {state})"

    __repr__ = __str__


class IndexManager:
    """Build, search and invalidate indexes."""

    def __init__(self, ties: str = "first") -> None:
        """
        :param ties: Default ordering of rows with equal keys,
                     ``"first"`` keeps the original order of the rows,
                     ``"last"`` reverses it.
        """
        if ties not in TIES_POLICIES:
            raise ConfigError("ties", f"must be one of {TIES_POLICIES}, got {ties!r}")
        self.ties = ties

    def build(
        self, table: Table, key_columns: Sequence[str], ties: str | None = None
    ) -> Index:
        """Build an index on ``key_columns`` and register it in the table.

        Any previous index on the same key columns is replaced.

        The rows are sorted by the tuple of the key values
        with the original row position as the last sorting key,
        which makes the order of equal keys deterministic.
        Then a single pass over the sorted keys finds where
        each key starts, like the multi key aggregation
        finds the chunks of rows sharing the same key.
        """
        if isinstance(key_columns, str):
            key_columns = [key_columns]
        keys = tuple(key_columns)
        ties = ties or self.ties
        if not keys:
            raise SchemaError("An index requires at least one key column")
        if len(set(keys)) != len(keys):
            raise SchemaError(f"Duplicate key columns: {list(keys)}")
        if ties not in TIES_POLICIES:
            raise ConfigError("ties", f"must be one of {TIES_POLICIES}, got {ties!r}")

        with table.exclusive():
            for key in keys:
                if key not in table:
                    raise NotFoundError(key)

            # Use positional names, key columns might clash with the row column.
            key_arrays = [decode(table.column(key).data) for key in keys]
            sorting_table = pa.table(
                {str(i): arr for i, arr in enumerate(key_arrays)}
                | {"row": row_positions(table.num_rows)}
            )
            sorting = [(str(i), "ascending") for i in range(len(keys))]
            sorting.append(("row", "ascending" if ties == "first" else "descending"))
            # Nulls and NaNs sort at the end, which is the Arrow default.
            permutation = pc.sort_indices(sorting_table, sort_keys=sorting)
            permutation = permutation.cast(pa.int64())

            sorted_keys = zip(*(arr.take(permutation).to_pylist() for arr in key_arrays))
            key_values: list[tuple] = []
            offsets: list[int] = []
            current_key = None
            for row_index, row_key in enumerate(sorted_keys):
                if not offsets or sortable_key(row_key) != sortable_key(current_key):
                    key_values.append(row_key)
                    offsets.append(row_index)
                    current_key = row_key
            offsets.append(table.num_rows)

            index = Index(keys, permutation, key_values, offsets, ties)
            previous = table.indexes.get(keys)
            if previous is not None:
                previous.invalidate()
            table.indexes[keys] = index

        logger.debug("Built %s on %s", index, table)
        return index

    def lookup(self, index: Index, key: Any) -> pa.Int64Array:
        """Find the positions of the rows matching a key.

        :param key: The value of the key, a tuple when the key has multiple
                    columns. A tuple shorter than the key matches all the rows
                    whose first key columns are equal to it.
        :returns: The row positions, ordered by key. Empty if the key is absent.
        """
        if index.stale:
            raise StaleIndexError(index.keys)
        if not isinstance(key, tuple):
            key = (key,)
        prefix_len = len(key)
        if prefix_len > len(index.keys):
            raise SchemaError(
                f"Key {key!r} is longer than the index key {list(index.keys)}"
            )

        probe = sortable_key(key)
        try:
            start = bisect.bisect_left(
                index._sort_keys, probe, key=lambda k: k[:prefix_len]
            )
            end = bisect.bisect_right(
                index._sort_keys, probe, lo=start, key=lambda k: k[:prefix_len]
            )
        except TypeError as e:
            raise ColumnTypeError(
                f"Key {key!r} is not comparable with the index key {list(index.keys)}: {e}"
            ) from e
        row_start = index.offsets[start]
        row_end = index.offsets[end]
        return index.permutation.slice(row_start, row_end - row_start)

    def invalidate(self, index: Index) -> None:
        """Mark an index as stale, lookups will fail until it is rebuilt."""
        index.invalidate()

    def find(self, table: Table, columns: Iterable[str]) -> Index | None:
        """Find an index whose key starts with ``columns``, in any order.

        Indexes whose whole key matches are preferred over those
        where ``columns`` is only a prefix of the key.
        Stale indexes are returned too, so that using them
        reports a :class:`StaleIndexError` instead of silently
        falling back to a slower scan.
        """
        columns = set(columns)
        if not columns:
            return None
        candidates = [
            index
            for keys, index in table.indexes.items()
            if len(keys) >= len(columns) and set(keys[: len(columns)]) == columns
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda index: len(index.keys))

    def find_exact(self, table: Table, keys: Sequence[str]) -> Index | None:
        """The index on exactly ``keys``, in the same order, if any."""
        return table.indexes.get(tuple(keys))
