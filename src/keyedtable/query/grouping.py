"""Partitioning of rows into groups.

Rows are grouped by the tuple of their values for the group-by
columns, using a hash table of ``{key: [row, ...]}``.
This requires a single pass over the rows and preserves
the order in which keys are first found::

    asset: [B, A, B, A]  ->  B: [0, 2]
                             A: [1, 3]

When the table has an up to date index on exactly the group-by
columns, groups are emitted in the order of the index keys instead.
"""

from typing import Sequence

import pyarrow as pa

from ..compute import Group
from ..indexing import Index, sortable_key
from ..storage import View


def partition(view: View, keys: Sequence[str], index: Index | None = None) -> list[Group]:
    """Split the rows of a view into groups.

    :param view: The rows to group.
    :param keys: The group-by columns, when empty all rows
                 are part of a single group.
    :param index: An index on the same keys, used to sort the groups.
    """
    keys = tuple(keys)
    if not keys:
        return [Group(view, (), ())]

    key_values = [view.column(k).to_pylist() for k in keys]
    # NaN != NaN, so keys are compared the way the index compares them.
    groups: dict[tuple, tuple[tuple, list[int]]] = {}
    for position, key in enumerate(zip(*key_values)):
        groups.setdefault(sortable_key(key), (key, []))[1].append(position)

    entries = list(groups.values())
    if index is not None and not index.stale:
        entries.sort(key=lambda entry: sortable_key(entry[0]))

    return [
        Group(view.subview(pa.array(positions, type=pa.int64())), keys, key)
        for key, positions in entries
    ]
