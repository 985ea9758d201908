"""The ColumnStore, the only component allowed to mutate tables.

All table mutations go through the store so that the indexes of
a table are invalidated whenever the data they refer to changes.
"""

import logging
from typing import Any, Iterable, Mapping, NamedTuple, Sequence

import pyarrow as pa
import pyarrow.compute as pc

from ..errors import ColumnTypeError, LengthMismatchError, NotFoundError, SchemaError
from .column import Column, ColumnType, to_arrow_array
from .table import Table, View, row_positions

logger = logging.getLogger(__name__)


class ColumnSpec(NamedTuple):
    """Describes a column to create.

    When ``kind`` is ``None`` the type of the column
    is detected from the provided values.
    """

    name: str
    values: Any
    kind: ColumnType | str | None = None


class ColumnStore:
    """Create, slice, materialize and mutate tables.

    >>> store = ColumnStore()
    >>> table = store.create_table([
    ...     ColumnSpec("id", [1, 2, 3, 4]),
    ...     ColumnSpec("asset", ["A", "B", "A", "B"], "enum"),
    ... ])
    >>> table.schema
    {'id': <ColumnType.INTEGER: 'integer'>, 'asset': <ColumnType.ENUM: 'enum'>}
    >>> store.slice(table, [0, 2]).to_pydict()
    {'id': [1, 3], 'asset': ['A', 'A']}
    """

    def create_table(
        self, column_specs: Sequence[ColumnSpec | tuple] | Mapping[str, Any]
    ) -> Table:
        """Create a new table from the description of its columns.

        :param column_specs: A sequence of :class:`ColumnSpec` or a mapping
                             of column names to their values.
        """
        if isinstance(column_specs, Mapping):
            column_specs = [ColumnSpec(name, values) for name, values in column_specs.items()]

        columns = []
        for spec in column_specs:
            spec = ColumnSpec(*spec)
            arrow_type = None
            if spec.kind is not None:
                arrow_type = ColumnType.parse(spec.kind).arrow_type()
            try:
                data = to_arrow_array(spec.values, arrow_type)
            except (pa.ArrowInvalid, pa.ArrowTypeError, pa.ArrowNotImplementedError) as e:
                raise SchemaError(f"Invalid values for column {spec.name}: {e}", column=spec.name) from e
            columns.append(Column(spec.name, data))

        table = Table(columns)
        logger.debug("Created %s", table)
        return table

    def get_column(self, table: Table, name: str) -> Column:
        """Get a column of a table, raises :class:`NotFoundError` if missing."""
        return table.column(name)

    def slice(self, table: Table, rows: range | slice | Iterable[int] | pa.Array) -> View:
        """Create a view over some rows of a table without copying data.

        :param rows: A ``range`` or ``slice`` for contiguous rows,
                     otherwise a sequence of row positions.
        """
        if isinstance(rows, slice):
            rows = range(*rows.indices(table.num_rows))
        return View(table, rows)

    def materialize(
        self,
        view: View,
        pending: Mapping[str, Any] | None = None,
        columns: Iterable[str] | None = None,
    ) -> Table:
        """Create an independent table from a view.

        Columns with a pending write get new storage with the written values,
        all the other columns reuse the storage of the source table:
        the very same :class:`Column` when the view spans the whole table,
        a zero-copy slice for contiguous views.

        As column data is immutable, writes on the materialized table
        will never be visible in the source table and vice versa.

        :param view: The rows to materialize.
        :param pending: Values to write in the materialized table ``{name: values}``,
                        one value for each row of the view.
        :param columns: The source columns to include, all of them by default.
                        Pending columns not listed are appended at the end.
        """
        pending = dict(pending or {})
        names = view.column_names if columns is None else list(columns)

        result = []
        for name in names:
            if name in pending:
                result.append(self._make_column(name, pending.pop(name), view.num_rows))
            elif view.spans_table:
                result.append(view.source_column(name))
            else:
                result.append(Column(name, view.column(name)))
        for name, values in pending.items():
            result.append(self._make_column(name, values, view.num_rows))
        return Table(result)

    def set_column(self, table: Table, name: str, values: Any) -> Table:
        """Replace or append a column of a table in place.

        Replaced columns must keep their type, and any index
        whose key includes the column is invalidated.
        """
        with table.exclusive():
            expected_type = table.column(name).arrow_type if name in table else None
            try:
                data = to_arrow_array(values)
            except (pa.ArrowInvalid, pa.ArrowTypeError) as e:
                raise ColumnTypeError(f"Invalid values for column {name}: {e}", column=name) from e

            if table.num_columns and len(data) != table.num_rows:
                raise LengthMismatchError(name, table.num_rows, len(data))

            if expected_type is not None and data.type != expected_type:
                if data.null_count == len(data):
                    data = data.cast(expected_type)
                else:
                    raise ColumnTypeError(
                        f"Column {name} is {expected_type}, can't assign {data.type}",
                        column=name,
                    )

            table._put_column(Column(name, data))
            table.invalidate_indexes([name])
            logger.debug("Set column %s on %s", name, table)
        return table

    def drop_column(self, table: Table, name: str) -> Table:
        """Remove a column from a table, invalidating the indexes that use it."""
        with table.exclusive():
            if name not in table:
                raise NotFoundError(name)
            table._pop_column(name)
            table.invalidate_indexes([name])
        return table

    def append_rows(self, table: Table, rows: Mapping[str, Any] | Table) -> Table:
        """Append rows at the end of a table.

        :param rows: A table or a mapping providing the values
                     of the new rows for every column of the table.
        """
        if isinstance(rows, Table):
            rows = {c.name: c.data for c in rows.columns}

        with table.exclusive():
            missing = set(table.column_names) - set(rows)
            if missing:
                raise NotFoundError(sorted(missing)[0], f"Missing values for columns {sorted(missing)}")
            extra = set(rows) - set(table.column_names)
            if extra:
                raise NotFoundError(sorted(extra)[0])

            new_columns = []
            added = None
            for column in table.columns:
                try:
                    data = to_arrow_array(rows[column.name], column.arrow_type)
                except (pa.ArrowInvalid, pa.ArrowTypeError, pa.ArrowNotImplementedError) as e:
                    raise ColumnTypeError(
                        f"Invalid values for column {column.name}: {e}", column=column.name
                    ) from e
                if added is None:
                    added = len(data)
                elif len(data) != added:
                    raise LengthMismatchError(column.name, added, len(data))
                new_columns.append(Column(column.name, pa.concat_arrays([column.data, data])))

            table._set_columns(new_columns)
            table.invalidate_indexes()
            logger.debug("Appended %s rows to %s", added, table)
        return table

    def delete_rows(self, table: Table, positions: Iterable[int] | pa.Array) -> Table:
        """Remove the rows at the given positions from a table."""
        with table.exclusive():
            positions = to_arrow_array(positions, pa.int64())
            keep = pc.invert(pc.is_in(row_positions(table.num_rows), value_set=positions))
            table._set_columns([Column(c.name, c.data.filter(keep)) for c in table.columns])
            table.invalidate_indexes()
            logger.debug("Deleted rows from %s", table)
        return table

    def _make_column(self, name: str, values: Any, num_rows: int) -> Column:
        try:
            data = to_arrow_array(values)
        except (pa.ArrowInvalid, pa.ArrowTypeError) as e:
            raise ColumnTypeError(f"Invalid values for column {name}: {e}", column=name) from e
        if len(data) != num_rows:
            raise LengthMismatchError(name, num_rows, len(data))
        return Column(name, data)
