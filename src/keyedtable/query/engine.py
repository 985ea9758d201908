"""The query engine, running queries through their stages.

Each query goes through the following stages::

    PARSED -> FILTERED -> GROUPED (optional) -> PROJECTED | UPDATED -> MATERIALIZED

* **PARSED**: the query is validated against the schema of the table,
  so that missing columns or invalid aggregations are reported
  before any data is processed.
* **FILTERED**: the rows matching the filter are selected,
  through an index lookup when possible, through a full scan otherwise.
* **GROUPED**: when the query has group-by columns or aggregations,
  the selected rows are split into groups.
* **PROJECTED**: for select-form queries, the output columns are computed.
* **UPDATED**: for update-form queries, the new values of the assigned
  columns are computed for the whole table, without modifying it yet.
* **MATERIALIZED**: the result table is created, or for update-form
  queries the computed columns are written into the table.

A failure in any stage aborts the query, as the queried table is only
written in the last stage, a failed query never leaves it partially updated.
"""

import enum
import logging
import time
from typing import Any, Callable, Iterable, Mapping

import pyarrow as pa
import pyarrow.compute as pc

from ..compute import ColumnRef, Expression, ExpressionEvaluator, Group
from ..config import EngineConfig
from ..errors import (
    ColumnTypeError,
    ConfigError,
    MixedAggregationError,
    NotFoundError,
    QueryTimeoutError,
    UnknownColumnError,
)
from ..indexing import Index, IndexManager
from ..storage import ColumnStore, Table, View, row_positions
from ..storage.column import decode
from .filtering import filter_rows
from .grouping import partition
from .query import Projection, Query, select

logger = logging.getLogger(__name__)


class QueryState(enum.Enum):
    """The stages a query goes through."""

    PENDING = "pending"
    PARSED = "parsed"
    FILTERED = "filtered"
    GROUPED = "grouped"
    PROJECTED = "projected"
    UPDATED = "updated"
    MATERIALIZED = "materialized"


def plain_arrow_type(arrow_type: pa.DataType) -> pa.DataType:
    """The type of the values of dictionary encoded data."""
    return arrow_type.value_type if pa.types.is_dictionary(arrow_type) else arrow_type


def scalars_to_array(scalars: list[pa.Scalar]) -> pa.Array:
    """Combine one scalar per group into an array."""
    arrow_type = next(
        (s.type for s in scalars if not pa.types.is_null(s.type)), pa.null()
    )
    return pa.array([s.as_py() for s in scalars], type=arrow_type)


class QueryExecution:
    """A single execution of a query against a table.

    The execution keeps track of the stage the query reached
    and of how long each stage took.
    """

    def __init__(self, engine: "QueryEngine", table: Table, query: Query) -> None:
        self.engine = engine
        self.table = table
        self.query = query
        self.state = QueryState.PENDING
        self.timings: dict[str, float] = {}

    def run(self) -> Table:
        """Execute the query and return its result.

        Select-form queries return a new table, update-form queries
        return the queried table after it has been updated.
        Update-form queries hold the table exclusive lock for
        their whole execution, so concurrent updates are serialized.
        """
        if self.state is not QueryState.PENDING:
            raise RuntimeError(f"Query was already executed, state: {self.state.value}")
        if self.query.is_update:
            with self.table.exclusive():
                return self._run()
        return self._run()

    def _run(self) -> Table:
        query = self.query
        self._stage(QueryState.PARSED, self._parse)
        view = self._stage(QueryState.FILTERED, self._filter)

        groups = None
        if query.is_grouped:
            groups = self._stage(QueryState.GROUPED, self._group, view)

        if query.is_update:
            assignments = self._stage(QueryState.UPDATED, self._evaluate_update, view, groups)
            # Writes are applied last and can't be undone by a timeout.
            return self._stage(
                QueryState.MATERIALIZED, self._apply_update, assignments, check_timeout=False
            )

        columns = self._stage(QueryState.PROJECTED, self._project, view, groups)
        return self._stage(QueryState.MATERIALIZED, self._materialize, view, columns)

    def _stage(
        self,
        state: QueryState,
        func: Callable[..., Any],
        *args: Any,
        check_timeout: bool = True,
    ) -> Any:
        """Run one stage of the query and check it didn't exceed its budget."""
        started = time.monotonic()
        result = func(*args)
        elapsed = time.monotonic() - started
        self.timings[state.value] = elapsed

        budget = self.engine.config.timeout_per_stage
        if check_timeout and budget is not None and elapsed > budget:
            logger.debug("Query %s aborted at %s after %.6fs", self.query, state.value, elapsed)
            raise QueryTimeoutError(state.value, elapsed, budget)

        self.state = state
        logger.debug("Query %s %s in %.6fs", self.query, state.value, elapsed)
        return result

    def _parse(self) -> None:
        query = self.query
        evaluator = self.engine.evaluator
        for key in query.by:
            if key not in self.table:
                raise NotFoundError(key)
        for name in sorted(query.columns()):
            if name not in self.table:
                raise UnknownColumnError(name)

        if query.where is not None:
            evaluator.check_functions(query.where)
            if query.where.contains_aggregate():
                raise MixedAggregationError(
                    None, f"Filters can't contain aggregations: {query.where}"
                )

        if query.select is not None:
            for binding in query.select.bindings:
                evaluator.check_functions(binding)
                if query.is_grouped:
                    evaluator.check_grouped(binding, query.by)

    def _filter(self) -> View:
        return filter_rows(
            self.table, self.query.where, self.engine.evaluator, self.engine.indexes
        )

    def _group(self, view: View) -> list[Group]:
        index = None
        if self.query.by:
            index = self.engine.indexes.find_exact(self.table, self.query.by)
        return partition(view, self.query.by, index)

    def _project(self, view: View, groups: list[Group] | None) -> dict[str, Any] | None:
        """Compute the output columns of a select-form query.

        Returns ``None`` when all the columns of the view are selected,
        otherwise ``{name: values}`` where values is a ``ColumnRef`` for
        the columns that are output as they are, so that their storage
        can be shared with the queried table.
        """
        projection = self.query.select
        evaluator = self.engine.evaluator

        if groups is None:
            if projection is None:
                return None
            columns: dict[str, Any] = {}
            for binding in projection.bindings:
                expr = binding.expression
                if isinstance(expr, ColumnRef) and expr.name == binding.name:
                    columns[binding.name] = expr
                else:
                    columns[binding.name] = evaluator.evaluate_rows(expr, view)
            return columns

        if not groups:
            # No rows were selected, evaluate on an empty group
            # to know the types of the output columns.
            groups = [Group(view, self.query.by, (None,) * len(self.query.by))]
            empty = True
        else:
            empty = False

        columns = {}
        for position, key in enumerate(self.query.by):
            arrow_type = self.table.column(key).arrow_type
            values = [] if empty else [g.key[position] for g in groups]
            columns[key] = pa.array(values, type=arrow_type)
        for binding in projection.bindings if projection is not None else ():
            scalars = [evaluator.evaluate_group(binding.expression, g) for g in groups]
            values = scalars_to_array(scalars)
            columns[binding.name] = values.slice(0, 0) if empty else values
        return columns

    def _materialize(self, view: View, columns: dict[str, Any] | None) -> Table:
        store = self.engine.store
        if columns is None:
            return store.materialize(view)
        if self.query.is_grouped:
            return store.create_table(columns)
        pending = {n: v for n, v in columns.items() if not isinstance(v, ColumnRef)}
        return store.materialize(view, pending=pending, columns=list(columns))

    def _evaluate_update(
        self, view: View, groups: list[Group] | None
    ) -> dict[str, pa.Array]:
        """Compute the full new content of every assigned column."""
        evaluator = self.engine.evaluator
        assignments = {}
        for binding in self.query.select.bindings:
            if groups is None:
                positions = view.positions()
                values = evaluator.evaluate_rows(binding.expression, view)
            elif not groups:
                positions = pa.array([], type=pa.int64())
                values = evaluator.evaluate_group(
                    binding.expression,
                    Group(view, self.query.by, (None,) * len(self.query.by)),
                )
                values = scalars_to_array([values]).slice(0, 0)
            else:
                # Broadcast the value of each group to all the rows of the group.
                scalars = [evaluator.evaluate_group(binding.expression, g) for g in groups]
                positions = pa.concat_arrays([g.view.positions() for g in groups])
                group_ids = pa.concat_arrays(
                    [pa.repeat(pa.scalar(i, pa.int64()), len(g)) for i, g in enumerate(groups)]
                )
                values = scalars_to_array(scalars).take(group_ids)
            assignments[binding.name] = self._assemble(binding.name, positions, values)
        return assignments

    def _assemble(self, name: str, positions: pa.Array, values: pa.Array) -> pa.Array:
        """Build a column with ``values`` at ``positions`` and the old values elsewhere.

        Rows that are not assigned keep the value they had,
        or get null when the column is new.
        """
        num_rows = self.table.num_rows
        base = self.table.column(name).data if name in self.table else None
        values = decode(values)

        if base is not None:
            arrow_type = base.type
            plain_type = plain_arrow_type(arrow_type)
            if values.type != plain_type:
                if values.null_count != len(values):
                    raise ColumnTypeError(
                        f"Column {name} is {base.type}, can't assign {values.type}", column=name
                    )
                values = values.cast(plain_type)
            plain_base = decode(base)
        else:
            if pa.types.is_null(values.type):
                raise ColumnTypeError(f"Can't infer the type of new column {name}", column=name)
            arrow_type = plain_type = values.type
            plain_base = pa.nulls(num_rows, type=plain_type)

        if len(positions) == num_rows and positions.equals(row_positions(num_rows)):
            merged = values
        else:
            order = pc.sort_indices(positions)
            mask = pc.is_in(row_positions(num_rows), value_set=positions.take(order))
            try:
                merged = pc.replace_with_mask(plain_base, mask, values.take(order))
            except pa.ArrowNotImplementedError as e:
                raise ColumnTypeError(f"Can't assign {arrow_type} values: {e}", column=name) from e

        if pa.types.is_dictionary(arrow_type):
            merged = merged.dictionary_encode().cast(arrow_type)
        return merged

    def _apply_update(self, assignments: dict[str, pa.Array]) -> Table:
        store = self.engine.store
        for name, values in assignments.items():
            store.set_column(self.table, name, values)
        logger.debug("Updated columns %s of %s", list(assignments), self.table)
        return self.table


class QueryEngine:
    """Run queries against tables.

    >>> from keyedtable.storage import ColumnStore
    >>> from keyedtable.compute import col, agg
    >>> from keyedtable.query import select, update
    >>> engine = QueryEngine()
    >>> table = ColumnStore().create_table({
    ...     "id": [1, 2, 3, 4],
    ...     "asset": ["A", "B", "A", "B"],
    ...     "signal": [1.0, 2.0, 3.0, 4.0],
    ... })
    >>> index = engine.build_index(table, ["asset"])
    >>> engine.execute(table, where=col("asset").eq("A")).to_pydict()
    {'id': [1, 3], 'asset': ['A', 'A'], 'signal': [1.0, 3.0]}
    >>> engine.execute(table, select=select(mean=agg.mean(col("signal"))), by="asset").to_pydict()
    {'asset': ['A', 'B'], 'mean': [2.0, 3.0]}
    >>> engine.execute(table, select=update(doubled=col("signal") * 2)).to_pydict()["doubled"]
    [2.0, 4.0, 6.0, 8.0]
    """

    def __init__(
        self, config: EngineConfig | None = None, store: ColumnStore | None = None
    ) -> None:
        """
        :param config: The engine configuration, defaults are used when omitted.
        :param store: The column store used to create and mutate tables.
        """
        self.config = config or EngineConfig()
        self.store = store or ColumnStore()
        self.indexes = IndexManager(ties=self.config.ties)
        self.evaluator = ExpressionEvaluator(self.config.aggregate_fns)

    def build_index(
        self, table: Table, keys: Iterable[str] | None = None, ties: str | None = None
    ) -> Index:
        """Build an index on the table, on the configured key columns by default."""
        keys = tuple(keys) if keys is not None else self.config.key_columns
        if not keys:
            raise ConfigError("key_columns", "no key columns configured to index")
        return self.indexes.build(table, keys, ties=ties)

    def prepare(
        self,
        table: Table,
        where: Expression | None = None,
        select: Projection | Iterable | Mapping | None = None,
        by: str | Iterable[str] | None = None,
        query: Query | None = None,
    ) -> QueryExecution:
        """Prepare the execution of a query, without running it.

        The query can be provided as a :class:`Query` or by its parts.
        A ``select`` provided as a list or dictionary is treated as a
        select-form projection.
        """
        if query is None:
            query = Query(where=where, select=_as_projection(select), by=by)
        elif where is not None or select is not None or by is not None:
            raise ValueError("Provide either a query or its parts, not both")
        return QueryExecution(self, table, query)

    def execute(
        self,
        table: Table,
        where: Expression | None = None,
        select: Projection | Iterable | Mapping | None = None,
        by: str | Iterable[str] | None = None,
        query: Query | None = None,
    ) -> Table:
        """Run a query and return its result."""
        return self.prepare(table, where=where, select=select, by=by, query=query).run()


def _as_projection(value: Projection | Iterable | Mapping | None) -> Projection | None:
    if value is None or isinstance(value, Projection):
        return value
    if isinstance(value, Mapping):
        return select(**value)
    if isinstance(value, (str, Expression)):
        return select(value)
    return select(*value)
