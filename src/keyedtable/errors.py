"""Errors raised by the KeyedTable engine.

Every error raised by the engine derives from :class:`KeyedTableError`,
so callers can catch all of them at once, and from the closest builtin
exception so that generic handlers (``except TypeError``,
``except TimeoutError``, ...) keep working.

Errors carry the offending column, key or stage as attributes
so that callers can react without parsing messages:

>>> try:
...     raise UnknownColumnError("prices")
... except NotFoundError as e:
...     print(e.column)
prices

None of these errors is retried by the engine, table operations are
deterministic. The only error the caller is expected to recover from is
:class:`StaleIndexError`, by rebuilding the index and running the
query again.
"""


class KeyedTableError(Exception):
    """Base class for all the engine errors."""


class ConfigError(KeyedTableError, ValueError):
    """The engine configuration contains an unknown or invalid option."""

    def __init__(self, option: str, message: str) -> None:
        self.option = option
        super().__init__(f"{option}: {message}")


class SchemaError(KeyedTableError, ValueError):
    """A table or index was constructed from an invalid schema."""

    def __init__(self, message: str, column: str | None = None) -> None:
        self.column = column
        super().__init__(message)


class NotFoundError(KeyedTableError, LookupError):
    """A column or key that was requested does not exist."""

    def __init__(self, column: str, message: str | None = None) -> None:
        self.column = column
        super().__init__(message or f"Column not found: {column}")


class UnknownColumnError(NotFoundError):
    """An expression referenced a column missing from the evaluated view."""

    def __init__(self, column: str) -> None:
        super().__init__(column, f"Unknown column in expression: {column}")


class LengthMismatchError(KeyedTableError, ValueError):
    """Values assigned to a column do not match the table row count."""

    def __init__(self, column: str, expected: int, got: int) -> None:
        self.column = column
        self.expected = expected
        self.got = got
        super().__init__(
            f"Column {column} expects {expected} values, got {got}"
        )


class StaleIndexError(KeyedTableError):
    """A lookup was attempted on an index invalidated by a mutation.

    The index must be rebuilt with :meth:`keyedtable.indexing.IndexManager.build`
    before it can be used again.
    """

    def __init__(self, keys: tuple[str, ...]) -> None:
        self.keys = keys
        super().__init__(f"Index on {list(keys)} is stale, rebuild it first")


class MixedAggregationError(KeyedTableError, ValueError):
    """Aggregated and non aggregated values were mixed in one expression."""

    def __init__(self, column: str | None, message: str) -> None:
        self.column = column
        super().__init__(message)


class ColumnTypeError(KeyedTableError, TypeError):
    """An operation was applied to a column of an unsupported type."""

    def __init__(self, message: str, column: str | None = None) -> None:
        self.column = column
        super().__init__(message)


class UnsupportedAggregateError(KeyedTableError, ValueError):
    """The requested aggregate function is unknown or disabled."""

    def __init__(self, function: str) -> None:
        self.function = function
        super().__init__(f"Aggregate function not available: {function}")


class QueryTimeoutError(KeyedTableError, TimeoutError):
    """A query stage ran longer than the configured budget."""

    def __init__(self, stage: str, elapsed: float, budget: float) -> None:
        self.stage = stage
        self.elapsed = elapsed
        self.budget = budget
        super().__init__(
            f"Stage {stage} took {elapsed:.3f}s, budget is {budget:.3f}s"
        )
