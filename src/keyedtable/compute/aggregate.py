"""Aggregations computed over groups of rows.

Frequently when analysing data is necessary to compute
statistics like the min, max, average, etc... of the data
stored in tables, usually for each group of rows sharing
the same value of some key columns.

For example, given the following data::

    asset, signal
    A, 1.0
    B, 2.0
    A, 3.0
    B, 4.0

We could group by asset and compute the mean of the signal to get::

    asset, mean_signal
    A, 2.0
    B, 3.0

An :class:`AggregateCall` is the expression node that invokes an
:class:`Aggregation` on the values of its argument for the rows of a group.
"""

import abc
from typing import Any

import pyarrow as pa
import pyarrow.compute as pc

from ..errors import ColumnTypeError, MixedAggregationError, UnsupportedAggregateError
from ..storage import View
from ..storage.column import decode
from .base import ColumnRef, Expression, Group, broadcast, ensure_expression

__all__ = (
    "AggregateCall",
    "Aggregation",
    "SumAggregation",
    "MinAggregation",
    "MaxAggregation",
    "CountAggregation",
    "MeanAggregation",
    "StddevAggregation",
    "AGGREGATIONS",
    "UNDEFINED",
)

UNDEFINED = pa.scalar(None, type=pa.float64())
"""Result of statistics that are not defined for a group, like the
standard deviation of a single value."""


class Aggregation(abc.ABC):
    """Base class for aggregations.

    An aggregation reduces all the values of a group
    to a single scalar value.
    """

    name: str
    numeric_only = False

    def __str__(self) -> str:
        return f"{self.__class__.__name__}()"

    __repr__ = __str__

    def __call__(self, values: pa.Array) -> pa.Scalar:
        values = decode(values)
        if self.numeric_only and not (
            pa.types.is_integer(values.type)
            or pa.types.is_floating(values.type)
            or pa.types.is_null(values.type)
        ):
            raise ColumnTypeError(f"{self.name} requires numeric values, got {values.type}")
        return self.compute(values)

    @abc.abstractmethod
    def compute(self, values: pa.Array) -> pa.Scalar: ...


class SumAggregation(Aggregation):
    """Compute the sum of the values."""

    name = "sum"
    numeric_only = True

    def compute(self, values: pa.Array) -> pa.Scalar:
        return pc.sum(values)


class MinAggregation(Aggregation):
    """Compute the min of the values."""

    name = "min"

    def compute(self, values: pa.Array) -> pa.Scalar:
        return pc.min(values)


class MaxAggregation(Aggregation):
    """Compute the max of the values."""

    name = "max"

    def compute(self, values: pa.Array) -> pa.Scalar:
        return pc.max(values)


class CountAggregation(Aggregation):
    """Count the non null values."""

    name = "count"

    def compute(self, values: pa.Array) -> pa.Scalar:
        return pc.count(values)


class MeanAggregation(Aggregation):
    """Compute the mean of the values.

    Values are accumulated as floating point numbers
    also when the column contains integers.
    """

    name = "mean"
    numeric_only = True

    def compute(self, values: pa.Array) -> pa.Scalar:
        return pc.mean(values.cast(pa.float64()))


class StddevAggregation(Aggregation):
    """Compute the sample standard deviation of the values.

    The sample formula divides by ``N - 1``, so it's not defined
    for groups with less than two values, in that case
    :data:`UNDEFINED` is returned.
    """

    name = "stddev"
    numeric_only = True

    def compute(self, values: pa.Array) -> pa.Scalar:
        values = values.cast(pa.float64())
        if pc.count(values).as_py() < 2:
            return UNDEFINED
        return pc.stddev(values, ddof=1)


AGGREGATIONS: dict[str, Aggregation] = {
    aggregation.name: aggregation
    for aggregation in (
        MeanAggregation(),
        StddevAggregation(),
        CountAggregation(),
        SumAggregation(),
        MinAggregation(),
        MaxAggregation(),
    )
}


class AggregateCall(Expression):
    """Invoke an aggregation on the values of an expression.

    >>> from keyedtable.storage import Table
    >>> from keyedtable.compute import col
    >>> table = Table.from_pydict({"signal": [1.0, 2.0, 3.0, 4.0]})
    >>> AggregateCall("mean", col("signal")).apply(table.view())
    <pyarrow.DoubleScalar: 2.5>

    The argument is evaluated row-wise on the rows being aggregated,
    so it can't contain other aggregations.
    ``count`` can be invoked without an argument to count the rows.
    """

    is_aggregate = True

    def __init__(self, function: str, argument: Any = None) -> None:
        """
        :param function: The name of the aggregation, one of :data:`AGGREGATIONS`.
        :param argument: The expression providing the values to aggregate.
        """
        if function not in AGGREGATIONS:
            raise UnsupportedAggregateError(function)
        if argument is None and function != "count":
            raise ValueError(f"{function} requires an argument")
        self.function = function
        self.argument = None if argument is None else ensure_expression(argument)
        if self.argument is not None and self.argument.contains_aggregate():
            raise MixedAggregationError(
                None, f"Aggregations can't be nested: {function}({self.argument})"
            )

    @property
    def aggregation(self) -> Aggregation:
        return AGGREGATIONS[self.function]

    def children(self) -> tuple[Expression, ...]:
        return () if self.argument is None else (self.argument,)

    def apply(self, view: View) -> pa.Scalar:
        """Aggregate all the rows of the view into a single value."""
        if self.argument is None:
            return pa.scalar(view.num_rows, type=pa.int64())
        values = broadcast(self.argument.apply(view), view.num_rows)
        try:
            return self.aggregation(values)
        except ColumnTypeError as e:
            if isinstance(self.argument, ColumnRef):
                e.column = self.argument.name
            raise

    def apply_group(self, group: Group) -> pa.Scalar:
        return self.apply(group.view)

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, AggregateCall)
            and other.function == self.function
            and other.argument == self.argument
        )

    __hash__ = None

    def __str__(self) -> str:
        argument = "" if self.argument is None else str(self.argument)
        return f"{self.function}({argument})"
