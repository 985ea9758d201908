"""Shortcuts to build aggregate expressions.

Meant to be imported as a namespace, as the names of the
functions match the names of some Python builtins::

    from keyedtable.compute import agg, col

    agg.mean(col("signal"))
"""

from typing import Any

from .aggregate import AggregateCall


def mean(argument: Any) -> AggregateCall:
    return AggregateCall("mean", argument)


def stddev(argument: Any) -> AggregateCall:
    """Sample standard deviation."""
    return AggregateCall("stddev", argument)


def count(argument: Any = None) -> AggregateCall:
    """Count non null values, or rows when no argument is provided."""
    return AggregateCall("count", argument)


def sum(argument: Any) -> AggregateCall:  # noqa: A001
    return AggregateCall("sum", argument)


def min(argument: Any) -> AggregateCall:  # noqa: A001
    return AggregateCall("min", argument)


def max(argument: Any) -> AggregateCall:  # noqa: A001
    return AggregateCall("max", argument)
