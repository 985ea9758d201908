"""Command line interface for querying files.

This module provides a command line interface to load a CSV or Parquet
file into a :class:`keyedtable.storage.Table`, optionally index it,
and run a query built from the command line options through
the :class:`keyedtable.query.QueryEngine`.

The results of the execution are then printed to the console in a tabular format
using the :mod:`keyedtable.utils.tabulate` module.
"""

import argparse
import logging
import re

from keyedtable.compute import AggregateCall, Expression, and_, col
from keyedtable.config import EngineConfig
from keyedtable.errors import KeyedTableError
from keyedtable.io import CSVLoader, load
from keyedtable.query import QueryEngine, select
from keyedtable.storage import ColumnType, Table
from keyedtable.utils import tabulate

AGGREGATE_RE = re.compile(r"^(?P<name>\w+)=(?P<function>\w+)\((?P<column>[^()]*)\)$")


def parse_value(table: Table, column: str, text: str) -> object:
    """Convert a value provided on the command line to the type of the column."""
    kind = table.column(column).type
    if kind is ColumnType.INTEGER:
        return int(text)
    elif kind is ColumnType.FLOAT:
        return float(text)
    elif kind is ColumnType.BOOLEAN:
        if text.lower() not in ("true", "false"):
            raise ValueError(f"Invalid boolean for {column}: {text}")
        return text.lower() == "true"
    return text


def parse_filter(table: Table, conditions: list[str]) -> Expression | None:
    """Build a conjunction of equality tests out of ``COL=VALUE`` conditions."""
    terms = []
    for condition in conditions:
        column, sep, value = condition.partition("=")
        if not sep:
            raise ValueError(f"Invalid filter, expected COL=VALUE: {condition}")
        terms.append(col(column).eq(parse_value(table, column, value)))
    return and_(*terms) if terms else None


def parse_aggregate(text: str) -> tuple[str, AggregateCall]:
    """Parse a ``NAME=FN(COL)`` aggregation, ``COL`` can be omitted for count."""
    match = AGGREGATE_RE.match(text.replace(" ", ""))
    if match is None:
        raise ValueError(f"Invalid aggregation, expected NAME=FN(COL): {text}")
    column = match["column"]
    argument = col(column) if column and column != "*" else None
    return match["name"], AggregateCall(match["function"], argument)


def main(argv: list[str] | None = None) -> None:
    """Parse the command line arguments and execute the query."""
    parser = argparse.ArgumentParser(
        prog="keyedtable-query", description="Query a CSV or Parquet file."
    )
    parser.add_argument("filename", help="The CSV or Parquet file to query.")
    parser.add_argument(
        "-k", "--key", action="append", default=[],
        help="Index the table on this column. Can be provided multiple times.",
    )
    parser.add_argument(
        "-w", "--where", action="append", default=[],
        help="Select rows where COL=VALUE. Can be provided multiple times.",
    )
    parser.add_argument(
        "-b", "--by", action="append", default=[],
        help="Group rows by this column. Can be provided multiple times.",
    )
    parser.add_argument(
        "-s", "--select", action="append", default=[],
        help="Output this column. Can be provided multiple times.",
    )
    parser.add_argument(
        "-a", "--aggregate", action="append", default=[],
        help="Output NAME=FN(COL), with FN one of mean, stddev, count, sum, min, max.",
    )
    parser.add_argument("--enum", action="append", default=[], help="Load this CSV column as enum.")
    parser.add_argument("--timeout", type=float, help="Maximum seconds for each query stage.")
    parser.add_argument("--max-rows", type=int, default=20, help="Maximum rows to print.")
    parser.add_argument("--tail", action="store_true", help="Print the last rows.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log the query execution.")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    try:
        config = EngineConfig(key_columns=args.key, timeout_per_stage=args.timeout)
        if args.enum:
            table = CSVLoader(args.filename, enum_columns=args.enum).load()
        else:
            table = load(args.filename)

        engine = QueryEngine(config)
        if config.key_columns:
            engine.build_index(table)

        bindings = dict(parse_aggregate(a) for a in args.aggregate)
        projection = None
        if args.select or bindings:
            projection = select(*args.select, **bindings)
        result = engine.execute(
            table, where=parse_filter(table, args.where), select=projection, by=args.by
        )
    except (KeyedTableError, ValueError, OSError) as e:
        parser.exit(1, f"{parser.prog}: error: {e}\n")

    print(tabulate.tabulate(result, max_rows=args.max_rows, tail=args.tail))


if __name__ == "__main__":
    main()
