"""Format tables into text for print.

The `tabulate` function takes a :class:`keyedtable.storage.Table`
or :class:`keyedtable.storage.View` and formats it into a text table.
It will truncate long strings, format floats to 2 decimal places,
and limit the number of rows to display.
The function is used to display the result of queries run by the
``keyedtable-query`` command.

Example:

    >>> from keyedtable.storage import Table
    >>> data = {
    ...     "Product": ["Videogame", "Laptop", "Laptop"],
    ...     "Quantity": [8, 8, 7],
    ...     "Price": [66.5, 38.72, 77.46],
    ... }
    >>> table = Table.from_pydict(data)
    >>> print(tabulate(table))
    Product   | Quantity | Price
    --------- | -------- | -----
    Videogame | 8        | 66.50
    Laptop    | 8        | 38.72
    Laptop    | 7        | 77.46
"""

from typing import Any

from ..storage import Table, View


def tabulate(
    table: Table | View, max_rows: int = 20, tail: bool = False, show_types: bool = False
) -> str:
    """Format a table into a text table.

    Will produce a string like::

        Product   | Quantity | Price | Total
        --------- | -------- | ----- | ------
        Videogame | 8        | 66.50 | 532.00
        Laptop    | 8        | 38.72 | 309.76
        Laptop    | 7        | 77.46 | 542.22

    :param max_rows: How many rows to print at most.
    :param tail: Print the last rows instead of the first ones.
    :param show_types: Add a row with the type of each column under the header.
    """
    cols = table.column_names
    shown = table.tail(max_rows) if tail else table.head(max_rows)
    rows = [[format_value(row[c]) for c in cols] for row in shown.iter_rows()]
    headers = [list(cols)]
    if show_types:
        headers.append([kind.value for kind in table.schema.values()])

    colsizes = compute_max_colsize(cols, headers + rows)
    header = [maketablerow(row, colsizes=colsizes) for row in headers]
    separator = [maketablerow(["-"] * len(cols), colsizes=colsizes, fillvalue="-")]
    textrows = [maketablerow(row, colsizes=colsizes) for row in rows]

    remaining = table.num_rows - len(rows)
    lines = header + separator
    if tail and remaining > 0:
        lines.append(f"... {remaining} rows before")
    text = "\n".join(lines + textrows)
    if not tail and remaining > 0:
        text += f"\n... and {remaining} more rows"
    return text


def compute_max_colsize(cols: list[str], rows: list[list[str]]) -> list[int]:
    """Compute the maximum size of each column in a table."""
    return [
        max([len(row[colidx]) for row in rows] + [len(cols[colidx])])
        for colidx, _ in enumerate(cols)
    ]


def maketablerow(cols: list[str], colsizes: list[int], fillvalue: str = " ") -> str:
    """Make a table row with the given column sizes."""
    return " | ".join(
        [col.ljust(colsizes[idx], fillvalue) for idx, col in enumerate(cols)]
    )


def format_value(v: Any) -> str:
    """Format a value to be printed in the table.

    This function will format floats to 2 decimal places,
    print missing values as ``null`` and truncate long strings.
    """
    if v is None:
        return "null"
    elif isinstance(v, float):
        return f"{v:.2f}"
    elif isinstance(v, bool):
        return "true" if v else "false"

    v = str(v)
    if len(v) > 30:
        v = v[:27] + "..."
    return v
