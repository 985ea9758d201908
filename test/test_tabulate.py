from keyedtable.storage import ColumnStore, Table
from keyedtable.utils.tabulate import format_value, tabulate

TEST_DATA = {
    "id": list(range(1, 31)),
    "asset": ["A", "B", "C"] * 10,
}


def test_tabulate_truncates_rows():
    table = Table.from_pydict(TEST_DATA)
    lines = tabulate(table, max_rows=3).splitlines()
    assert lines == [
        "id | asset",
        "-- | -----",
        "1  | A    ",
        "2  | B    ",
        "3  | C    ",
        "... and 27 more rows",
    ]


def test_tabulate_tail():
    table = Table.from_pydict(TEST_DATA)
    lines = tabulate(table, max_rows=2, tail=True).splitlines()
    assert lines == [
        "id | asset",
        "-- | -----",
        "... 28 rows before",
        "29 | B    ",
        "30 | C    ",
    ]


def test_tabulate_types():
    table = ColumnStore().create_table([("asset", ["A"], "enum"), ("signal", [1.0])])
    lines = tabulate(table, show_types=True).splitlines()
    assert lines == [
        "asset | signal",
        "enum  | float ",
        "----- | ------",
        "A     | 1.00  ",
    ]


def test_tabulate_view():
    table = Table.from_pydict(TEST_DATA)
    assert tabulate(table.view().subview(range(5, 6))).splitlines()[2] == "6  | C    "


def test_format_value():
    assert format_value(None) == "null"
    assert format_value(True) == "true"
    assert format_value(1.5) == "1.50"
    assert format_value("x" * 40) == "x" * 27 + "..."
