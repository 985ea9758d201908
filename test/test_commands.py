import pytest

from keyedtable.commands import kquery

TEST_DATA = """\
id,asset,signal
1,A,1.0
2,B,2.0
3,A,3.0
4,B,4.0
"""


@pytest.fixture
def datafile(tmp_path):
    path = tmp_path / "signals.csv"
    path.write_text(TEST_DATA)
    return str(path)


def test_select_with_key_lookup(datafile, capsys):
    kquery.main(["-k", "asset", "-w", "asset=A", "-s", "id", "-s", "signal", datafile])
    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "id | signal",
        "-- | ------",
        "1  | 1.00  ",
        "3  | 3.00  ",
    ]


def test_grouped_aggregation(datafile, capsys):
    kquery.main(["-b", "asset", "-a", "avg=mean(signal)", "-a", "rows=count()", datafile])
    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "asset | avg  | rows",
        "----- | ---- | ----",
        "A     | 2.00 | 2   ",
        "B     | 3.00 | 2   ",
    ]


def test_filter_on_numbers(datafile, capsys):
    kquery.main(["-w", "id=4", "--enum", "asset", datafile])
    assert capsys.readouterr().out.splitlines()[2] == "4  | B     | 4.00  "


def test_max_rows(datafile, capsys):
    kquery.main(["--max-rows", "1", datafile])
    assert capsys.readouterr().out.splitlines()[-1] == "... and 3 more rows"


@pytest.mark.parametrize(
    "args, message",
    [
        (["-s", "price"], "Unknown column in expression: price"),
        (["-b", "price"], "Column not found: price"),
        (["-a", "x=median(signal)"], "Aggregate function not available: median"),
        (["-a", "oops"], "Invalid aggregation"),
        (["-w", "id=abc"], "invalid literal"),
        (["-b", "asset", "-s", "signal"], "neither aggregated nor a group-by key"),
        (["--timeout", "-1"], "timeout_per_stage"),
    ],
)
def test_errors(datafile, capsys, args, message):
    with pytest.raises(SystemExit) as err:
        kquery.main(args + [datafile])
    assert err.value.code == 1
    stderr = capsys.readouterr().err
    assert stderr.startswith("keyedtable-query: error: ")
    assert message in stderr
    assert len(stderr.strip().splitlines()) == 1


def test_missing_file(capsys):
    with pytest.raises(SystemExit) as err:
        kquery.main(["/nonexistent/signals.csv"])
    assert err.value.code == 1


def test_parse_aggregate():
    name, call = kquery.parse_aggregate("total = sum(signal)")
    assert name == "total"
    assert str(call) == "sum(ColumnRef(signal))"
    assert str(kquery.parse_aggregate("n=count(*)")[1]) == "count()"
