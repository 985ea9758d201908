import pyarrow as pa
import pytest

from keyedtable.compute import UNDEFINED, AggregateCall, ExpressionEvaluator, Group, agg, col
from keyedtable.compute.aggregate import (
    AGGREGATIONS,
    CountAggregation,
    MaxAggregation,
    MeanAggregation,
    MinAggregation,
    StddevAggregation,
    SumAggregation,
)
from keyedtable.errors import (
    ColumnTypeError,
    MixedAggregationError,
    UnsupportedAggregateError,
)
from keyedtable.query.grouping import partition
from keyedtable.storage import ColumnStore, View

TEST_DATA = {
    "city": ["New York", "New York", "Los Angeles", "Los Angeles", "New York"],
    "shop": ["Shop A", "Shop B", "Shop A", "Shop A2", "Shop B"],
    "n_employees": [10, 15, 8, 12, 20],
}


@pytest.fixture
def table():
    return ColumnStore().create_table(TEST_DATA)


@pytest.mark.parametrize(
    "aggregation, expected",
    [
        (SumAggregation(), 65),
        (MinAggregation(), 8),
        (MaxAggregation(), 20),
        (CountAggregation(), 5),
        (MeanAggregation(), 13.0),
    ],
)
def test_aggregations(aggregation, expected):
    assert aggregation(pa.array(TEST_DATA["n_employees"])).as_py() == expected


def test_mean_of_integers_is_float():
    result = MeanAggregation()(pa.array([1, 2]))
    assert result.type == pa.float64()
    assert result.as_py() == 1.5


def test_count_skips_nulls():
    assert CountAggregation()(pa.array([1, None, 3])).as_py() == 2


def test_min_max_strings():
    values = pa.array(["b", "a", "c"]).dictionary_encode()
    assert MinAggregation()(values).as_py() == "a"
    assert MaxAggregation()(values).as_py() == "c"


def test_stddev():
    result = StddevAggregation()(pa.array([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]))
    assert result.as_py() == pytest.approx(2.138089935)


@pytest.mark.parametrize("values", [[3.5], [], [None, 1.0], [None]])
def test_stddev_undefined(values):
    result = StddevAggregation()(pa.array(values, type=pa.float64()))
    assert result.equals(UNDEFINED)
    assert result.as_py() is None


def test_stddev_constant_values():
    assert StddevAggregation()(pa.array([2, 2, 2])).as_py() == 0.0


@pytest.mark.parametrize("aggregation", [SumAggregation(), MeanAggregation(), StddevAggregation()])
def test_numeric_only(aggregation):
    with pytest.raises(ColumnTypeError):
        aggregation(pa.array(["a", "b"]))


def test_registry():
    assert set(AGGREGATIONS) == {"mean", "stddev", "count", "sum", "min", "max"}


def test_aggregate_call(table):
    expr = agg.sum(col("n_employees"))
    assert isinstance(expr, AggregateCall)
    assert expr.is_aggregate
    assert expr.contains_aggregate()
    assert str(expr) == "sum(ColumnRef(n_employees))"
    assert expr.apply(table.view()).as_py() == 65


def test_aggregate_call_on_expression(table):
    expr = agg.max(col("n_employees") * 2)
    assert expr.apply(table.view()).as_py() == 40


def test_count_rows(table):
    assert str(agg.count()) == "count()"
    assert agg.count().apply(View(table, [0, 1])).as_py() == 2


def test_unknown_function():
    with pytest.raises(UnsupportedAggregateError) as err:
        AggregateCall("median", col("n_employees"))
    assert err.value.function == "median"


def test_missing_argument():
    with pytest.raises(ValueError):
        AggregateCall("sum")


def test_nested_aggregation():
    with pytest.raises(MixedAggregationError):
        agg.sum(agg.max(col("n_employees")))


def test_aggregate_type_error_names_column(table):
    with pytest.raises(ColumnTypeError) as err:
        agg.mean(col("city")).apply(table.view())
    assert err.value.column == "city"


@pytest.mark.parametrize("keys", [["city"], ["city", "shop"]])
def test_grouped_sum(table, keys):
    evaluator = ExpressionEvaluator()
    groups = partition(table.view(), keys)
    totals = {g.key: evaluator.evaluate_group(agg.sum(col("n_employees")), g).as_py() for g in groups}

    if keys == ["city"]:
        assert totals == {("New York",): 45, ("Los Angeles",): 20}
    else:
        assert totals == {
            ("New York", "Shop A"): 10,
            ("New York", "Shop B"): 35,
            ("Los Angeles", "Shop A"): 8,
            ("Los Angeles", "Shop A2"): 12,
        }


@pytest.mark.parametrize("keys", [["city"], ["shop"], ["city", "shop"], []])
def test_sum_of_group_sums_is_total(table, keys):
    evaluator = ExpressionEvaluator()
    expr = agg.sum(col("n_employees"))
    groups = partition(table.view(), keys)
    total = sum(evaluator.evaluate_group(expr, g).as_py() for g in groups)
    assert total == expr.apply(table.view()).as_py()
    assert sum(evaluator.evaluate_group(agg.count(), g).as_py() for g in groups) == 5


def test_stddev_single_row_group(table):
    group = Group(View(table, [0]), ("city",), ("New York",))
    result = ExpressionEvaluator().evaluate_group(agg.stddev(col("n_employees")), group)
    assert result.as_py() is None
