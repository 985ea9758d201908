import pyarrow as pa
import pytest

from keyedtable.compute import ExpressionEvaluator, Group, agg, col, lit
from keyedtable.compute.evaluator import free_columns
from keyedtable.errors import (
    ColumnTypeError,
    MixedAggregationError,
    UnsupportedAggregateError,
)
from keyedtable.storage import Table, View

TEST_DATA = {
    "asset": ["A", "B", "A", "B"],
    "signal": [1.0, 2.0, 3.0, None],
}


@pytest.fixture
def table():
    return Table.from_pydict(TEST_DATA)


def test_evaluate_rows(table):
    result = ExpressionEvaluator().evaluate_rows(col("signal") + 1, table.view())
    assert result.to_pylist() == [2.0, 3.0, 4.0, None]


def test_evaluate_rows_broadcasts_literals(table):
    result = ExpressionEvaluator().evaluate_rows(lit(7), View(table, [1, 2]))
    assert isinstance(result, pa.Array)
    assert result.to_pylist() == [7, 7]


def test_evaluate_rows_rejects_aggregations(table):
    with pytest.raises(MixedAggregationError):
        ExpressionEvaluator().evaluate_rows(col("signal") - agg.mean(col("signal")), table.view())


def test_disabled_aggregation(table):
    evaluator = ExpressionEvaluator(aggregate_fns={"sum"})
    group = Group(table.view(), (), ())
    assert evaluator.evaluate_group(agg.sum(col("signal")), group).as_py() == 6.0
    with pytest.raises(UnsupportedAggregateError) as err:
        evaluator.evaluate_group(agg.mean(col("signal")), group)
    assert err.value.function == "mean"


def test_evaluate_group(table):
    evaluator = ExpressionEvaluator()
    group = Group(View(table, [0, 2]), ("asset",), ("A",))
    assert evaluator.evaluate_group(agg.mean(col("signal")), group).as_py() == 2.0
    assert evaluator.evaluate_group(agg.mean(col("signal")) * 10, group).as_py() == 20.0
    assert evaluator.evaluate_group(col("asset"), group).as_py() == "A"


def test_evaluate_group_mixed(table):
    evaluator = ExpressionEvaluator()
    group = Group(View(table, [0, 2]), ("asset",), ("A",))
    with pytest.raises(MixedAggregationError) as err:
        evaluator.evaluate_group(col("signal") - agg.mean(col("signal")), group)
    assert err.value.column == "signal"


def test_check_grouped():
    evaluator = ExpressionEvaluator()
    evaluator.check_grouped(agg.sum(col("signal")) + col("day"), ["day"])
    with pytest.raises(MixedAggregationError):
        evaluator.check_grouped(agg.sum(col("signal")) + col("day"), [])


def test_free_columns():
    expr = agg.sum(col("signal")) + col("day") * col("hour")
    assert {ref.name for ref in free_columns(expr)} == {"day", "hour"}


def test_evaluate_predicate_nulls_are_false(table):
    mask = ExpressionEvaluator().evaluate_predicate(col("signal") > 1.5, table.view())
    assert mask.to_pylist() == [False, True, True, False]


def test_evaluate_predicate_requires_booleans(table):
    with pytest.raises(ColumnTypeError):
        ExpressionEvaluator().evaluate_predicate(col("signal") * 2, table.view())


def test_evaluate_predicate_null_literal(table):
    mask = ExpressionEvaluator().evaluate_predicate(lit(None), table.view())
    assert mask.to_pylist() == [False] * 4
