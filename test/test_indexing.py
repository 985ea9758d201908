import math
import warnings

import pyarrow as pa
import pytest

from keyedtable.errors import (
    ColumnTypeError,
    ConfigError,
    NotFoundError,
    SchemaError,
    StaleIndexError,
)
from keyedtable.indexing import IndexManager, sortable, sortable_key
from keyedtable.storage import ColumnStore, Table

TEST_DATA = {
    "id": [1, 2, 3, 4, 5, 6],
    "asset": ["B", "A", "B", "A", "C", "A"],
    "day": [2, 1, 1, 2, 1, 1],
}


@pytest.fixture
def table():
    return Table.from_pydict(TEST_DATA)


@pytest.fixture
def indexes():
    return IndexManager()


def test_build_single_key(table, indexes):
    index = indexes.build(table, ["asset"])
    assert index.keys == ("asset",)
    assert index.permutation.to_pylist() == [1, 3, 5, 0, 2, 4]
    assert index.boundaries() == [(("A",), 0, 3), (("B",), 3, 5), (("C",), 5, 6)]
    assert index.num_keys == 3
    assert index.num_rows == 6
    assert table.indexes[("asset",)] is index


def test_build_accepts_single_column_name(table, indexes):
    assert indexes.build(table, "asset").keys == ("asset",)


def test_build_multi_key(table, indexes):
    index = indexes.build(table, ["asset", "day"])
    assert [key for key, _, _ in index.boundaries()] == [
        ("A", 1),
        ("A", 2),
        ("B", 1),
        ("B", 2),
        ("C", 1),
    ]


def test_ties_policies(table, indexes):
    first = indexes.build(table, ["asset"], ties="first")
    assert indexes.lookup(first, "A").to_pylist() == [1, 3, 5]
    last = indexes.build(table, ["asset"], ties="last")
    assert indexes.lookup(last, "A").to_pylist() == [5, 3, 1]
    assert first.stale


def test_manager_default_ties(table):
    index = IndexManager(ties="last").build(table, ["asset"])
    assert index.ties == "last"
    assert IndexManager().lookup(index, "B").to_pylist() == [2, 0]


def test_invalid_ties(table, indexes):
    with pytest.raises(ConfigError):
        IndexManager(ties="random")
    with pytest.raises(ConfigError):
        indexes.build(table, ["asset"], ties="random")


@pytest.mark.parametrize("keys", [[], ["asset", "asset"]])
def test_build_invalid_keys(table, indexes, keys):
    with pytest.raises(SchemaError):
        indexes.build(table, keys)


def test_build_missing_key(table, indexes):
    with pytest.raises(NotFoundError) as err:
        indexes.build(table, ["asset", "price"])
    assert err.value.column == "price"
    assert table.indexes == {}


@pytest.mark.parametrize(
    "key, expected",
    [
        ("A", [1, 5, 3]),
        (("A",), [1, 5, 3]),
        (("A", 1), [1, 5]),
        (("B", 2), [0]),
        (("C", 2), []),
        ("Z", []),
        ("0", []),
    ],
)
def test_lookup(table, indexes, key, expected):
    index = indexes.build(table, ["asset", "day"])
    assert indexes.lookup(index, key).to_pylist() == expected


def test_lookup_matches_scan(table, indexes):
    index = indexes.build(table, ["asset"])
    assets = TEST_DATA["asset"]
    for asset in set(assets):
        found = set(indexes.lookup(index, asset).to_pylist())
        assert found == {i for i, a in enumerate(assets) if a == asset}


def test_lookup_key_too_long(table, indexes):
    index = indexes.build(table, ["asset"])
    with pytest.raises(SchemaError):
        indexes.lookup(index, ("A", 1))


def test_lookup_wrong_type(table, indexes):
    index = indexes.build(table, ["asset"])
    with pytest.raises(ColumnTypeError):
        indexes.lookup(index, 5)


def test_stale_index(table, indexes):
    index = indexes.build(table, ["asset"])
    indexes.invalidate(index)
    with pytest.raises(StaleIndexError) as err:
        indexes.lookup(index, "A")
    assert err.value.keys == ("asset",)

    rebuilt = indexes.build(table, ["asset"])
    assert indexes.lookup(rebuilt, "A").to_pylist() == [1, 3, 5]


def test_mutation_then_rebuild():
    store = ColumnStore()
    table = store.create_table({"asset": ["A", "B"], "value": [1, 2]})
    indexes = IndexManager()
    index = indexes.build(table, ["asset"])
    store.set_column(table, "asset", ["B", "A"])
    with pytest.raises(StaleIndexError):
        indexes.lookup(index, "A")
    assert indexes.lookup(indexes.build(table, ["asset"]), "A").to_pylist() == [1]


def test_nulls_and_nans_sort_last():
    table = Table.from_pydict({"value": [2.0, None, float("nan"), 1.0, None]})
    indexes = IndexManager()
    index = indexes.build(table, ["value"])
    keys = [key for key, _, _ in index.boundaries()]
    assert keys[:2] == [(1.0,), (2.0,)]
    assert math.isnan(keys[2][0])
    assert keys[3] == (None,)
    assert indexes.lookup(index, None).to_pylist() == [1, 4]
    assert indexes.lookup(index, float("nan")).to_pylist() == [2]


def test_enum_keys_are_decoded(indexes):
    table = ColumnStore().create_table([("asset", ["B", "A", "B"], "enum")])
    index = indexes.build(table, ["asset"])
    assert indexes.lookup(index, "B").to_pylist() == [0, 2]


def test_find(table, indexes):
    single = indexes.build(table, ["asset"])
    double = indexes.build(table, ["asset", "day"])
    assert indexes.find(table, ["asset"]) is single
    assert indexes.find(table, {"day", "asset"}) is double
    assert indexes.find(table, ["day"]) is None
    assert indexes.find(table, []) is None
    assert indexes.find_exact(table, ["asset", "day"]) is double
    assert indexes.find_exact(table, ["day", "asset"]) is None


def test_index_str(table, indexes):
    index = indexes.build(table, ["asset"])
    assert str(index) == "Index(keys=['asset'], distinct=3, rows=6, fresh)"
    index.invalidate()
    assert str(index) == "Index(keys=['asset'], distinct=3, rows=6, stale)"


def test_sortable():
    assert sorted([None, 3, float("nan"), 1], key=sortable)[:2] == [1, 3]
    assert sortable_key(("A", None)) == ((0, "A"), (2, 0))


def test_empty_table(indexes):
    table = Table.from_arrow(pa.table({"asset": pa.array([], type=pa.string())}))
    index = indexes.build(table, ["asset"])
    assert index.num_keys == 0
    assert indexes.lookup(index, "A").to_pylist() == []


def test_build_emits_no_warnings(indexes):
    table = Table.from_pydict({"value": [2.0, None, float("nan"), 1.0]})
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        index = indexes.build(table, ["value"])
    assert index.permutation.to_pylist() == [3, 0, 2, 1]
