"""End to end scenario on the signals table.

A table of assets and signals is indexed by asset,
queried through the index and through full scans,
aggregated by asset and extended with computed columns.
"""

import pytest

from keyedtable import ColumnStore, EngineConfig, QueryEngine, agg, col, select, update
from keyedtable.errors import StaleIndexError


@pytest.fixture
def engine():
    return QueryEngine(EngineConfig(key_columns=["asset"]))


@pytest.fixture
def table():
    return ColumnStore().create_table(
        {
            "id": [1, 2, 3, 4],
            "asset": ["A", "B", "A", "B"],
            "signal": [1.0, 2.0, 3.0, 4.0],
        }
    )


def test_signals_scenario(engine, table):
    index = engine.build_index(table)
    assert set(engine.indexes.lookup(index, "A").to_pylist()) == {0, 2}

    means = engine.execute(table, select=select(mean=agg.mean(col("signal"))), by="asset")
    assert dict(zip(*means.to_pydict().values())) == {"A": 2.0, "B": 3.0}

    signal = table.column("signal")
    result = engine.execute(table, select=update(doubled=col("signal") * 2))
    assert result is table
    assert table.column("signal") is signal
    assert table.column("signal").data.to_pylist() == [1.0, 2.0, 3.0, 4.0]
    assert table.column("doubled").data.to_pylist() == [2.0, 4.0, 6.0, 8.0]

    # Adding a column doesn't affect the index on asset.
    assert not index.stale
    scanned = engine.execute(table, where=col("signal") > 2.5)
    assert scanned.to_pydict()["asset"] == ["A", "B"]
    assert scanned.to_pydict()["signal"] == [3.0, 4.0]


def test_lookup_and_scan_agree_after_updates(engine, table):
    engine.build_index(table)
    store = engine.store
    store.append_rows(table, {"id": [5, 6], "asset": ["C", "A"], "signal": [5.0, 6.0]})

    with pytest.raises(StaleIndexError):
        engine.execute(table, where=col("asset").eq("A"))

    engine.build_index(table)
    looked_up = engine.execute(table, where=col("asset").eq("A"), select=["id"])
    scanned = QueryEngine().execute(table, where=col("asset").eq("A"), select=["id"])
    assert sorted(looked_up.to_pydict()["id"]) == sorted(scanned.to_pydict()["id"]) == [1, 3, 6]


def test_select_result_is_independent(engine, table):
    result = engine.execute(table, where=col("asset").eq("B"))
    engine.execute(result, select=update(signal=col("signal") + 100))
    assert result.column("signal").data.to_pylist() == [102.0, 104.0]
    assert table.column("signal").data.to_pylist() == [1.0, 2.0, 3.0, 4.0]
