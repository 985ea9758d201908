import os
import tempfile

import pyarrow as pa
import pyarrow.csv as csv
import pyarrow.parquet as pq
import pytest

from keyedtable.errors import SchemaError
from keyedtable.io import ArrowLoader, CSVLoader, ParquetLoader, load, loader_for
from keyedtable.storage import ColumnType

# Mock data for testing
MOCK_PYARROW_TABLE = pa.table(
    {"id": [1, 2, 3], "asset": ["A", "B", "A"], "signal": [1.5, 2.5, 3.5]}
)

MOCK_CSV_FILE = tempfile.NamedTemporaryFile(delete=False, mode="w+", suffix=".csv")
MOCK_PARQUET_FILE = tempfile.NamedTemporaryFile(delete=False, mode="w+", suffix=".parquet")


def setup_module():
    csv.write_csv(MOCK_PYARROW_TABLE, MOCK_CSV_FILE.name)
    MOCK_CSV_FILE.close()
    pq.write_table(MOCK_PYARROW_TABLE, MOCK_PARQUET_FILE.name)
    MOCK_PARQUET_FILE.close()


def teardown_module():
    os.unlink(MOCK_CSV_FILE.name)
    os.unlink(MOCK_PARQUET_FILE.name)


@pytest.mark.parametrize(
    "loader_class, init_args, expected_str",
    [
        (
            CSVLoader,
            (MOCK_CSV_FILE.name, None),
            f"CSVLoader({MOCK_CSV_FILE.name}, block_size=None)",
        ),
        (
            ParquetLoader,
            (MOCK_PARQUET_FILE.name,),
            f"ParquetLoader({MOCK_PARQUET_FILE.name})",
        ),
        (
            ArrowLoader,
            (MOCK_PYARROW_TABLE,),
            "ArrowLoader(columns=['id', 'asset', 'signal'], rows=3)",
        ),
        (
            ArrowLoader,
            (MOCK_PYARROW_TABLE.to_batches()[0],),
            "ArrowLoader(columns=['id', 'asset', 'signal'], rows=3)",
        ),
    ],
)
def test_init_and_str(loader_class, init_args, expected_str):
    loader = loader_class(*init_args)
    assert str(loader) == expected_str


@pytest.mark.parametrize(
    "loader",
    [
        CSVLoader(MOCK_CSV_FILE.name),
        ParquetLoader(MOCK_PARQUET_FILE.name),
        ArrowLoader(MOCK_PYARROW_TABLE),
        ArrowLoader(MOCK_PYARROW_TABLE.to_batches()[0]),
    ],
)
def test_load(loader):
    table = loader.load()
    assert table.to_pydict() == MOCK_PYARROW_TABLE.to_pydict()
    assert table.schema == {
        "id": ColumnType.INTEGER,
        "asset": ColumnType.STRING,
        "signal": ColumnType.FLOAT,
    }


@pytest.mark.parametrize(
    "loader",
    [
        CSVLoader(MOCK_CSV_FILE.name),
        ParquetLoader(MOCK_PARQUET_FILE.name),
        ArrowLoader(MOCK_PYARROW_TABLE),
    ],
)
def test_poll_schema(loader):
    assert loader.poll_schema() == MOCK_PYARROW_TABLE.schema


def test_csv_enum_columns():
    table = CSVLoader(MOCK_CSV_FILE.name, enum_columns=["asset"]).load()
    assert table.schema["asset"] == ColumnType.ENUM
    assert table.column("asset").data.to_pylist() == ["A", "B", "A"]


def test_csv_empty_column_is_string(tmp_path):
    path = tmp_path / "data.csv"
    path.write_text("id,note\n1,\n2,\n")
    table = CSVLoader(str(path)).load()
    assert table.schema["note"] == ColumnType.STRING


def test_csv_invalid(tmp_path):
    path = tmp_path / "broken.csv"
    path.write_text("id,asset\n1,A,extra\n")
    with pytest.raises(SchemaError):
        CSVLoader(str(path)).load()


def test_parquet_unsupported_column_type(tmp_path):
    path = tmp_path / "data.parquet"
    pq.write_table(pa.table({"tags": [[1, 2]]}), str(path))
    with pytest.raises(SchemaError):
        ParquetLoader(str(path)).load()


def test_load_dispatch():
    assert load(MOCK_CSV_FILE.name).num_rows == 3
    assert load(MOCK_PARQUET_FILE.name).num_rows == 3
    assert isinstance(loader_for(MOCK_PYARROW_TABLE), ArrowLoader)


def test_load_unknown_extension():
    with pytest.raises(ValueError, match="Unsupported file format"):
        load("data.xlsx")


def test_load_missing_file():
    with pytest.raises(FileNotFoundError):
        load("/nonexistent/data.csv")
