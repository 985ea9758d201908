"""Loaders creating tables from external data.

Loaders read data from some source, convert it into Arrow format
and create a :class:`keyedtable.storage.Table` out of it.
They are used to do things like loading data from CSV or Parquet files
before querying it.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Iterable

import pyarrow as pa
import pyarrow.csv
import pyarrow.parquet

from ..errors import SchemaError
from ..storage import ColumnType, Table

logger = logging.getLogger(__name__)


class Loader(ABC):
    """Base class for all the loaders."""

    @abstractmethod
    def read(self) -> pa.Table:
        """Read the whole content of the source in Arrow format."""
        ...

    @abstractmethod
    def poll_schema(self) -> pa.Schema:
        """Poll the schema of the data source without loading its content."""
        ...

    def load(self) -> Table:
        """Load the content of the source into a new table."""
        try:
            data = self.read()
        except pa.ArrowInvalid as e:
            raise SchemaError(f"Unable to load {self}: {e}") from e
        table = Table.from_arrow(data)
        logger.debug("%s loaded %s", self, table)
        return table


class CSVLoader(Loader):
    """Load data from a CSV file.

    Given a local CSV file path, load the content and
    convert it into a table. Columns are typed by Arrow type inference,
    columns listed in ``enum_columns`` are dictionary encoded.
    """

    def __init__(
        self, filename: str, block_size: int | None = None, enum_columns: Iterable[str] = ()
    ) -> None:
        """
        :param filename: The path of the local CSV file.
        :param block_size: How big to make the blocks of data read at once.
        :param enum_columns: String columns to store as enums.
        """
        self.filename = filename
        self.block_size = block_size
        self.enum_columns = tuple(enum_columns)

    def __str__(self) -> str:
        return f"CSVLoader({self.filename}, block_size={self.block_size})"

    def read(self) -> pa.Table:
        """Open CSV file and read all its batches."""
        convert_options = pa.csv.ConvertOptions(
            column_types={n: ColumnType.ENUM.arrow_type() for n in self.enum_columns}
        )
        with pa.csv.open_csv(
            self.filename,
            read_options=pa.csv.ReadOptions(block_size=self.block_size),
            convert_options=convert_options,
        ) as reader:
            data = reader.read_all()

        # Columns with only empty values have no type, store them as strings.
        for position, field in enumerate(data.schema):
            if pa.types.is_null(field.type):
                data = data.set_column(
                    position, field.name, data.column(position).cast(pa.string())
                )
        return data

    def poll_schema(self) -> pa.Schema:
        """Poll the schema of the CSV file."""
        with pa.csv.open_csv(self.filename) as reader:
            return reader.schema


class ParquetLoader(Loader):
    """Load data from a Parquet file."""

    def __init__(self, filename: str) -> None:
        """
        :param filename: The path of the local parquet file.
        """
        self.filename = filename

    def __str__(self) -> str:
        return f"ParquetLoader({self.filename})"

    def read(self) -> pa.Table:
        with pa.parquet.ParquetFile(self.filename) as reader:
            return reader.read()

    def poll_schema(self) -> pa.Schema:
        """Poll the schema of the Parquet file."""
        with pa.parquet.ParquetFile(self.filename) as reader:
            return reader.schema_arrow


class ArrowLoader(Loader):
    """Load data from an in-memory pyarrow.Table or pyarrow.RecordBatch.

    The data is not copied, the created table shares
    the Arrow buffers of the provided one.
    """

    def __init__(self, data: pa.Table | pa.RecordBatch) -> None:
        """
        :param data: The table or recordbatch with the data to load.
        """
        self.data = data

    def __str__(self) -> str:
        return f"ArrowLoader(columns={self.data.column_names}, rows={self.data.num_rows})"

    def read(self) -> pa.Table:
        if isinstance(self.data, pa.RecordBatch):
            return pa.Table.from_batches([self.data])
        return self.data

    def poll_schema(self) -> pa.Schema:
        """Poll the schema of the Table."""
        return self.data.schema


LOADERS_BY_EXTENSION = {
    ".csv": CSVLoader,
    ".parquet": ParquetLoader,
    ".pq": ParquetLoader,
}


def loader_for(source: str | os.PathLike | pa.Table | pa.RecordBatch) -> Loader:
    """Pick the loader able to read the source.

    Files are recognized by their extension.
    """
    if isinstance(source, (pa.Table, pa.RecordBatch)):
        return ArrowLoader(source)
    filename = os.fspath(source)
    extension = os.path.splitext(filename)[1].lower()
    try:
        loader_class = LOADERS_BY_EXTENSION[extension]
    except KeyError:
        raise ValueError(f"Unsupported file format: {filename}") from None
    return loader_class(filename)


def load(source: str | os.PathLike | pa.Table | pa.RecordBatch) -> Table:
    """Load a file or Arrow data into a new table.

    >>> import pyarrow as pa
    >>> load(pa.table({"id": [1, 2]})).schema
    {'id': <ColumnType.INTEGER: 'integer'>}
    """
    return loader_for(source).load()
