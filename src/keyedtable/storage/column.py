"""Typed columns.

A column is a named :class:`pyarrow.Array` with a fixed :class:`ColumnType`.
Arrow arrays are immutable, so a column never changes once created:
replacing the values of a column in a table creates a new :class:`Column`,
which is what allows tables and views to share column storage safely.
"""

import enum
from typing import Any, Iterable, Self

import pyarrow as pa

from ..errors import SchemaError


class ColumnType(enum.Enum):
    """The kinds of data a column can hold."""

    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    TIMESTAMP = "timestamp"
    BOOLEAN = "boolean"
    ENUM = "enum"

    @property
    def is_numeric(self) -> bool:
        return self in (ColumnType.INTEGER, ColumnType.FLOAT)

    @classmethod
    def parse(cls, kind: "str | ColumnType") -> Self:
        """Convert a kind name to a :class:`ColumnType`.

        >>> ColumnType.parse("float")
        <ColumnType.FLOAT: 'float'>
        """
        if isinstance(kind, cls):
            return kind
        try:
            return cls(kind)
        except ValueError:
            raise SchemaError(f"Unrecognized column type: {kind!r}") from None

    @classmethod
    def from_arrow(cls, arrow_type: pa.DataType, column: str | None = None) -> Self:
        """Detect the kind of column that can store an Arrow type."""
        if pa.types.is_integer(arrow_type):
            return cls.INTEGER
        elif pa.types.is_floating(arrow_type):
            return cls.FLOAT
        elif pa.types.is_string(arrow_type) or pa.types.is_large_string(arrow_type):
            return cls.STRING
        elif pa.types.is_timestamp(arrow_type) or pa.types.is_date(arrow_type):
            return cls.TIMESTAMP
        elif pa.types.is_boolean(arrow_type):
            return cls.BOOLEAN
        elif pa.types.is_dictionary(arrow_type) and (
            pa.types.is_string(arrow_type.value_type)
            or pa.types.is_large_string(arrow_type.value_type)
        ):
            return cls.ENUM
        raise SchemaError(f"Unsupported column data type: {arrow_type}", column=column)

    def arrow_type(self) -> pa.DataType:
        """The Arrow type used when values are provided as Python objects."""
        return _DEFAULT_ARROW_TYPES[self]


_DEFAULT_ARROW_TYPES = {
    ColumnType.INTEGER: pa.int64(),
    ColumnType.FLOAT: pa.float64(),
    ColumnType.STRING: pa.string(),
    ColumnType.TIMESTAMP: pa.timestamp("us"),
    ColumnType.BOOLEAN: pa.bool_(),
    ColumnType.ENUM: pa.dictionary(pa.int32(), pa.string()),
}


def to_arrow_array(
    values: Any, arrow_type: pa.DataType | None = None
) -> pa.Array:
    """Convert column values to a contiguous :class:`pyarrow.Array`.

    Chunked arrays are combined, Python sequences are converted
    and, when an ``arrow_type`` is provided, the data is cast to it.
    Conversion failures propagate as Arrow errors, the caller
    knows which engine error they should become.
    """
    if isinstance(values, pa.ChunkedArray):
        values = values.combine_chunks()
    elif not isinstance(values, pa.Array):
        if isinstance(values, Iterable) and not isinstance(values, (list, tuple)):
            values = list(values)
        if arrow_type is not None and pa.types.is_dictionary(arrow_type):
            values = pa.array(values, type=arrow_type.value_type).dictionary_encode()
        else:
            values = pa.array(values, type=arrow_type)
    if arrow_type is not None and values.type != arrow_type:
        values = values.cast(arrow_type)
    return values


def decode(values: pa.Array | pa.Scalar) -> pa.Array | pa.Scalar:
    """Replace dictionary encoded data with its plain values."""
    if isinstance(values, pa.DictionaryArray):
        return values.dictionary_decode()
    elif isinstance(values, pa.DictionaryScalar):
        return values.value if values.is_valid else pa.scalar(None, values.type.value_type)
    return values


class Column:
    """A named and typed array of values.

    >>> column = Column("signal", pa.array([1.0, 2.0]))
    >>> column.type
    <ColumnType.FLOAT: 'float'>
    >>> len(column)
    2
    """

    __slots__ = ("name", "type", "data")

    def __init__(self, name: str, data: pa.Array) -> None:
        """
        :param name: The name of the column.
        :param data: The values of the column, the type of the column
                     is detected from the Arrow type of the data.
        """
        if not isinstance(name, str) or not name:
            raise SchemaError(f"Invalid column name: {name!r}")
        self.name = name
        self.type = ColumnType.from_arrow(data.type, column=name)
        self.data = data

    @property
    def arrow_type(self) -> pa.DataType:
        return self.data.type

    def __len__(self) -> int:
        return len(self.data)

    def __str__(self) -> str:
        return f"Column({self.name}: {self.type.value}, rows={len(self.data)})"

    __repr__ = __str__
