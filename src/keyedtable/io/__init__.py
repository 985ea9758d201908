"""Loading of tables from files and in-memory Arrow data."""

from .loaders import (
    ArrowLoader,
    CSVLoader,
    Loader,
    LOADERS_BY_EXTENSION,
    ParquetLoader,
    load,
    loader_for,
)

__all__ = (
    "ArrowLoader",
    "CSVLoader",
    "Loader",
    "LOADERS_BY_EXTENSION",
    "ParquetLoader",
    "load",
    "loader_for",
)
