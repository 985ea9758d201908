"""Engine configuration.

The options recognised by the engine are:

* ``key_columns``: the columns the engine indexes when
  :meth:`keyedtable.query.QueryEngine.build_index` is invoked
  without explicit keys.
* ``ties``: how rows with equal keys are ordered inside an index,
  ``"first"`` keeps the original row order, ``"last"`` reverses it.
* ``aggregate_fns``: the aggregate functions that expressions can invoke.
* ``timeout_per_stage``: the maximum number of seconds a single query
  stage can run, ``None`` disables the check.

Configurations can be created from plain mappings, using either the
camelCase names or the snake_case ones:

>>> config = EngineConfig.from_mapping({"keyColumns": ["asset"], "timeoutPerStage": 2})
>>> config.key_columns
('asset',)
>>> config.timeout_per_stage
2.0
"""

import dataclasses
from typing import Any, Mapping, Self

from .errors import ConfigError

AGGREGATE_FUNCTIONS = frozenset({"mean", "stddev", "count", "sum", "min", "max"})
TIES_POLICIES = ("first", "last")


@dataclasses.dataclass(frozen=True)
class EngineConfig:
    """Options that affect how queries and indexes are executed."""

    key_columns: tuple[str, ...] = ()
    ties: str = "first"
    aggregate_fns: frozenset[str] = AGGREGATE_FUNCTIONS
    timeout_per_stage: float | None = None

    _ALIASES = {
        "keyColumns": "key_columns",
        "aggregateFns": "aggregate_fns",
        "timeoutPerStage": "timeout_per_stage",
    }

    def __post_init__(self) -> None:
        if isinstance(self.key_columns, str):
            raise ConfigError("key_columns", "expected a sequence of column names")
        object.__setattr__(self, "key_columns", tuple(self.key_columns))

        if self.ties not in TIES_POLICIES:
            raise ConfigError("ties", f"must be one of {TIES_POLICIES}, got {self.ties!r}")

        aggregate_fns = frozenset(self.aggregate_fns)
        unknown = aggregate_fns - AGGREGATE_FUNCTIONS
        if unknown:
            raise ConfigError("aggregate_fns", f"unknown functions {sorted(unknown)}")
        object.__setattr__(self, "aggregate_fns", aggregate_fns)

        if self.timeout_per_stage is not None:
            timeout = float(self.timeout_per_stage)
            if timeout <= 0:
                raise ConfigError("timeout_per_stage", "must be a positive number")
            object.__setattr__(self, "timeout_per_stage", timeout)

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> Self:
        """Build a configuration from a dictionary of options.

        :param options: The options, keys can be camelCase or snake_case.
        """
        fields = {f.name for f in dataclasses.fields(cls)}
        kwargs = {}
        for name, value in options.items():
            name = cls._ALIASES.get(name, name)
            if name not in fields:
                raise ConfigError(name, "unknown option")
            kwargs[name] = value
        return cls(**kwargs)

    def replace(self, **changes: Any) -> Self:
        """Return a copy of the configuration with some options changed."""
        return dataclasses.replace(self, **changes)
