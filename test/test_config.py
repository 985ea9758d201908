import pytest

from keyedtable.config import AGGREGATE_FUNCTIONS, EngineConfig
from keyedtable.errors import ConfigError


def test_defaults():
    config = EngineConfig()
    assert config.key_columns == ()
    assert config.ties == "first"
    assert config.aggregate_fns == AGGREGATE_FUNCTIONS
    assert config.timeout_per_stage is None


def test_key_columns_become_tuple():
    config = EngineConfig(key_columns=["asset", "day"])
    assert config.key_columns == ("asset", "day")


@pytest.mark.parametrize(
    "options, option",
    [
        ({"ties": "middle"}, "ties"),
        ({"aggregate_fns": {"mean", "median"}}, "aggregate_fns"),
        ({"timeout_per_stage": 0}, "timeout_per_stage"),
        ({"timeout_per_stage": -1.5}, "timeout_per_stage"),
        ({"key_columns": "asset"}, "key_columns"),
    ],
)
def test_invalid_options(options, option):
    with pytest.raises(ConfigError) as err:
        EngineConfig(**options)
    assert err.value.option == option
    assert isinstance(err.value, ValueError)


def test_from_mapping_accepts_both_spellings():
    camel = EngineConfig.from_mapping(
        {"keyColumns": ["asset"], "ties": "last", "aggregateFns": ["sum"], "timeoutPerStage": 1}
    )
    snake = EngineConfig.from_mapping(
        {"key_columns": ["asset"], "ties": "last", "aggregate_fns": ["sum"], "timeout_per_stage": 1}
    )
    assert camel == snake
    assert camel.aggregate_fns == frozenset({"sum"})
    assert camel.timeout_per_stage == 1.0


def test_from_mapping_unknown_option():
    with pytest.raises(ConfigError, match="unknown option"):
        EngineConfig.from_mapping({"cacheSize": 10})


def test_replace():
    config = EngineConfig(key_columns=["asset"])
    changed = config.replace(ties="last")
    assert changed.ties == "last"
    assert changed.key_columns == ("asset",)
    assert config.ties == "first"
