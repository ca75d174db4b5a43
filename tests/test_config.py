import pytest

from bedflow.config import Settings


def test_defaults():
    settings = Settings()
    assert settings.store_path is None
    assert settings.log_level == "INFO"
    assert settings.history_default_limit == 50
    assert settings.trend_window_days == 30
    assert settings.cleaning_period_days == 7


def test_from_yaml(tmp_path):
    config = tmp_path / "bedflow.yaml"
    config.write_text(
        "store_path: /data/beds.json\nlog_level: debug\nhistory_default_limit: 25\n"
    )

    settings = Settings.from_yaml(str(config))
    assert settings.store_path == "/data/beds.json"
    assert settings.log_level == "DEBUG"
    assert settings.history_default_limit == 25
    assert settings.trend_window_days == 30


def test_from_yaml_rejects_unknown_keys(tmp_path):
    config = tmp_path / "bedflow.yaml"
    config.write_text("trend_windw_days: 10\n")

    with pytest.raises(ValueError, match="trend_windw_days"):
        Settings.from_yaml(str(config))


def test_empty_yaml(tmp_path):
    config = tmp_path / "bedflow.yaml"
    config.write_text("")
    assert Settings.from_yaml(str(config)) == Settings()


@pytest.mark.parametrize(
    "overrides",
    [
        {"history_default_limit": 0},
        {"history_default_limit": 201},
        {"trend_window_days": 0},
        {"cleaning_period_days": -1},
    ],
)
def test_invalid_values(overrides):
    with pytest.raises(ValueError):
        Settings(**overrides)


def test_from_env(tmp_path):
    config = tmp_path / "bedflow.yaml"
    config.write_text("store_path: /from/file.json\ncleaning_period_days: 14\n")

    settings = Settings.from_env(
        {
            "BEDFLOW_CONFIG": str(config),
            "BEDFLOW_STORE_PATH": "/from/env.json",
            "BEDFLOW_LOG_LEVEL": "warning",
        }
    )
    assert settings.store_path == "/from/env.json"
    assert settings.log_level == "WARNING"
    assert settings.cleaning_period_days == 14


def test_from_env_without_config():
    assert Settings.from_env({}) == Settings()
