from pathlib import Path

from domain.settings import DashboardConfig
from services.config import config_from_mapping, load_config


def test_defaults_when_file_missing(tmp_path: Path):
    assert load_config(tmp_path / "missing.yaml") == DashboardConfig()


def test_defaults_when_file_broken(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("data: [unclosed", encoding="utf-8")
    assert load_config(path) == DashboardConfig()


def test_values_are_read_from_yaml(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "\n".join(
            [
                "data:",
                "  history: 3 years",
                "forecast:",
                "  days: 30",
                "symbol:",
                "  max_length: 6",
                "strategy:",
                "  n: 4",
                "  levels: [1, 3, 7]",
                "notifications:",
                "  error_seconds: 8",
                "fetch:",
                "  retry:",
                "    max_attempts: 0",
                "cache:",
                "  max_tickers: 2",
            ]
        ),
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.data_history == "3 years"
    assert config.forecast_days == 30
    assert config.symbol_max_length == 6
    assert config.strategy_n == 4
    assert config.strategy_levels == (1, 3)
    assert config.notifications.error == 8.0
    assert config.notifications.warning == 3.0
    assert config.retry_attempts == 0
    assert config.cache_max_tickers == 2


def test_invalid_values_fall_back():
    config = config_from_mapping({"forecast": {"days": "ninety"}, "strategy": {"levels": [9]}, "app": "oops"})
    assert config.forecast_days == 90
    assert config.strategy_levels == (1, 2, 3)
    assert config.parallel_workers == 4


def test_repository_config_matches_defaults():
    root = Path(__file__).resolve().parents[1]
    assert load_config(root / "config.yaml") == DashboardConfig()
