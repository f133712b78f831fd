import pytest
from pathlib import Path

from marketview.config import AppConfig, ConfigError, load_config


def test_valid_config(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
        api:
          base_url: https://api.coingecko.com
          timeout_s: 5
        view:
          default_currency: EUR
          default_sort_order: cap_asc
          default_page_size: 20
        obs:
          log_jsonl: false
        """,
        encoding="utf-8",
    )

    loaded = load_config(config_path)
    assert loaded.config.api.timeout_s == 5
    assert loaded.config.view.default_currency == "EUR"
    assert loaded.config.view.default_page_size == 20
    assert loaded.config.view.total_rows_estimate == 10_000
    assert loaded.config.obs.log_jsonl is False
    assert loaded.raw["view"]["default_sort_order"] == "cap_asc"


def test_defaults_without_file_content(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("", encoding="utf-8")

    loaded = load_config(config_path)
    assert loaded.config == AppConfig()


def test_invalid_page_size(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
        view:
          default_page_size: 15
        """,
        encoding="utf-8",
    )

    with pytest.raises(ConfigError, match="default_page_size"):
        load_config(config_path)


def test_currency_outside_enum_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
        view:
          default_currency: GBP
        """,
        encoding="utf-8",
    )

    with pytest.raises(ConfigError):
        load_config(config_path)


def test_unknown_key_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
        api:
          api_key: secret
        """,
        encoding="utf-8",
    )

    with pytest.raises(ConfigError):
        load_config(config_path)


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Config not found"):
        load_config(tmp_path / "absent.yaml")


def test_non_mapping_root(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="mapping"):
        load_config(config_path)
