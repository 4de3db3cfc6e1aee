"""
AppConfig tests - defaults, back-filling, bad files and persisted settings.
"""

import json
import os

import pytest

from config import DEFAULT_CONFIG, STORE_FILENAME, AppConfig
from generator import GenerationSettings


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "data")


def write_config(data_dir, payload):
    os.makedirs(data_dir, exist_ok=True)
    with open(os.path.join(data_dir, "config.json"), "w", encoding="utf-8") as fh:
        fh.write(payload if isinstance(payload, str) else json.dumps(payload))


class TestLoading:
    """Test reading config.json."""

    def test_first_run_uses_defaults(self, data_dir):
        config = AppConfig(user_data_dir=data_dir)
        assert config.data == DEFAULT_CONFIG
        assert os.path.isdir(data_dir)
        assert config.config_path == os.path.join(data_dir, "config.json")

    def test_missing_keys_are_back_filled(self, data_dir):
        write_config(data_dir, {"password_length": 24})
        config = AppConfig(user_data_dir=data_dir)
        assert config.get("password_length") == 24
        assert config.get("include_symbols") is True
        assert config.get("store_path") == STORE_FILENAME

    @pytest.mark.parametrize("payload", ["{not json", "[1, 2, 3]"])
    def test_unreadable_file_falls_back_to_defaults(self, data_dir, payload):
        write_config(data_dir, payload)
        config = AppConfig(user_data_dir=data_dir)
        assert config.data == DEFAULT_CONFIG

    def test_log_file_is_written(self, data_dir):
        config = AppConfig(user_data_dir=data_dir)
        config.logger.info("hello")
        for handler in config.logger.handlers:
            handler.flush()
        assert os.path.exists(config.log_path)

    def test_logger_handler_is_not_duplicated(self, data_dir):
        first = AppConfig(user_data_dir=data_dir)
        count = len(first.logger.handlers)
        second = AppConfig(user_data_dir=data_dir)
        assert len(second.logger.handlers) == count


class TestGenerationSettings:
    """Test the start-up generation settings."""

    def test_defaults(self, data_dir):
        assert AppConfig(user_data_dir=data_dir).generation_settings() == GenerationSettings()

    @pytest.mark.parametrize("stored", [2, 500, "abc", None])
    def test_invalid_length_falls_back(self, data_dir, stored):
        write_config(data_dir, {"password_length": stored})
        settings = AppConfig(user_data_dir=data_dir).generation_settings()
        assert settings.length == 16

    def test_update_round_trips_through_disk(self, data_dir):
        settings = GenerationSettings(length=40, include_upper=False, include_symbols=False)
        AppConfig(user_data_dir=data_dir).update_generation_settings(settings)

        reloaded = AppConfig(user_data_dir=data_dir)
        assert reloaded.generation_settings() == settings
        with open(reloaded.config_path, encoding="utf-8") as fh:
            assert json.load(fh)["password_length"] == 40


class TestPaths:
    """Test derived paths and numeric options."""

    def test_store_path_defaults_to_working_directory(self, data_dir, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = AppConfig(user_data_dir=data_dir)
        assert config.store_path() == os.path.join(str(tmp_path), STORE_FILENAME)

    def test_store_path_override(self, data_dir, tmp_path):
        target = str(tmp_path / "vault" / "mine.csv")
        write_config(data_dir, {"store_path": target})
        assert AppConfig(user_data_dir=data_dir).store_path() == target

    @pytest.mark.parametrize("stored, expected", [(5, 5.0), (0, 3.0), (-1, 3.0), ("soon", 3.0)])
    def test_status_seconds(self, data_dir, stored, expected):
        write_config(data_dir, {"status_seconds": stored})
        assert AppConfig(user_data_dir=data_dir).status_seconds() == expected
