"""Tests for configuration loading."""

import json
from pathlib import Path

import pytest
import yaml

from log_notify.config import NotifyConfig, create_default_config, load_config
from log_notify.errors import ConfigError


def write_yaml(path: Path, data) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


class TestLoadConfig:
    """Tests for load_config."""

    def test_minimal_yaml(self, tmp_path: Path, log_file: Path) -> None:
        path = write_yaml(tmp_path / "log-notify.yaml", {"logFile": str(log_file)})
        config = load_config(path)

        assert config.log_file == str(log_file)
        assert config.interval == 30
        assert config.provider == "anthropic"
        assert config.max_retries == 3

    def test_json_with_camel_case_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps(
                {
                    "logFile": "./server.log",
                    "interval": 10,
                    "provider": "openrouter",
                    "maxRetries": 5,
                    "retryDelay": 0.5,
                    "summaryDir": "./summaries",
                }
            )
        )
        config = load_config(path)

        assert config.interval == 10
        assert config.provider == "openrouter"
        assert config.max_retries == 5
        assert config.retry_delay_seconds == 0.5
        assert config.summary_dir == "./summaries"

    def test_snake_case_keys(self, tmp_path: Path) -> None:
        path = write_yaml(tmp_path / "c.yaml", {"log_file": "a.log", "file_wait_seconds": 1})
        assert load_config(path).file_wait_seconds == 1

    def test_missing_log_file(self, tmp_path: Path) -> None:
        path = write_yaml(tmp_path / "c.yaml", {"interval": 30})
        with pytest.raises(ConfigError, match="Missing required configuration fields: logFile"):
            load_config(path)

    def test_log_file_optional_for_capture(self, tmp_path: Path) -> None:
        path = write_yaml(tmp_path / "c.yaml", {"interval": 5})
        config = load_config(path, require_log_file=False)
        assert config.log_file is None
        assert config.interval == 5

    @pytest.mark.parametrize("interval", [0, -5, "30", 1.5, True])
    def test_invalid_interval(self, tmp_path: Path, interval) -> None:
        path = write_yaml(tmp_path / "c.yaml", {"logFile": "a.log", "interval": interval})
        with pytest.raises(ConfigError, match="Interval must be a positive integer"):
            load_config(path)

    def test_null_interval_uses_default(self, tmp_path: Path) -> None:
        path = write_yaml(tmp_path / "c.yaml", {"logFile": "a.log", "interval": None})
        assert load_config(path).interval == 30

    def test_unknown_provider(self, tmp_path: Path) -> None:
        path = write_yaml(tmp_path / "c.yaml", {"logFile": "a.log", "provider": "nope"})
        with pytest.raises(ConfigError, match="Invalid provider"):
            load_config(path)

    def test_unknown_keys_ignored(self, tmp_path: Path) -> None:
        path = write_yaml(tmp_path / "c.yaml", {"logFile": "a.log", "color": "blue"})
        assert not hasattr(load_config(path), "color")

    def test_file_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "c.yaml"
        path.write_text("logFile: [unterminated\n")
        with pytest.raises(ConfigError, match="Failed to parse"):
            load_config(path)

    def test_non_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "c.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_config_error_is_value_error(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            load_config(tmp_path / "missing.yaml")


class TestNotifyConfig:
    """Tests for the config dataclass."""

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ConfigError, match="Unknown log level"):
            NotifyConfig.from_dict({"logFile": "a.log", "logLevel": "LOUD"})

    def test_negative_delay(self) -> None:
        with pytest.raises(ConfigError):
            NotifyConfig.from_dict({"logFile": "a.log", "retryDelay": -1})

    def test_to_dict(self) -> None:
        config = NotifyConfig.from_dict({"logFile": "a.log"})
        data = config.to_dict()
        assert data["log_file"] == "a.log"
        assert data["capture_file"] == "./captured-errors.log"


class TestCreateDefaultConfig:
    """Tests for init."""

    def test_creates_loadable_file(self, tmp_path: Path) -> None:
        path = create_default_config(tmp_path / "log-notify.yaml")

        assert yaml.safe_load(path.read_text()) == {"logFile": "./server.log", "interval": 30}
        config = load_config(path)
        assert config.log_file == "./server.log"

    def test_refuses_to_overwrite(self, tmp_path: Path) -> None:
        path = tmp_path / "log-notify.yaml"
        path.write_text("logFile: keep.log\n")

        with pytest.raises(ConfigError, match="already exists"):
            create_default_config(path)
        assert path.read_text() == "logFile: keep.log\n"
