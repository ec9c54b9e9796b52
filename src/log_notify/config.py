"""Configuration loading for log notify.

Config files are YAML. JSON files load as well, since JSON is valid YAML,
and keys may be written in snake_case or in camelCase (``logFile``).
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "./log-notify.yaml"

PROVIDERS = ("anthropic", "openrouter")

KEY_ALIASES = {
    "logFile": "log_file",
    "captureFile": "capture_file",
    "maxRetries": "max_retries",
    "retryDelay": "retry_delay_seconds",
    "requestTimeout": "request_timeout_seconds",
    "fileWait": "file_wait_seconds",
    "summaryDir": "summary_dir",
    "logDir": "log_dir",
    "logLevel": "log_level",
    "maxTokens": "max_tokens",
}


@dataclass
class NotifyConfig:
    """Configuration for a watch or capture session.

    Attributes:
        log_file: File to watch, required in watch mode.
        interval: Seconds between checks (default: 30).
        capture_file: Scratch file for capture mode (default: ./captured-errors.log).
        provider: Summarization provider, "anthropic" or "openrouter".
        model: Model override for the provider, None for its default.
        max_tokens: Upper bound on summary length.
        max_retries: Summarization attempts per cycle (default: 3).
        retry_delay_seconds: Linear backoff base between attempts (default: 1).
        request_timeout_seconds: Timeout for one summarization attempt (default: 60).
        file_wait_seconds: Poll interval while the watched file is missing (default: 5).
        summary_dir: Directory for archived summaries, None disables archiving.
        log_dir: Directory for the rotating log file, None logs to console only.
        log_level: Console log level (default: INFO).
    """

    log_file: str | None = None
    interval: int = 30
    capture_file: str = "./captured-errors.log"
    provider: str = "anthropic"
    model: str | None = None
    max_tokens: int = 1024
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    request_timeout_seconds: float = 60.0
    file_wait_seconds: float = 5.0
    summary_dir: str | None = None
    log_dir: str | None = None
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any], require_log_file: bool = True) -> NotifyConfig:
        """Build and validate a config from a mapping.

        Raises:
            ConfigError: If required fields are missing or values are invalid.
        """
        known = {f.name for f in fields(cls)}
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            name = KEY_ALIASES.get(key, key)
            if name not in known:
                logger.warning(f"Ignoring unknown configuration key: {key}")
                continue
            normalized[name] = value

        if require_log_file and not normalized.get("log_file"):
            raise ConfigError("Missing required configuration fields: logFile")
        if normalized.get("interval") is None:
            normalized.pop("interval", None)

        config = cls(**normalized)
        config.validate()
        return config

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigError: On the first invalid value.
        """
        if isinstance(self.interval, bool) or not isinstance(self.interval, int) or self.interval < 1:
            raise ConfigError("Interval must be a positive integer (in seconds)")
        if self.provider not in PROVIDERS:
            raise ConfigError(
                f"Invalid provider '{self.provider}'. Allowed providers: {', '.join(PROVIDERS)}"
            )
        if not isinstance(self.max_retries, int) or self.max_retries < 1:
            raise ConfigError("maxRetries must be an integer of at least 1")
        for name in ("retry_delay_seconds", "request_timeout_seconds", "file_wait_seconds"):
            value = getattr(self, name)
            if not isinstance(value, int | float) or value < 0:
                raise ConfigError(f"{name} must be a non-negative number")
        if self.log_level.upper() not in logging.getLevelNamesMapping():
            raise ConfigError(f"Unknown log level: {self.log_level}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def load_config(config_path: str | Path, require_log_file: bool = True) -> NotifyConfig:
    """Read and validate a configuration file.

    Args:
        config_path: Path to a YAML (or JSON) file.
        require_log_file: Reject configs without ``log_file``.

    Returns:
        Validated NotifyConfig.

    Raises:
        ConfigError: If the file is missing, unparsable or invalid.
    """
    path = Path(config_path).resolve()
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file must contain a mapping: {path}")

    config = NotifyConfig.from_dict(data, require_log_file=require_log_file)

    if config.log_file:
        log_path = Path(config.log_file).resolve()
        if not log_path.exists():
            logger.warning(f"Log file does not exist yet: {log_path}")
            logger.warning("The watcher will wait for the file to be created.")

    logger.debug(f"Loaded configuration from {path}")
    return config


def create_default_config(output_path: str | Path = DEFAULT_CONFIG_PATH) -> Path:
    """Write a default configuration file.

    Raises:
        ConfigError: If the file already exists.
    """
    path = Path(output_path)
    if path.exists():
        raise ConfigError(f"Configuration file already exists: {path}")

    default_config = {"logFile": "./server.log", "interval": 30}
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(default_config, f, sort_keys=False)

    logger.info(f"Created default configuration file: {path}")
    return path
