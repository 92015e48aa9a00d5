"""YAML settings loading and validation."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from livepipe.exceptions import ConfigError

LIVEPIPE_HOME = Path("~/.livepipe")
SETTINGS_FILE = "settings.yaml"
DEFAULT_BUFFER_SIZE = 40 * 1024 * 1024  # 40 MiB
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Settings:
    """Settings from settings.yaml."""

    shell: str = "bash"
    prompt: str = "| "
    buffer_size: int = DEFAULT_BUFFER_SIZE
    script_prefix: str = "up"
    log_file: str | None = None
    log_level: str = "WARNING"


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file."""
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping in {path}, got {type(data).__name__}")
    return data


def _require_str(section: dict[str, Any], key: str, default: str) -> str:
    value = section.get(key, default)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"Invalid {key}: {value!r}. Must be a non-empty string")
    return value


def load_settings(path: Path) -> Settings:
    """Load and validate settings.yaml."""
    data = _load_yaml(path)
    main = data.get("livepipe", {}) or {}
    capture = data.get("capture", {}) or {}
    script = data.get("script", {}) or {}
    logging_ = data.get("logging", {}) or {}

    buffer_size = capture.get("buffer_size", DEFAULT_BUFFER_SIZE)
    if not isinstance(buffer_size, int) or isinstance(buffer_size, bool) or buffer_size <= 0:
        raise ConfigError(f"Invalid buffer_size: {buffer_size!r}. Must be a positive integer")

    log_level = str(logging_.get("level", "WARNING")).upper()
    if log_level not in VALID_LOG_LEVELS:
        raise ConfigError(f"Invalid log level: {log_level}. Must be one of {VALID_LOG_LEVELS}")

    log_file = logging_.get("file")
    if log_file is not None and not isinstance(log_file, str):
        raise ConfigError(f"Invalid log file: {log_file!r}. Must be a path string")

    return Settings(
        shell=_require_str(main, "shell", "bash"),
        prompt=_require_str(main, "prompt", "| "),
        buffer_size=buffer_size,
        script_prefix=_require_str(script, "prefix", "up"),
        log_file=log_file,
        log_level=log_level,
    )


def find_settings(explicit: str | None = None) -> Settings:
    """Load settings from an explicit path, ~/.livepipe, or fall back to defaults."""
    if explicit is not None:
        return load_settings(Path(explicit).expanduser())

    home_settings = LIVEPIPE_HOME.expanduser() / SETTINGS_FILE
    if home_settings.exists():
        return load_settings(home_settings)

    return Settings()
