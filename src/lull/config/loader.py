"""Configuration loading from TOML files and environment variables."""

import os
import tomllib
from pathlib import Path
from typing import Any

from lull.config.models import ConfigError, LullConfig
from lull.config.paths import get_config_path

# Environment variable -> top-level config key
ENV_OVERRIDES = {
    "LULL_STEP_SECONDS": "step_seconds",
    "LULL_TIMEZONE": "timezone",
}


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("lull.toml"),  # Current directory
        get_config_path(),  # ~/.lull/config.toml (or LULL_HOME)
        Path("/etc/lull/config.toml"),  # System-wide
    ]


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Override top-level settings from environment variables where set."""
    for env_var, key in ENV_OVERRIDES.items():
        if value := os.environ.get(env_var):
            config[key] = value
    return config


def load_config(path: Path | None = None) -> LullConfig:
    """Load configuration from TOML file.

    Args:
        path: Explicit path to config file. If None, searches default locations.

    Returns:
        Validated LullConfig instance.

    Raises:
        FileNotFoundError: If no config file is found.
        ConfigError: If the file is not valid TOML.
        ValidationError: If the config values are invalid.
    """
    config_path: Path | None = None

    default_paths = _get_default_config_paths()

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for default_path in default_paths:
            expanded = default_path.expanduser()
            if expanded.exists():
                config_path = expanded
                break

    if config_path is None:
        raise FileNotFoundError(
            f"No config file found. Searched: {', '.join(str(p) for p in default_paths)}"
        )

    try:
        with config_path.open("rb") as f:
            raw_config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    raw_config = _apply_env_overrides(raw_config)

    return LullConfig.model_validate(raw_config)


def get_default_config() -> LullConfig:
    """Get a default configuration (no handlers) for development/testing."""
    return LullConfig.model_validate(_apply_env_overrides({}))
