"""Configuration module."""

from lull.config.loader import get_default_config, load_config
from lull.config.models import ConfigError, HandlerConfig, LullConfig
from lull.config.paths import (
    get_config_path,
    get_logs_path,
    get_lull_home,
    get_system_timezone,
)

__all__ = [
    "ConfigError",
    "HandlerConfig",
    "LullConfig",
    "get_config_path",
    "get_default_config",
    "get_logs_path",
    "get_lull_home",
    "get_system_timezone",
    "load_config",
]
