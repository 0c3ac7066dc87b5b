"""Configuration: YAML + env overlay."""

from mirror.config.loader import _deep_update, load_config, load_config_with_env
from mirror.config.schema import Config, cfg

__all__ = ["Config", "_deep_update", "cfg", "load_config", "load_config_with_env"]
