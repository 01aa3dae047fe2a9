"""Configuration module for condenser."""

from condenser.config.loader import get_config_path, load_config, save_config
from condenser.config.schema import CompressionConfig, Config, FilterConfig, RewriterConfig

__all__ = [
    "Config",
    "CompressionConfig",
    "FilterConfig",
    "RewriterConfig",
    "load_config",
    "save_config",
    "get_config_path",
]
