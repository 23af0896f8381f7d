"""Configuration module.

Exports:
- load_unified_config: cached dict of YAML + environment settings
- get_settings: typed Settings view
- reload_configs: clear the cache
"""

from .config_loader import (
    DEFAULT_FILE_EXTENSIONS,
    Settings,
    get_config_path,
    get_settings,
    load_unified_config,
    reload_configs,
)

__all__ = [
    "DEFAULT_FILE_EXTENSIONS",
    "Settings",
    "get_config_path",
    "get_settings",
    "load_unified_config",
    "reload_configs",
]
