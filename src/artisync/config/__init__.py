"""
Configuration management.

Configuration file parsing, environment resolution and typed settings.
"""

from artisync.config.loader import Config, load_config
from artisync.config.resolver import resolve_config
from artisync.config.settings import Settings, load_settings, settings_from_config

__all__ = [
    "load_config",
    "Config",
    "resolve_config",
    "Settings",
    "load_settings",
    "settings_from_config",
]
