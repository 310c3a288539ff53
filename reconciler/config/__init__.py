"""Configuration: settings, constants, database and logging."""

from reconciler.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
