"""Configuration module."""

from config.settings import settings, Settings, SportTier

__all__ = [
    "settings",
    "Settings",
    "SportTier",
]
