"""
Configuration module for RatePool.

Provides settings management loaded from the environment.
"""

from ratepool.config.settings import Settings, get_settings, configure, reset_settings

__all__ = [
    "Settings",
    "get_settings",
    "configure",
    "reset_settings",
]
