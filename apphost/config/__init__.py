"""
Configuration for apphost.

Provides:
- Configuration: hierarchical, case-insensitive values consumed by resources
- AppHostSettings / ParameterStoreSettings: pydantic settings models
- get_settings(): cached loader for APPHOST_* environment variables
"""

from .configuration import Configuration, ConfigurationParameterSource
from .schemas import AppHostSettings, ParameterStoreSettings
from .settings import get_parameter_store_settings, get_settings

__all__ = [
    "AppHostSettings",
    "Configuration",
    "ConfigurationParameterSource",
    "ParameterStoreSettings",
    "get_parameter_store_settings",
    "get_settings",
]
