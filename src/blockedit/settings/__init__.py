from .models import (
    CommandConfig,
    LoggingSettings,
    LogLevel,
    MatchSettings,
    Settings,
)
from .loader import find_settings_file, load_settings

__all__ = [
    "CommandConfig",
    "LoggingSettings",
    "LogLevel",
    "MatchSettings",
    "Settings",
    "find_settings_file",
    "load_settings",
]
