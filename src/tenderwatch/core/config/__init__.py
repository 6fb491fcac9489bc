"""Configuration loading and validation."""

from .models import (
    # Enums
    EmailBackend,
    LockBackend,
    # Config models
    AppConfig,
    DatabaseConfig,
    DispatchConfig,
    EmailConfig,
    ListingSelectors,
    LoggingConfig,
    MatcherConfig,
    SchedulerConfig,
    ScraperConfig,
    DEFAULT_REGIONS,
)
from .loader import ConfigError, dump_default_config, load_app_config, validate_app_config_file

__all__ = [
    # Enums
    "EmailBackend",
    "LockBackend",
    # Config models
    "AppConfig",
    "DatabaseConfig",
    "DispatchConfig",
    "EmailConfig",
    "ListingSelectors",
    "LoggingConfig",
    "MatcherConfig",
    "SchedulerConfig",
    "ScraperConfig",
    "DEFAULT_REGIONS",
    # Loaders
    "ConfigError",
    "load_app_config",
    "dump_default_config",
    "validate_app_config_file",
]
