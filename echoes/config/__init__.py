"""Configuration system for Errors & Echoes."""

from .config import (
    EchoesConfig,
    AttributionConfig,
    ReportingConfig,
    DispatchConfig,
    LoggingConfig,
    get_config_path,
    load_config,
)

__all__ = [
    "EchoesConfig",
    "AttributionConfig",
    "ReportingConfig",
    "DispatchConfig",
    "LoggingConfig",
    "get_config_path",
    "load_config",
]
