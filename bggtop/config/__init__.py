"""Configuration loading and validation."""

from bggtop.config.loader import ConfigLoader, ConfigValidationError, load_config
from bggtop.config.schemas import AppConfig


__all__ = [
    "AppConfig",
    "ConfigLoader",
    "ConfigValidationError",
    "load_config",
]
