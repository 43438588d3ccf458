"""
Application configuration.

``AppConfig`` is built from ``config/agi.yaml`` (plus an optional
``config/agi.local.yaml``); every field has a default so a missing file
yields a working FastAGI setup on port 4573.
"""

import os
from typing import Optional

import structlog
from pydantic import BaseModel, Field, ValidationError

from .loaders import load_yaml_with_local_override, resolve_config_path

logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_PATH = "config/agi.yaml"


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(default=4573, ge=0, le=65535)
    encoding: str = "utf-8"
    shutdown_timeout_ms: int = Field(default=5000, gt=0)


class SessionConfig(BaseModel):
    default_timeout_ms: int = Field(default=5000, ge=0)
    close_on_app_exit: bool = True


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "console"  # console | json


class MetricsConfig(BaseModel):
    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = Field(default=9108, ge=0, le=65535)


class AppConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


def load_config(path: Optional[str] = None) -> AppConfig:
    """
    Load and validate the application config.

    ``path`` defaults to ``$AGI_CONFIG`` and then ``config/agi.yaml``;
    relative paths resolve against the project root.

    Raises:
        ConfigValidationError: If the file content doesn't match the schema
    """
    path = resolve_config_path(path or os.getenv("AGI_CONFIG", DEFAULT_CONFIG_PATH))
    if os.path.isfile(path):
        data = load_yaml_with_local_override(path)
    else:
        logger.info("No config file found; using defaults", path=path)
        data = {}

    try:
        return AppConfig(**data)
    except (TypeError, ValidationError) as exc:
        raise ConfigValidationError(f"Invalid configuration in {path}: {exc}") from exc


__all__ = [
    'AppConfig',
    'ConfigValidationError',
    'LoggingConfig',
    'MetricsConfig',
    'ServerConfig',
    'SessionConfig',
    'load_config',
]
