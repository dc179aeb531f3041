"""
Configuration and parameter loading using Pydantic.

This module provides centralized configuration management for the entire application.
All parameters are loaded from YAML and validated using Pydantic models.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from wellness_log.utils.exceptions import ConfigurationError


class CacheConfig(BaseModel):
    """Record cache configuration."""

    freshness_seconds: int = Field(300, gt=0, description="Age after which a cache entry is stale")


class ReconciliationConfig(BaseModel):
    """Time-series reconciliation configuration."""

    timezone: str = "UTC"
    tick_milliseconds: int = Field(1, gt=0, description="Offset unit for colliding timestamps")
    bp_cluster_window_minutes: int = Field(
        10, ge=0, description="Maximum distance from a cluster's anchor reading"
    )


class StatisticsConfig(BaseModel):
    """Period window statistics configuration."""

    default_window_days: int = Field(14, ge=1)
    trend_sample_size: int = Field(5, ge=2)
    trend_threshold: float = Field(0.5, ge=0)
    bp_trend_recent_count: int = Field(3, ge=1)
    bp_trend_threshold: float = Field(5.0, ge=0)


class StorageConfig(BaseModel):
    """Persistence backend configuration."""

    backend: str = Field("json", pattern="^(memory|json)$")
    data_dir: str = "data"


class RecordIDConfig(BaseModel):
    """Record ID generation configuration."""

    algorithm: str = "sha256"
    length: int = Field(24, ge=8, le=64)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    console: bool = True


class AppConfig(BaseSettings):
    """Main application configuration."""

    cache: CacheConfig = Field(default_factory=CacheConfig)
    reconciliation: ReconciliationConfig = Field(default_factory=ReconciliationConfig)
    statistics: StatisticsConfig = Field(default_factory=StatisticsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    record_id: RecordIDConfig = Field(default_factory=RecordIDConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="WELLNESS_", env_nested_delimiter="__", case_sensitive=False
    )


class ParameterLoader:
    """
    Centralized parameter loader for the application.

    Loads and validates configuration from YAML files using Pydantic models.
    Provides type-safe access to all configuration parameters.
    """

    def __init__(self, config_path: str = "config/config.yaml") -> None:
        """
        Initialize parameter loader.

        Args:
            config_path: Path to the YAML configuration file.

        Raises:
            ConfigurationError: If configuration file cannot be loaded or is invalid.
        """
        self.config_path = Path(config_path)
        self.config: AppConfig
        self._load_config()

    def _load_config(self) -> None:
        """
        Load configuration from YAML file.

        Raises:
            ConfigurationError: If configuration file cannot be loaded or is invalid.
        """
        if not self.config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, encoding="utf-8") as f:
                config_dict = yaml.safe_load(f) or {}

            if not isinstance(config_dict, dict):
                raise ConfigurationError(
                    f"Configuration root must be a mapping: {self.config_path}"
                )

            self.config = AppConfig(**config_dict)

        except ConfigurationError:
            raise
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}") from e
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

    def get_cache_config(self) -> CacheConfig:
        """Get record cache configuration."""
        return self.config.cache

    def get_reconciliation_config(self) -> ReconciliationConfig:
        """Get time-series reconciliation configuration."""
        return self.config.reconciliation

    def get_statistics_config(self) -> StatisticsConfig:
        """Get period window statistics configuration."""
        return self.config.statistics

    def get_storage_config(self) -> StorageConfig:
        """Get persistence backend configuration."""
        return self.config.storage

    def get_record_id_config(self) -> RecordIDConfig:
        """Get record ID generation configuration."""
        return self.config.record_id

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration."""
        return self.config.logging

    def get_raw_config(self) -> dict[str, Any]:
        """
        Get raw configuration dictionary.

        Returns:
            Dictionary representation of the configuration.
        """
        return self.config.model_dump()
