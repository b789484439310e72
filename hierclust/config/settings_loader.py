"""
settings_loader.py

Settings for hierclust: clustering defaults, cache memory guard, run
storage and logging, read from config/settings.yaml.

Values may reference the environment as ${VAR} or ${VAR:default}. Policy
names are matched case-insensitively; anything invalid fails at load time
with a ConfigurationError instead of during a run.
"""

import os
import re
import yaml
import logging
from typing import Any, Optional
from pydantic import BaseModel, Field, ValidationError, field_validator
from pathlib import Path

from hierclust.schemas.data_models import DistanceMetric, LinkageType
from hierclust.utils.error_handling import ConfigurationError

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models (Pydantic)
# =============================================================================

class ServiceSettings(BaseModel):
    """General service settings."""
    name: str = Field(default="hierclust", description="Service name")
    version: str = Field(default="1.0.0", description="Service version")
    environment: str = Field(default="production", description="Environment (development, staging, production)")


class HierarchicalSettings(BaseModel):
    """Agglomerative clustering options."""
    linkage: LinkageType = Field(default=LinkageType.SINGLE, description="Linkage policy (single, average, complete)")
    distance: DistanceMetric = Field(default=DistanceMetric.EUCLIDEAN, description="Distance function (euclidean, manhattan)")
    target_cluster_count: int = Field(default=3, ge=1, description="Cluster count at which the partition is captured")
    use_cache: bool = Field(default=False, description="Memoize leaf-to-leaf distances")
    progress_log_interval: int = Field(default=100, ge=1, description="Log progress every N merges")

    @field_validator("linkage", "distance", mode="before")
    @classmethod
    def normalize_policy_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class ResourceSettings(BaseModel):
    """Memory guard for the distance cache."""
    max_cache_memory_fraction: float = Field(default=0.5, gt=0.0, le=1.0, description="Max share of available RAM the cache may use")


class StorageSettings(BaseModel):
    """Run persistence configuration."""
    enabled: bool = Field(default=False, description="Persist runs by default")
    output_dir: str = Field(default="data/runs", description="Output directory")
    file_name: str = Field(default="runs.jsonl", description="JSONL file holding one run per line")


class FileLoggingSettings(BaseModel):
    """File logging configuration."""
    enabled: bool = Field(default=False, description="Enable file logging")
    path: str = Field(default="logs/hierclust.log", description="Log file path")
    max_size_mb: int = Field(default=100, ge=1, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, description="Number of backup files")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="console", description="Log format (json or console)")
    file: FileLoggingSettings = Field(default_factory=FileLoggingSettings)


class Settings(BaseModel):
    """Root configuration model."""
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    clustering: HierarchicalSettings = Field(default_factory=HierarchicalSettings)
    resources: ResourceSettings = Field(default_factory=ResourceSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# =============================================================================
# Configuration Manager
# =============================================================================

ENV_CONFIG_VAR = "HIERCLUST_CONFIG"
DEFAULT_CONFIG_PATH = Path("config/settings.yaml")

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


def substitute_env_vars(value: Any) -> Any:
    """
    Replace ${VAR} and ${VAR:default} in every string of a parsed YAML tree.

    An unset variable without default becomes the empty string.
    """
    if isinstance(value, dict):
        return {k: substitute_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute_env_vars(v) for v in value]
    if isinstance(value, str):
        return _ENV_PATTERN.sub(lambda m: os.getenv(m.group(1), m.group(2) or ""), value)
    return value


class ConfigManager:
    """
    Process-wide holder of the loaded Settings.

    Lookup order without an explicit path: $HIERCLUST_CONFIG, then
    config/settings.yaml relative to the working directory, then built-in
    defaults.
    """

    _settings: Optional[Settings] = None

    @classmethod
    def load_config(cls, config_path: Optional[str] = None) -> Settings:
        """
        Load and validate settings, once.

        Later calls return the cached Settings; use reload_config to re-read.

        Raises:
            ConfigurationError: Explicit file missing, unparsable YAML or invalid values
        """
        if cls._settings is not None:
            return cls._settings

        path = cls._resolve_path(config_path)
        if path is None:
            logger.warning(
                f"No configuration file at ${ENV_CONFIG_VAR} or {DEFAULT_CONFIG_PATH}, using defaults"
            )
            cls._settings = Settings()
            return cls._settings

        logger.info(f"Loading configuration from {path}")
        try:
            raw = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse {path}: {e}")
            raise ConfigurationError(f"Invalid YAML configuration: {e}", details={"path": str(path)}) from e

        try:
            cls._settings = Settings(**substitute_env_vars(raw))
        except ValidationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise ConfigurationError(
                f"Invalid configuration in {path}: {e.error_count()} error(s)",
                details={"path": str(path), "errors": e.errors(include_url=False)},
            ) from e

        return cls._settings

    @staticmethod
    def _resolve_path(config_path: Optional[str]) -> Optional[Path]:
        if config_path is not None:
            path = Path(config_path)
            if not path.exists():
                raise ConfigurationError(
                    f"Configuration file not found: {config_path}",
                    details={"path": config_path},
                )
            return path

        for candidate in (os.getenv(ENV_CONFIG_VAR), DEFAULT_CONFIG_PATH):
            if candidate and Path(candidate).exists():
                return Path(candidate)
        return None

    @classmethod
    def get_settings(cls) -> Settings:
        """Cached settings, loading from the default locations on first use."""
        if cls._settings is None:
            return cls.load_config()
        return cls._settings

    @classmethod
    def reload_config(cls, config_path: Optional[str] = None) -> Settings:
        """Drop the cached settings and load again."""
        cls._settings = None
        return cls.load_config(config_path)


def get_settings() -> Settings:
    """Application settings (see ConfigManager.get_settings)."""
    return ConfigManager.get_settings()
