"""Unified configuration management with environment variables, validation and YAML overrides"""
import json
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chunked_upload.core.exceptions import ConfigurationException

ENV_PREFIX = "CHUNKED_UPLOAD_"


class Environment(Enum):
    """Deployment environment"""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(Enum):
    """Log level"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class StorageConfig:
    """Chunk and merged-file storage configuration"""
    upload_dir: str
    chunk_dir: str
    max_upload_size: int
    max_chunk_size: int
    merge_buffer_size: int


@dataclass
class SessionConfig:
    """Session lifecycle configuration"""
    session_idle_timeout: int
    reaper_interval: int


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: LogLevel
    log_dir: str
    max_file_size: int
    backup_count: int


class Settings(BaseSettings):
    """Application settings backed by pydantic-settings"""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=[".env", ".env.local"],
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True
    )

    # Application
    app_name: str = Field(default="Chunked Upload API", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Deployment environment")

    # Server
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port")

    # Storage
    upload_dir: str = Field(default="uploads", description="Directory receiving merged files")
    chunk_dir: str = Field(default="uploads/.chunks", description="Directory holding in-flight chunks")
    max_upload_size: int = Field(default=100 * 1024 * 1024 * 1024, ge=1, description="Largest declared file size")
    max_chunk_size: int = Field(default=64 * 1024 * 1024, ge=1, description="Largest single chunk payload")
    merge_buffer_size: int = Field(default=1024 * 1024, ge=1024, le=64 * 1024 * 1024)

    # Session lifecycle; 0 disables the reaper
    session_idle_timeout: int = Field(default=0, ge=0, description="Seconds before an idle session is reaped")
    reaper_interval: int = Field(default=60, ge=1, le=3600)

    # Logging
    log_level: LogLevel = Field(default=LogLevel.INFO)
    log_dir: str = Field(default="logs")
    log_max_file_size: int = Field(default=10 * 1024 * 1024, ge=1024 * 1024, le=1024 * 1024 * 1024)
    log_backup_count: int = Field(default=10, ge=1, le=50)

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v):
        """Accept environment names in any case"""
        if isinstance(v, str):
            return Environment(v.lower())
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v):
        """Accept log level names in any case"""
        if isinstance(v, str):
            return LogLevel(v.upper())
        return v

    @model_validator(mode="after")
    def validate_dependencies(self):
        """Cross-field checks"""
        if self.max_chunk_size > self.max_upload_size:
            raise ValueError("max_chunk_size cannot exceed max_upload_size")

        if self.environment == Environment.PRODUCTION and self.debug:
            raise ValueError("Debug mode must be disabled in production")

        return self

    def get_storage_config(self) -> StorageConfig:
        """Storage configuration view"""
        return StorageConfig(
            upload_dir=self.upload_dir,
            chunk_dir=self.chunk_dir,
            max_upload_size=self.max_upload_size,
            max_chunk_size=self.max_chunk_size,
            merge_buffer_size=self.merge_buffer_size
        )

    def get_session_config(self) -> SessionConfig:
        """Session lifecycle configuration view"""
        return SessionConfig(
            session_idle_timeout=self.session_idle_timeout,
            reaper_interval=self.reaper_interval
        )

    def get_logging_config(self) -> LoggingConfig:
        """Logging configuration view"""
        return LoggingConfig(
            level=self.log_level,
            log_dir=self.log_dir,
            max_file_size=self.log_max_file_size,
            backup_count=self.log_backup_count
        )


class ConfigManager:
    """Configuration manager - singleton"""

    _instance: Optional['ConfigManager'] = None
    _settings: Optional[Settings] = None
    _config_cache: Dict[str, Any] = {}

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
        return cls._instance

    def __init__(self, config_file: Optional[str] = None):
        if hasattr(self, '_initialized'):
            return

        self._initialized = True
        self.config_file = config_file or os.getenv(f"{ENV_PREFIX}CONFIG_FILE")

        self._load_settings()

    def _load_settings(self):
        """Load settings, applying the optional YAML file as environment overrides"""
        try:
            if self.config_file and Path(self.config_file).exists():
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    config_data = yaml.safe_load(f) or {}

                for key, value in config_data.items():
                    env_key = f"{ENV_PREFIX}{key.upper()}"
                    if isinstance(value, (dict, list)):
                        os.environ[env_key] = json.dumps(value)
                    else:
                        os.environ[env_key] = str(value)

            self._settings = Settings()

            self._config_cache = {
                "storage": self._settings.get_storage_config(),
                "session": self._settings.get_session_config(),
                "logging": self._settings.get_logging_config()
            }

        except Exception as e:
            raise ConfigurationException(f"Failed to load settings: {str(e)}")

    @property
    def settings(self) -> Settings:
        """Current settings instance"""
        if not self._settings:
            raise ConfigurationException("Settings not initialized")
        return self._settings

    def get_typed_config(self, config_type: str) -> Any:
        """Typed configuration group ("storage", "session" or "logging")"""
        if config_type not in self._config_cache:
            raise ConfigurationException(f"Unknown config type: {config_type}", config_key=config_type)
        return self._config_cache[config_type]

    def reload(self):
        self._load_settings()


# Global configuration manager instance
config_manager = ConfigManager()
