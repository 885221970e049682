"""
Centralized configuration management for the compliance assessment engine.

Provides environment-specific configuration with validation, type safety,
and settings management using Pydantic. Scoring thresholds and workflow
escalation limits live here so deployments can tune them without code changes.
"""

from __future__ import annotations

import json
import os
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from ..domain.services import (
    DEFAULT_BLOCKER_SCALE_CUTOFF,
    DEFAULT_PRODUCTION_READY_THRESHOLD,
    DEFAULT_SCORE_PRECISION,
    ScoringPolicy,
)


class DatabaseConfig(BaseSettings):
    """
    Database configuration settings.

    Handles both SQLite and MySQL configurations with validation
    and connection URL generation.

    Example:
        >>> db_config = DatabaseConfig(backend="sqlite", sqlite_path="./test.db")
        >>> db_config.get_connection_url()
        'sqlite:///./test.db'
    """

    backend: Literal["sqlite", "mysql"] = Field("sqlite", description="Database backend type")

    # SQLite settings
    sqlite_path: str | None = Field("./complianceiq.db", description="SQLite database file path")

    # MySQL settings
    mysql_host: str | None = Field("localhost", description="MySQL host")
    mysql_port: int | None = Field(3306, ge=1, le=65535, description="MySQL port")
    mysql_user: str | None = Field("root", description="MySQL username")
    mysql_password: str | None = Field("", description="MySQL password")
    mysql_database: str | None = Field("complianceiq", description="MySQL database name")
    mysql_charset: str = Field("utf8mb4", description="MySQL character set")

    # Connection settings
    pool_pre_ping: bool = Field(True, description="Enable connection pool pre-ping")
    pool_recycle: int = Field(3600, ge=60, description="Connection pool recycle time (seconds)")
    echo: bool = Field(False, description="Enable SQL query logging")

    model_config = {"env_prefix": "DB_", "case_sensitive": False}

    @field_validator("sqlite_path")
    @classmethod
    def validate_sqlite_path(cls, v):
        """Validate SQLite path and ensure directory exists."""
        if v and v != ":memory:":
            path = Path(v)
            path.parent.mkdir(parents=True, exist_ok=True)
            if not path.suffix:
                v = str(path.with_suffix(".db"))
        return v

    @model_validator(mode="after")
    def validate_mysql_config(self):
        """Validate MySQL configuration completeness."""
        if self.backend == "mysql":
            missing = []
            if not self.mysql_host:
                missing.append("mysql_host")
            if not self.mysql_user:
                missing.append("mysql_user")
            if not self.mysql_database:
                missing.append("mysql_database")
            if missing:
                raise ValueError(f"MySQL backend requires: {', '.join(missing)}")
        return self

    def get_connection_url(self) -> str:
        """
        Generate database connection URL.

        Raises:
            ValueError: If backend is unsupported
        """
        if self.backend == "sqlite":
            return f"sqlite:///{self.sqlite_path}"
        elif self.backend == "mysql":
            password_part = f":{self.mysql_password}" if self.mysql_password else ""
            return (
                f"mysql+pymysql://{self.mysql_user}{password_part}@{self.mysql_host}:"
                f"{self.mysql_port}/{self.mysql_database}?charset={self.mysql_charset}"
            )
        else:
            raise ValueError(f"Unsupported database backend: {self.backend}")

    def get_engine_options(self) -> dict[str, Any]:
        """Get SQLAlchemy engine options."""
        return {
            "echo": self.echo,
            "future": True,
            "pool_pre_ping": self.pool_pre_ping,
            "pool_recycle": self.pool_recycle,
        }


class LoggingConfig(BaseSettings):
    """
    Logging configuration settings.

    Example:
        >>> log_config = LoggingConfig(level="DEBUG", file_path="./logs/complianceiq.log")
        >>> log_config.max_bytes
        10485760
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Minimum logging level"
    )
    file_path: str | None = Field("./logs/complianceiq.log", description="Log file path")
    max_bytes: int = Field(10 * 1024 * 1024, ge=1024, description="Max log file size in bytes")
    backup_count: int = Field(5, ge=1, description="Number of backup log files")
    structured: bool = Field(True, description="Use structured JSON logging")
    console_enabled: bool = Field(True, description="Enable console output")

    model_config = {"env_prefix": "LOG_", "case_sensitive": False}

    @field_validator("file_path")
    @classmethod
    def validate_log_path(cls, v):
        """Ensure log directory exists."""
        if v:
            Path(v).parent.mkdir(parents=True, exist_ok=True)
        return v


class ScoringConfig(BaseSettings):
    """
    Scoring and workflow tuning.

    ``production_ready_threshold`` is the minimum completion percentage for a
    production-ready verdict; ``blocker_scale_cutoff`` is the lowest scale
    answer that clears a blocker question.

    Example:
        >>> ScoringConfig(production_ready_threshold=85).to_policy().production_ready_threshold
        85
    """

    production_ready_threshold: int = Field(
        DEFAULT_PRODUCTION_READY_THRESHOLD, ge=0, le=100, description="Production-ready minimum %"
    )
    blocker_scale_cutoff: int = Field(
        DEFAULT_BLOCKER_SCALE_CUTOFF, ge=1, le=5, description="Scale value resolving a blocker"
    )
    score_precision: int = Field(
        DEFAULT_SCORE_PRECISION, ge=0, le=6, description="Decimal places for partial points"
    )
    minutes_per_question: int = Field(2, ge=1, description="Estimated answering time per question")
    review_escalation_hours: int = Field(
        24, ge=1, description="Hours a section may stay in review before escalation"
    )

    model_config = {"env_prefix": "SCORING_", "case_sensitive": False}

    def to_policy(self) -> ScoringPolicy:
        """Build the domain scoring policy from these settings."""
        return ScoringPolicy(
            production_ready_threshold=self.production_ready_threshold,
            blocker_scale_cutoff=self.blocker_scale_cutoff,
            precision=self.score_precision,
        )

    @property
    def review_escalation_window(self) -> timedelta:
        return timedelta(hours=self.review_escalation_hours)


class ApplicationConfig(BaseSettings):
    """
    Main application configuration.

    Example:
        >>> config = get_settings()
        >>> config.app.environment
        'development'
    """

    environment: Literal["development", "testing", "production"] = Field(
        "development", description="Application environment"
    )
    debug: bool = Field(False, description="Enable debug mode")
    title: str = Field("ComplianceIQ Assessment Engine", description="API title")
    version: str = Field("0.1.0", description="Application version")

    # Feature flags
    enable_data_export: bool = Field(True, description="Enable scorecard export")

    cors_origins: list[str] = Field(["*"], description="Allowed CORS origins")

    model_config = {"env_prefix": "APP_", "case_sensitive": False}

    @model_validator(mode="after")
    def debug_implies_development(self):
        """Ensure debug mode is only enabled outside production."""
        if self.debug and self.environment == "production":
            raise ValueError("Debug mode cannot be enabled in production")
        return self


class Settings:
    """
    Complete application settings container.

    Provides structured access to all configuration sections
    with lazy loading and caching.

    Example:
        >>> settings = get_settings()
        >>> settings.scoring.production_ready_threshold
        80
    """

    def __init__(self):
        self._app: ApplicationConfig | None = None
        self._database: DatabaseConfig | None = None
        self._logging: LoggingConfig | None = None
        self._scoring: ScoringConfig | None = None

    @property
    def app(self) -> ApplicationConfig:
        """Get application configuration."""
        if self._app is None:
            self._app = ApplicationConfig()
        return self._app

    @property
    def database(self) -> DatabaseConfig:
        """Get database configuration."""
        if self._database is None:
            self._database = DatabaseConfig()
        return self._database

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration."""
        if self._logging is None:
            level = "DEBUG" if self.app.debug else "INFO"
            if self.app.environment == "production":
                level = "WARNING"
            self._logging = LoggingConfig(level=level)
        return self._logging

    @property
    def scoring(self) -> ScoringConfig:
        """Get scoring configuration."""
        if self._scoring is None:
            self._scoring = ScoringConfig()
        return self._scoring

    def is_testing(self) -> bool:
        return self.app.environment == "testing"

    def get_environment_info(self) -> dict[str, Any]:
        """Get summary of current environment configuration."""
        return {
            "environment": self.app.environment,
            "version": self.app.version,
            "debug": self.app.debug,
            "database_backend": self.database.backend,
            "logging_level": self.logging.level,
            "scoring": {
                "production_ready_threshold": self.scoring.production_ready_threshold,
                "blocker_scale_cutoff": self.scoring.blocker_scale_cutoff,
            },
            "features": {
                "data_export": self.app.enable_data_export,
            },
        }


# Section name -> environment variable prefix
SECTION_PREFIXES = {
    "app": "APP_",
    "database": "DB_",
    "db": "DB_",
    "logging": "LOG_",
    "log": "LOG_",
    "scoring": "SCORING_",
}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get application settings instance (cached).

    Example:
        >>> settings = get_settings()
        >>> db_url = settings.database.get_connection_url()
    """
    return Settings()


def _env_key(section: str, key: str) -> str:
    prefix = SECTION_PREFIXES.get(section.lower(), f"{section.upper()}_")
    return f"{prefix}{key.upper()}"


def load_settings_from_file(file_path: str) -> Settings:
    """
    Load settings from a JSON configuration file.

    The file maps section names (``app``, ``database``, ``logging``,
    ``scoring``) to dictionaries of field values.

    Raises:
        FileNotFoundError: If configuration file doesn't exist
        ValueError: If file format is unsupported
    """
    config_path = Path(file_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    if config_path.suffix.lower() == ".json":
        with open(config_path) as f:
            config_data = json.load(f)
    else:
        raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")

    for section, values in config_data.items():
        if isinstance(values, dict):
            for key, value in values.items():
                os.environ[_env_key(section, key)] = str(value)

    get_settings.cache_clear()
    return get_settings()


def override_settings(**kwargs) -> Settings:
    """
    Override specific settings for testing or development.

    Keys are ``<section>_<field>``.

    Example:
        >>> settings = override_settings(
        ...     app_environment="testing",
        ...     scoring_production_ready_threshold=90,
        ... )
    """
    for key, value in kwargs.items():
        section, _, field = key.partition("_")
        os.environ[_env_key(section, field)] = str(value)

    get_settings.cache_clear()
    return get_settings()


def reset_settings() -> None:
    """Reset settings cache to reload from environment."""
    get_settings.cache_clear()
