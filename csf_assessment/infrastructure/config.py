"""
Centralized configuration management for the CSF self-assessment engine.

Provides environment-driven settings with validation and type safety using
pydantic-settings. Each section reads its own environment prefix.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class AssessmentConfig(BaseSettings):
    """
    Assessment behaviour settings.

    Example:
        >>> cfg = AssessmentConfig(data_file="./catalogue.json", require_consent=False)
        >>> cfg.top_priority_count
        3
    """

    data_file: str = Field("./data.json", description="Question catalogue JSON file")
    require_consent: bool = Field(True, description="Gate start on the disclaimer agreement")
    top_priority_count: int = Field(3, ge=1, le=20, description="Weak categories to surface")
    unassessed_display_limit: int = Field(
        12, ge=1, description="Unassessed category labels listed in the summary"
    )
    low_maturity_threshold: Literal[2, 3] = Field(
        2, description="Highest answer level listed as low maturity"
    )

    model_config = {"env_prefix": "ASSESS_", "case_sensitive": False}

    @field_validator("data_file")
    def validate_data_file(cls, v):
        """Require a JSON catalogue path."""
        if not v or not v.strip():
            raise ValueError("data_file cannot be empty")
        if Path(v).suffix.lower() != ".json":
            raise ValueError("data_file must point to a .json catalogue")
        return v.strip()


class ExportConfig(BaseSettings):
    """
    Export file settings for session and result documents.

    Example:
        >>> ExportConfig().session_path()
        PosixPath('exports/assessment_session.json')
    """

    output_dir: str = Field("./exports", description="Directory for exported files")
    session_filename: str = Field("assessment_session.json", description="Session file name")
    result_filename: str = Field("assessment_result.json", description="Result file name")
    indent: int = Field(2, ge=0, le=8, description="JSON indentation")

    model_config = {"env_prefix": "EXPORT_", "case_sensitive": False}

    def session_path(self) -> Path:
        return Path(self.output_dir) / self.session_filename

    def result_path(self) -> Path:
        return Path(self.output_dir) / self.result_filename


class LoggingConfig(BaseSettings):
    """
    Logging configuration settings.

    Example:
        >>> log_config = LoggingConfig(level="DEBUG", file_path=None)
        >>> log_config.get_file_handler_config() is None
        True
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Minimum logging level"
    )
    file_path: str | None = Field(None, description="Log file path")
    max_bytes: int = Field(10 * 1024 * 1024, ge=1024, description="Max log file size in bytes")
    backup_count: int = Field(5, ge=1, description="Number of backup log files")
    structured: bool = Field(False, description="Use structured JSON logging")
    console_enabled: bool = Field(True, description="Enable console output")

    model_config = {"env_prefix": "LOG_", "case_sensitive": False}

    def get_file_handler_config(self) -> dict[str, Any] | None:
        """Get file handler configuration if file logging is enabled."""
        if not self.file_path:
            return None

        return {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": self.file_path,
            "maxBytes": self.max_bytes,
            "backupCount": self.backup_count,
            "encoding": "utf-8",
        }


class ApplicationConfig(BaseSettings):
    """Main application configuration."""

    environment: Literal["development", "testing", "production"] = Field(
        "development", description="Application environment"
    )
    debug: bool = Field(False, description="Enable debug mode")
    version: str = Field("0.1.0", description="Application version")
    basis: str = Field(
        "NIST CSF 2.0 Subcategory (1:1)", description="Framework basis stated in result exports"
    )

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

    Provides structured access to all configuration sections with lazy loading.

    Example:
        >>> settings = get_settings()
        >>> settings.assessment.data_file
        './data.json'
    """

    def __init__(self):
        self._app: ApplicationConfig | None = None
        self._assessment: AssessmentConfig | None = None
        self._export: ExportConfig | None = None
        self._logging: LoggingConfig | None = None

    @property
    def app(self) -> ApplicationConfig:
        if self._app is None:
            self._app = ApplicationConfig()
        return self._app

    @property
    def assessment(self) -> AssessmentConfig:
        if self._assessment is None:
            self._assessment = AssessmentConfig()
        return self._assessment

    @property
    def export(self) -> ExportConfig:
        if self._export is None:
            self._export = ExportConfig()
        return self._export

    @property
    def logging(self) -> LoggingConfig:
        if self._logging is None:
            # Environment default, overridable through LOG_LEVEL
            level = "DEBUG" if self.app.debug else "INFO"
            if self.app.environment == "production":
                level = "WARNING"
            self._logging = LoggingConfig(level=os.environ.get("LOG_LEVEL", level).upper())
        return self._logging

    def is_production(self) -> bool:
        return self.app.environment == "production"

    def get_environment_info(self) -> dict[str, Any]:
        """Get summary of current environment configuration."""
        return {
            "environment": self.app.environment,
            "version": self.app.version,
            "debug": self.app.debug,
            "data_file": self.assessment.data_file,
            "logging_level": self.logging.level,
            "require_consent": self.assessment.require_consent,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get application settings instance (cached).

    Returns:
        Settings instance with all configuration loaded
    """
    return Settings()


def load_settings_from_file(file_path: str) -> Settings:
    """
    Load settings from a JSON configuration file.

    Each top-level section is exported as ``<SECTION>_<KEY>`` environment
    variables, e.g. ``{"assess": {"data_file": "x.json"}}`` sets
    ``ASSESS_DATA_FILE``.

    Raises:
        FileNotFoundError: If configuration file doesn't exist
        ValueError: If file format is unsupported
    """
    config_path = Path(file_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    if config_path.suffix.lower() != ".json":
        raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")

    with open(config_path, encoding="utf-8") as f:
        config_data = json.load(f)

    for section, values in config_data.items():
        if isinstance(values, dict):
            for key, value in values.items():
                os.environ[f"{section.upper()}_{key.upper()}"] = str(value)

    get_settings.cache_clear()
    return get_settings()


def override_settings(**kwargs) -> Settings:
    """
    Override specific settings for testing or development.

    Keys are environment variable names without case, e.g.
    ``override_settings(assess_require_consent=False)``.
    """
    for key, value in kwargs.items():
        os.environ[key.upper()] = str(value)

    get_settings.cache_clear()
    return get_settings()


def reset_settings() -> None:
    """Reset settings cache to reload from environment."""
    get_settings.cache_clear()
