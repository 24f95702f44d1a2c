"""
Configuration Module
====================

Application settings and configuration management using Pydantic.

Settings are read once, at startup, by the application host. There is no
module-level settings instance: the loaded object is owned by the
application context and handed to the components that need it.
"""

from pathlib import Path
from typing import Any, List, Optional, Tuple, Type

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    SettingsError,
    YamlConfigSettingsSource,
)

from src.core.exceptions import ConfigurationException


ALLOWED_ENVIRONMENTS = {"development", "staging", "production"}
ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety. Sources, highest
    priority first: constructor arguments, environment, ``.env`` file,
    YAML file (``application.yaml`` unless overridden).
    """

    # ========== Application ==========
    app_name: str = Field(default="ecommerce-rest-api", description="Application name")
    app_version: str = Field(default="0.0.1", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root logging level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port (0 picks a free port)", ge=0, le=65535)
    shutdown_timeout: float = Field(
        default=10.0,
        description="Seconds to wait for in-flight requests on shutdown",
        gt=0
    )

    # ========== Database ==========
    database_url: str = Field(
        ...,
        min_length=1,
        description="SQLAlchemy async connection URL, e.g. postgresql+asyncpg://host:5432/shop"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)
    db_create_tables: bool = Field(
        default=False,
        description="Create tables for all mapped models at startup (development only)"
    )
    db_verify_on_startup: bool = Field(
        default=True,
        description="Open a connection at startup and fail fast if the database is unreachable"
    )

    # ========== Auditing ==========
    auditing_enabled: bool = Field(default=True, description="Stamp auditable entities on flush")
    auditing_set_dates: bool = Field(default=True, description="Stamp created_at/updated_at")
    auditing_modify_on_create: bool = Field(
        default=True,
        description="Also stamp updated_at/updated_by when an entity is created"
    )
    auditor_header: str = Field(
        default="X-Actor",
        min_length=1,
        description="Request header carrying the acting user for audit fields"
    )
    system_actor: Optional[str] = Field(
        default=None,
        description="Actor recorded when no request actor is bound"
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file="application.yaml",
        case_sensitive=False,
        extra="ignore"
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Add the YAML file as the lowest-priority source."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
            YamlConfigSettingsSource(settings_cls),
        )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        if v not in ALLOWED_ENVIRONMENTS:
            raise ValueError(f"environment must be one of {sorted(ALLOWED_ENVIRONMENTS)}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and check the logging level name."""
        level = v.upper()
        if level not in ALLOWED_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(ALLOWED_LOG_LEVELS)}")
        return level

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def load_settings(config_file: Optional[Path] = None, **overrides: Any) -> Settings:
    """
    Read configuration once and validate it.

    Args:
        config_file: Optional YAML file replacing ``application.yaml``
        **overrides: Explicit values taking precedence over every source

    Returns:
        Settings: Validated settings

    Raises:
        ConfigurationException: If a required value is missing or invalid, or
            a source (environment value, YAML file) cannot be parsed
    """
    settings_cls: Type[Settings] = Settings
    if config_file is not None:
        # Subclass so the YAML location stays local to this load
        class FileSettings(Settings):
            model_config = SettingsConfigDict(yaml_file=config_file)

        settings_cls = FileSettings

    try:
        return settings_cls(**overrides)
    except ValidationError as e:
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"]),
                "error": error["msg"],
            }
            for error in e.errors()
        ]
        fields = ", ".join(error["field"] for error in errors)
        raise ConfigurationException(
            f"Invalid or missing configuration: {fields}",
            {"errors": errors}
        ) from e
    except (SettingsError, yaml.YAMLError) as e:
        # A source could not be parsed (malformed env value or YAML file)
        raise ConfigurationException(
            f"Unreadable configuration: {e}",
            {"source": type(e).__name__, "error": str(e)}
        ) from e
