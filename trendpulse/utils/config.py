"""Type-safe environment configuration using Pydantic Settings."""

from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application configuration loaded from environment variables.

    Required fields will raise validation errors if missing.
    Trend engine tunables default to the values the scoring pipeline
    was calibrated with.
    Secrets are masked in string representations.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields in .env
        env_ignore_empty=True,
    )

    # Required fields - will raise error if missing
    APP_NAME: str = Field(
        ...,
        description="Application name"
    )

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        ...,
        description="Application environment"
    )

    # Logging
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level"
    )

    LOG_FORMAT: Literal["standard", "json"] = Field(
        default="standard",
        description="Console log format"
    )

    DEBUG: bool = Field(
        default=False,
        description="Debug mode flag"
    )

    API_TIMEOUT: int = Field(
        default=30,
        description="Timeout for upstream document source requests in seconds",
        gt=0
    )

    # Database configuration
    DATABASE_URL: SecretStr | None = Field(
        default=None,
        description="PostgreSQL database connection URL"
    )

    DB_POOL_SIZE: int = Field(
        default=5,
        description="Database connection pool size",
        gt=0
    )

    DB_MAX_OVERFLOW: int = Field(
        default=10,
        description="Maximum overflow connections in pool",
        ge=0
    )

    DB_POOL_TIMEOUT: int = Field(
        default=30,
        description="Database pool timeout in seconds",
        gt=0
    )

    DB_MAX_RETRIES: int = Field(
        default=3,
        description="Maximum number of retry attempts for database operations",
        ge=0
    )

    DB_RETRY_DELAY: float = Field(
        default=1.0,
        description="Initial delay between retries in seconds",
        gt=0
    )

    # LLM configuration (semantic filter)
    LLM_PROVIDER: Literal["gemini", "openai"] = Field(
        default="gemini",
        description="Hosted LLM provider"
    )

    LLM_API_KEY: SecretStr | None = Field(
        default=None,
        description="API key for the hosted LLM provider"
    )

    LLM_DEFAULT_MODEL: str = Field(
        default="gemini-2.5-flash",
        description="Default model ID"
    )

    CUSTOM_LLM_BASE_URL: str | None = Field(
        default=None,
        description="OpenAI-compatible endpoint (Ollama, LM Studio); overrides LLM_PROVIDER"
    )

    CUSTOM_LLM_MODEL: str | None = Field(
        default=None,
        description="Model ID served by the custom endpoint"
    )

    CUSTOM_LLM_API_KEY: SecretStr | None = Field(
        default=None,
        description="API key for the custom endpoint"
    )

    LLM_MAX_RETRIES: int = Field(
        default=2,
        description="Retries after the first LLM attempt",
        ge=0
    )

    LLM_RETRY_DELAY: float = Field(
        default=1.0,
        description="Initial delay between LLM retries in seconds",
        gt=0
    )

    LLM_TIMEOUT: int = Field(
        default=20,
        description="Per-request LLM timeout in seconds",
        gt=0
    )

    SEMANTIC_FILTER_ENABLED: bool = Field(
        default=True,
        description="Narrow related terms through the LLM filter"
    )

    SEMANTIC_FILTER_TIMEOUT: float = Field(
        default=30.0,
        description="Upper bound on one semantic filter call, retries included",
        gt=0
    )

    # Trend engine
    TOKEN_MIN_LENGTH: int = Field(
        default=5,
        description="Shortest token kept by the tokenizer",
        ge=1
    )

    DERIVED_TOKEN_LIMIT: int = Field(
        default=10,
        description="Maximum derived tokens stored per document",
        ge=1
    )

    RELATED_LIMIT: int = Field(
        default=10,
        description="Maximum related-term candidates per topic",
        ge=1
    )

    RELATED_DF_THRESHOLD: float = Field(
        default=0.99,
        description="Terms whose document-frequency ratio reaches this value are ignored",
        gt=0,
        le=1
    )

    FILTERED_RELATED_LIMIT: int = Field(
        default=3,
        description="Maximum curated related terms per topic",
        ge=1
    )

    WINDOW_DOC_LIMIT: int = Field(
        default=300,
        description="Maximum documents read into one scoring window",
        ge=1
    )

    SOURCE_FETCH_LIMIT: int = Field(
        default=10,
        description="Posts fetched per sub-source per collection cycle",
        ge=1
    )

    SOURCE_USER_AGENT: str = Field(
        default="TrendBot/1.0",
        description="User-Agent sent to the document source"
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {valid_levels}, got '{v}'"
            )
        return v_upper

    def get_database_url(self) -> str | None:
        """Get the database URL value if set."""
        return self.DATABASE_URL.get_secret_value() if self.DATABASE_URL else None

    def get_llm_api_key(self) -> str | None:
        """Get the hosted LLM API key value if set."""
        return self.LLM_API_KEY.get_secret_value() if self.LLM_API_KEY else None

    def get_custom_llm_api_key(self) -> str | None:
        """Get the custom endpoint API key value if set."""
        return self.CUSTOM_LLM_API_KEY.get_secret_value() if self.CUSTOM_LLM_API_KEY else None


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Loads settings from environment variables and .env file on first call.
    Subsequent calls return the cached instance.

    Returns:
        Settings: The application settings instance

    Raises:
        ValidationError: If required environment variables are missing or invalid
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the settings singleton. Useful for testing."""
    global _settings
    _settings = None
