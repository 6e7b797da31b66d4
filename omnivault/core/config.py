"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List

DEFAULT_JWT_SECRET = "dev-insecure-key-change-me"


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


class Settings(BaseSettings):
    """
    Application settings with validation.

    Uses Pydantic for configuration validation, preventing
    common security issues like wildcard CORS or a default signing key.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./omnivault.db",
        description="Database connection URL"
    )
    # Connection pool tuning (PostgreSQL only; ignored for SQLite).
    db_pool_size: int = Field(
        default=5,
        description="Number of persistent database connections"
    )
    db_max_overflow: int = Field(
        default=10,
        description="Extra connections allowed during traffic bursts"
    )
    db_pool_timeout: int = Field(
        default=30,
        description="Seconds to wait for a connection from the pool before raising"
    )
    db_pool_recycle: int = Field(
        default=1800,
        description="Seconds before a connection is recycled (prevents stale connections)"
    )

    # Tokens
    # JWT_SECRET_KEY: access tokens are signed with a key derived from this value.
    jwt_secret_key: str = Field(
        default=DEFAULT_JWT_SECRET,
        description="Access token signing secret (override in production)"
    )
    access_token_ttl_minutes: int = Field(
        default=15,
        description="Lifetime of an access token in minutes"
    )
    refresh_token_ttl_days: int = Field(
        default=7,
        description="Lifetime of a refresh token in days"
    )
    verification_token_ttl_hours: int = Field(
        default=24,
        description="Lifetime of an email verification token and OTP in hours"
    )
    token_cleanup_interval_seconds: int = Field(
        default=3600,
        description="Seconds between expired-token sweeps in the worker"
    )

    # Accounts
    require_email_verification: bool = Field(
        default=True,
        description="New accounts stay disabled until the email address is verified"
    )
    bcrypt_rounds: int = Field(
        default=12,
        description="bcrypt cost factor for password hashes"
    )

    # Mail
    # SMTP_HOST empty = verification emails are logged instead of sent.
    smtp_host: str = Field(default="", description="SMTP server hostname")
    smtp_port: int = Field(default=587, description="SMTP server port")
    smtp_username: str = Field(default="", description="SMTP username")
    smtp_password: str = Field(default="", description="SMTP password")
    smtp_use_tls: bool = Field(default=True, description="Issue STARTTLS before login")
    mail_from: str = Field(
        default="no-reply@omnivault.local",
        description="Sender address for outgoing mail"
    )
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Base URL used to build links in outgoing mail"
    )

    # Rate Limiting
    # RATE_LIMIT_PER_MINUTE: max requests per client per minute.
    rate_limit_per_minute: int = Field(
        default=60,
        description="Maximum requests per client per minute"
    )
    verification_resend_per_hour: int = Field(
        default=5,
        description="Maximum verification resend requests per client per hour"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    def get_cors_origins(self) -> List[str]:
        """
        Get CORS origins as a list.

        Parses comma-separated string and validates no wildcards.
        """
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(',') if origin.strip()]

        # SECURITY: Prevent wildcard CORS
        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('bcrypt_rounds')
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        if not 4 <= v <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31")
        return v

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        In production, fails startup if security-critical settings use insecure defaults.
        In development, returns silently and main.py logs warnings.

        Raises:
            ConfigurationError: If production config is insecure.
        """
        errors: list[str] = []

        if self.jwt_secret_key == DEFAULT_JWT_SECRET:
            errors.append(
                "JWT_SECRET_KEY is using the default insecure value. "
                "Generate a secure key: openssl rand -hex 32"
            )

        if len(self.jwt_secret_key) < 32:
            errors.append("JWT_SECRET_KEY should be at least 32 characters long.")

        origins = self.get_cors_origins()
        localhost_origins = [o for o in origins if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            errors.append(
                f"CORS allows localhost origins: {localhost_origins}. "
                "Remove localhost origins for production."
            )

        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is insecure:\n  - " + "\n  - ".join(errors)
            )

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        # Allow reading from environment variables with different case
        case_sensitive = False


# Global settings instance
settings = Settings()
