"""
RepairDesk Backend - Application Configuration
================================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by every module that needs configuration values.
When:  Loaded once at module import time; validated before app starts.

Push notifications are configured through `PushConfig`, built from these
settings and handed to the NotificationDispatcher at construction time.
Outgoing email works the same way through `EmailConfig` and the Mailer.
"""

from dataclasses import dataclass
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_JWT_SECRET = "change-me-in-production"
DEFAULT_ADMIN_PASSWORD = "admin123"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for development.
    Production deployments MUST override JWT_SECRET and DEFAULT_ADMIN_PASSWORD.
    """

    # ── Database ──────────────────────────────────────────────────────────
    # Format: sqlite+aiosqlite:///path.db or postgresql+asyncpg://user:pw@host/db
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/repairdesk.db",
        description="Async SQLAlchemy connection URL",
    )

    # Pool sizing only applies to server databases; SQLite ignores it.
    db_pool_size: int = Field(default=20, ge=5, le=100)
    db_max_overflow: int = Field(default=10, ge=0, le=50)
    db_pool_pre_ping: bool = Field(default=True)

    # Startup connectivity check (tenacity retry with exponential backoff)
    db_connect_attempts: int = Field(default=5, ge=1, le=20)
    db_connect_max_wait: int = Field(default=10, ge=1, le=120)

    # Create tables from model metadata on startup (alembic is used otherwise)
    auto_create_tables: bool = Field(default=True)

    # ── Document Storage ──────────────────────────────────────────────────
    storage_root: str = Field(default="./storage")

    # Default: 10MB
    max_document_size: int = Field(default=10_485_760, ge=1_048_576, le=52_428_800)

    # ── Authentication ────────────────────────────────────────────────────
    jwt_secret: str = Field(default=DEFAULT_JWT_SECRET)
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24, ge=5, le=60 * 24 * 30)
    bcrypt_rounds: int = Field(default=12, ge=4, le=16)

    # Seeded when the admins table is empty
    default_admin_email: str = Field(default="admin@it13.com")
    default_admin_password: str = Field(default=DEFAULT_ADMIN_PASSWORD)

    # ── Push Notifications ────────────────────────────────────────────────
    push_enabled: bool = Field(default=False)
    firebase_credentials_path: Optional[str] = Field(
        default="./config/firebase-service-account.json",
        description="Firebase service account JSON used by firebase-admin",
    )
    # dry_run validates messages against FCM without delivering them
    push_dry_run: bool = Field(default=False)

    # ── Email ─────────────────────────────────────────────────────────────
    # Account emails (temporary password, rejection notice) over SMTP
    email_enabled: bool = Field(default=False)
    smtp_host: str = Field(default="localhost")
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_username: Optional[str] = Field(default=None)
    smtp_password: Optional[str] = Field(default=None)
    smtp_use_tls: bool = Field(default=True)
    smtp_timeout: int = Field(default=10, ge=1, le=120)
    mail_from: str = Field(default="RepairDesk <no-reply@repairdesk.local>")

    # ── CORS ──────────────────────────────────────────────────────────────
    cors_origins: str = Field(default="http://localhost:5173,http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=3000, ge=1024, le=65535)

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Rate Limiting ─────────────────────────────────────────────────────
    rate_limit_requests: int = Field(default=1000, ge=10, le=100000)
    rate_limit_window: int = Field(default=3600, ge=60, le=86400)  # seconds

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that security-sensitive settings were overridden.
        When:  Called during app startup (lifespan).
        How:   Collects every problem and raises one ValueError listing them.
        """
        errors = []
        if self.jwt_secret == DEFAULT_JWT_SECRET:
            errors.append("JWT_SECRET is using the development default.")
        if self.default_admin_password == DEFAULT_ADMIN_PASSWORD:
            errors.append("DEFAULT_ADMIN_PASSWORD is using the development default.")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )

    def push_config(self) -> "PushConfig":
        return PushConfig(
            enabled=self.push_enabled,
            credentials_path=self.firebase_credentials_path,
            dry_run=self.push_dry_run,
        )

    def email_config(self) -> "EmailConfig":
        return EmailConfig(
            enabled=self.email_enabled,
            host=self.smtp_host,
            port=self.smtp_port,
            username=self.smtp_username,
            password=self.smtp_password,
            use_tls=self.smtp_use_tls,
            timeout=self.smtp_timeout,
            sender=self.mail_from,
        )


@dataclass(frozen=True)
class PushConfig:
    """
    Explicit push-notification configuration.

    A disabled config yields a dispatcher without a transport: every push
    attempt is logged and reported as "nothing sent".
    """

    enabled: bool = False
    credentials_path: Optional[str] = None
    dry_run: bool = False

    @classmethod
    def disabled(cls) -> "PushConfig":
        return cls(enabled=False)


@dataclass(frozen=True)
class EmailConfig:
    """SMTP settings for the Mailer. Disabled means every email is only logged."""

    enabled: bool = False
    host: str = "localhost"
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True
    timeout: int = 10
    sender: str = "RepairDesk <no-reply@repairdesk.local>"

    @classmethod
    def disabled(cls) -> "EmailConfig":
        return cls(enabled=False)


# Singleton instance, imported throughout the application
settings = Settings()
