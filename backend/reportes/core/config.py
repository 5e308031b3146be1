"""
Centralized configuration management using Pydantic Settings.

This module provides type-safe configuration management with validation,
loading settings from environment variables and .env files.
"""

from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json


def _parse_list(v: str | List[str]) -> List[str]:
    """Accept a JSON array string, a comma separated string or a list."""
    if isinstance(v, str):
        try:
            return json.loads(v)
        except json.JSONDecodeError:
            # Fallback: split by comma if not valid JSON
            return [s.strip() for s in v.split(",") if s.strip()]
    return v


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Secrets should never be committed to code - use .env file (gitignored).
    """

    # API Configuration
    api_v1_prefix: str = Field(
        default="/api/v1",
        description="API version 1 prefix for all endpoints"
    )
    project_name: str = Field(
        default="Reportes de Entrega",
        description="Project name displayed in API docs"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/reportes.db",
        description="Database connection URL (SQLite by default, PostgreSQL-ready format)"
    )
    data_directory: str = Field(
        default="./data",
        description="Directory for local data"
    )

    # Object storage (evidence photos, chat images)
    media_directory: str = Field(
        default="./data/media",
        description="Root directory for uploaded files; each bucket is a subdirectory"
    )
    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Public origin used to build URLs of uploaded files"
    )
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Maximum accepted upload size in bytes"
    )

    # OpenRouter LLM Configuration (OpenAI-compatible)
    openrouter_api_key: str = Field(
        ...,
        description="OpenRouter API key for ticket extraction and chat analysis"
    )
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="OpenRouter API base URL (OpenAI-compatible)"
    )
    ticket_model: str = Field(
        default="openai/gpt-4o-mini",
        description="Vision model used to read delivery tickets"
    )
    resolution_model: str = Field(
        default="openai/gpt-4o-mini",
        description="Model used to detect whether a chat message resolves a report"
    )
    resolution_analysis_enabled: bool = Field(
        default=True,
        description="Analyse driver chat messages for resolution"
    )

    # Store directory webhook (n8n)
    store_directory_url: str = Field(
        default="https://n8n.srv925698.hstgr.cloud/webhook/tiendas",
        description="Webhook that resolves a store code into store details"
    )
    store_directory_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="HTTP timeout for the store directory webhook"
    )

    # Report lifecycle
    report_timeout_minutes: int = Field(
        default=20,
        gt=0,
        description="Minutes a submitted report waits before timing out"
    )
    timeout_sweep_interval_seconds: int = Field(
        default=60,
        ge=0,
        description="Seconds between sweeps that time out overdue reports (0 disables)"
    )
    zonas: List[str] = Field(
        default=["CDMX", "Pachuca", "Cuernavaca"],
        description="Zonas that can be assigned to comerciales"
    )

    # Web push (VAPID)
    vapid_public_key: Optional[str] = Field(
        default=None,
        description="VAPID application server public key (urlsafe base64)"
    )
    vapid_private_key: Optional[str] = Field(
        default=None,
        description="VAPID private key used to sign push requests"
    )
    vapid_subject: str = Field(
        default="mailto:admin@oxxo.com",
        description="Contact claim sent with every push request"
    )
    push_ttl_seconds: int = Field(
        default=300,
        ge=0,
        description="Time-to-live of push messages at the push service"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=True,
        description="Emit single-line JSON logs; plain text when false"
    )

    # Rate limiting (requests per minute per client IP)
    rate_limit_auth: int = Field(default=10, gt=0, description="Login and signup")
    rate_limit_extraction: int = Field(default=20, gt=0, description="AI ticket extraction")
    rate_limit_default: int = Field(default=120, gt=0, description="Every other endpoint")

    # Security Configuration
    secret_key: str = Field(
        ...,
        description="Secret key for JWT token signing (generate with: openssl rand -hex 32)"
    )
    access_token_expire_minutes: int = Field(
        default=60 * 12,
        description="JWT access token expiration time in minutes"
    )

    # CORS Configuration
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins (frontend URLs)"
    )
    cors_allow_credentials: bool = Field(
        default=True,
        description="Allow cookies/credentials in CORS requests"
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
        env_nested_delimiter="__",  # Support nested config via env vars
    )

    @field_validator("zonas", mode="before")
    @classmethod
    def parse_zonas(cls, v: str | List[str]) -> List[str]:
        """Parse zonas from JSON string, comma separated string or list."""
        return _parse_list(v)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | List[str]) -> List[str]:
        """
        Parse cors_origins from JSON string or list.

        Supports comma-separated origins for easier .env configuration.
        """
        return _parse_list(v)

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """
        Validate that secret_key is properly configured.

        Raises ValueError if still using placeholder value or too short.
        Security requirement: JWT signing keys must be at least 32 characters.
        """
        if not v or v.strip() == "":
            raise ValueError(
                "SECRET_KEY is required and cannot be empty. "
                "Generate one with: openssl rand -hex 32"
            )
        if v in ["generate-with-openssl-rand-hex-32", "CHANGE_ME_32_CHARS_MIN", "your-secret-key-here"]:
            raise ValueError(
                "SECRET_KEY must be set to a secure random value (not placeholder). "
                "Generate one with: openssl rand -hex 32"
            )
        if len(v) < 32:
            raise ValueError(
                f"SECRET_KEY must be at least 32 characters long for security. "
                f"Current length: {len(v)}. Generate with: openssl rand -hex 32"
            )
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """
        Validate database URL format.

        Supports SQLite (local) and PostgreSQL (production).
        """
        if not v or v.strip() == "":
            raise ValueError("DATABASE_URL is required and cannot be empty")

        valid_schemes = ["sqlite", "sqlite+aiosqlite", "postgresql", "postgresql+asyncpg"]
        if not any(v.startswith(scheme + "://") or v.startswith(scheme + ":///") for scheme in valid_schemes):
            raise ValueError(
                f"DATABASE_URL must start with one of: {', '.join(valid_schemes)}. "
                f"Got: {v[:20]}..."
            )

        return v

    @field_validator("openrouter_api_key")
    @classmethod
    def validate_openrouter_key(cls, v: str) -> str:
        """
        Validate OpenRouter API key is set and not a placeholder.
        """
        if not v or v.strip() == "":
            raise ValueError(
                "OPENROUTER_API_KEY is required. "
                "Get one from https://openrouter.ai/keys"
            )

        if "your-api-key-here" in v.lower() or "your_key" in v.lower() or v == "sk-or-v1-...":
            raise ValueError(
                "OPENROUTER_API_KEY contains placeholder value. "
                "Get real key from https://openrouter.ai/keys"
            )

        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR or CRITICAL, got '{v}'")
        return level

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Public URLs are joined with '/media/...', so drop a trailing slash."""
        return v.rstrip("/")

    @property
    def push_enabled(self) -> bool:
        """Web push is only available when both VAPID keys are configured."""
        return bool(self.vapid_public_key and self.vapid_private_key)


# Global settings instance
# Import this instance throughout the application
settings = Settings()
