"""
Application Configuration - Pydantic Settings for type-safe config.

FAIL FAST - Critical config is validated at startup.
"""

import os
import sys

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

APPLE_PRODUCTION_URL = "https://buy.itunes.apple.com/verifyReceipt"
APPLE_SANDBOX_URL = "https://sandbox.itunes.apple.com/verifyReceipt"

# Environment variable names used by earlier deployments of the verifier
LEGACY_SECRET_VAR = "AppleSecret"


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_pool_size: int = 10
    database_max_overflow: int = 5
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    run_migrations_on_startup: bool = False

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_title: str = "IAP Verify API"
    api_version: str = "0.1.0"
    api_description: str = "Apple in-app purchase receipt verification"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability
    metrics_enabled: bool = True
    tracing_enabled: bool = True
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "iap-verify-api"

    # Apple verifyReceipt
    apple_production_url: str = APPLE_PRODUCTION_URL
    apple_sandbox_url: str = APPLE_SANDBOX_URL
    apple_request_timeout_seconds: float = 30.0
    apple_shared_secret: str = ""  # Global fallback secret
    apple_bundle_secrets: dict[str, str] = Field(default_factory=dict)  # bundle_id -> secret

    # Extra days a lapsed subscription is still accepted
    grace_days: int = Field(default=0, validation_alias=AliasChoices("grace_days", "GraceDays"))

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("grace_days", mode="before")
    @classmethod
    def parse_grace_days(cls, v: object) -> int:
        """Unset, unparseable or negative values mean no grace period."""
        try:
            days = int(str(v).strip())
        except (TypeError, ValueError):
            return 0
        return max(days, 0)

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start if critical config is missing.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
            )

        if self.log_format not in ("json", "console"):
            errors.append(f"LOG_FORMAT must be 'json' or 'console', got: {self.log_format}")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    def shared_secret_for(self, bundle_id: str) -> str | None:
        """
        Resolve the App Store shared secret for a bundle.

        Lookup order: APPLE_BUNDLE_SECRETS entry, ``AppleSecret.<bundle_id>``
        environment variable, then the global secret (APPLE_SHARED_SECRET or
        ``AppleSecret``). Returns None when no secret is configured.
        """
        secret = self.apple_bundle_secrets.get(bundle_id) or os.environ.get(
            f"{LEGACY_SECRET_VAR}.{bundle_id}"
        )
        if secret:
            return secret
        return self.apple_shared_secret or os.environ.get(LEGACY_SECRET_VAR) or None


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
