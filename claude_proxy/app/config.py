"""
Configuration module for the Claude Proxy.

This module uses Pydantic Settings to load and validate environment variables
for the listening socket, the upstream credential and logging.

Environment variables are loaded from .env file or system environment.
The origin allow-list and upstream endpoint are compiled in and never read
from the environment.
"""

from functools import lru_cache
from typing import FrozenSet, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Compiled-in Constants
# =============================================================================

SERVICE_NAME = "MTG Claude Proxy"

# Frontend origins permitted to call the relay from a browser.
# Local dev servers (e.g. http://localhost:5173) go here too; match the exact
# scheme and port.
ALLOWED_ORIGINS: FrozenSet[str] = frozenset({
    "https://mtgscanner.com",
})

ALLOWED_METHODS = ("GET", "HEAD", "PUT", "PATCH", "POST", "DELETE")

UPSTREAM_URL = "https://api.anthropic.com/v1/messages"
UPSTREAM_API_VERSION = "2023-06-01"
UPSTREAM_KEY_HEADER = "x-api-key"
UPSTREAM_VERSION_HEADER = "anthropic-version"

MAX_BODY_BYTES = 10 * 1024 * 1024


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loaded once at startup and treated as read-only afterwards.
    """

    # =========================================================================
    # Server Configuration
    # =========================================================================

    HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the proxy server",
    )

    PORT: int = Field(
        default=8080,
        description="Port to bind the proxy server",
        ge=1,
        le=65535,
    )

    # =========================================================================
    # Upstream Credential
    # =========================================================================

    CLAUDE_API_KEY: Optional[str] = Field(
        None,
        description="Anthropic API key forwarded as the x-api-key header",
    )

    ANTHROPIC_API_KEY: Optional[str] = Field(
        None,
        description="Fallback name for the Anthropic API key",
    )

    # =========================================================================
    # Logging
    # =========================================================================

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra env vars not defined here
        frozen=True,
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def api_key(self) -> Optional[str]:
        """
        Resolve the upstream credential.

        CLAUDE_API_KEY wins over ANTHROPIC_API_KEY when both are set.

        Returns:
            The key, or None when neither variable holds a value.
        """
        return self.CLAUDE_API_KEY or self.ANTHROPIC_API_KEY

    @property
    def has_api_key(self) -> bool:
        return self.api_key is not None

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("CLAUDE_API_KEY", "ANTHROPIC_API_KEY", mode="before")
    @classmethod
    def blank_key_is_missing(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty or whitespace-only keys as unset."""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Validate LOG_LEVEL is a standard logging level name.

        Raises:
            ValueError: If the level is not recognised
        """
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

        v = v.upper()
        if v not in allowed_levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {allowed_levels}, got: {v}"
            )

        return v


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    This function is cached so that the settings are loaded only once
    during the application lifecycle.

    Raises:
        ValidationError: If environment variables are present but invalid.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Validate configuration and return a status report.

    Called during application startup. A missing key is an error for
    /api/claude but the service still starts so that GET / keeps answering.

    Returns:
        Dictionary with validation status and any warnings.
    """
    errors = []
    warnings = []

    if not settings.has_api_key:
        errors.append("Neither CLAUDE_API_KEY nor ANTHROPIC_API_KEY is set")
    elif settings.CLAUDE_API_KEY and settings.ANTHROPIC_API_KEY:
        warnings.append("Both CLAUDE_API_KEY and ANTHROPIC_API_KEY are set; using CLAUDE_API_KEY")

    if not ALLOWED_ORIGINS:
        warnings.append("No allowed origins compiled in; only non-browser clients can call the proxy")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "allowed_origins": sorted(ALLOWED_ORIGINS),
        "port": settings.PORT,
    }


# =============================================================================
# Example Usage & Documentation
# =============================================================================

if __name__ == "__main__":
    """
    Print the non-sensitive configuration and its validation status:
        python -m claude_proxy.app.config
    """
    print("=" * 80)
    print("CLAUDE PROXY CONFIGURATION")
    print("=" * 80)

    try:
        config = get_settings()

        print("\nServer Configuration:")
        print(f"  Host:            {config.HOST}")
        print(f"  Port:            {config.PORT}")
        print(f"  Log Level:       {config.LOG_LEVEL}")

        print("\nUpstream:")
        print(f"  URL:             {UPSTREAM_URL}")
        print(f"  API Version:     {UPSTREAM_API_VERSION}")
        print(f"  API Key:         {'Present' if config.has_api_key else 'Missing'}")

        print("\nCORS Configuration:")
        print(f"  Allowed Origins: {', '.join(sorted(ALLOWED_ORIGINS))}")

        status = validate_configuration(config)

        print("\n" + "=" * 80)
        if status["valid"]:
            print("✓ All critical checks passed!")
        else:
            print("✗ Configuration errors found:")
            for error in status["errors"]:
                print(f"  - {error}")

        if status["warnings"]:
            print("\n⚠ Warnings:")
            for warning in status["warnings"]:
                print(f"  - {warning}")

    except Exception as e:
        print(f"\n✗ Configuration error: {e}")
