"""
Configuration module for the edge proxy.

This module uses Pydantic Settings to load and validate environment variables
for the upstream form backend, the origin allow-list, payload limits and the
server bind address.

Environment variables are loaded from .env file or system environment.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_MAX_PAYLOAD_SIZE = 1024 * 1024  # 1 MiB


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The proxy has exactly one upstream and one allow-list; everything else
    has a sensible default.
    """

    # =========================================================================
    # Upstream Configuration
    # =========================================================================

    UPSTREAM_URL: HttpUrl = Field(
        ...,
        description="Upstream form backend URL (e.g., https://script.google.com/macros/s/<id>/exec)",
    )

    UPSTREAM_USER_AGENT: str = Field(
        default="FeteVoisinsProxy/1.0",
        description="User-Agent sent on every upstream request",
        min_length=1,
    )

    # =========================================================================
    # Request Guarding
    # =========================================================================

    ALLOWED_ORIGINS: str = Field(
        ...,
        description="Comma-separated list of allowed origins (e.g., 'https://djamchid.github.io')",
        min_length=1,
    )

    MAX_PAYLOAD_SIZE: int = Field(
        default=DEFAULT_MAX_PAYLOAD_SIZE,
        description="Maximum accepted POST body size in bytes",
        ge=1,
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    PROXY_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the proxy server",
    )

    PROXY_PORT: int = Field(
        default=8787,
        description="Port to bind the proxy server",
        ge=1,
        le=65535,
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        Parse and return ALLOWED_ORIGINS as a list.

        Returns:
            List of allowed origin URLs without surrounding whitespace.
        """
        return [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

    @property
    def upstream_url_str(self) -> str:
        """Upstream URL as string, without trailing slash."""
        return str(self.UPSTREAM_URL).rstrip("/")

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("ALLOWED_ORIGINS")
    @classmethod
    def validate_allowed_origins(cls, v: str) -> str:
        """
        Validate that ALLOWED_ORIGINS lists at least one explicit origin.

        Raises:
            ValueError: If the list is empty, contains a wildcard or an
                entry that is not an http(s) origin
        """
        origins = [o.strip() for o in v.split(",") if o.strip()]

        if not origins:
            raise ValueError("ALLOWED_ORIGINS must contain at least one origin")

        for origin in origins:
            if origin == "*":
                raise ValueError(
                    "Wildcard origin is not supported: origins are reflected, list them explicitly"
                )
            if not origin.startswith(("http://", "https://")):
                raise ValueError(
                    f"Invalid origin format: '{origin}'. "
                    "Expected format: 'https://example.com'"
                )
            if origin.endswith("/"):
                raise ValueError(
                    f"Invalid origin format: '{origin}'. "
                    "Origins never end with a slash"
                )

        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}, got: {v}")
        return v.upper()


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ValidationError: If required environment variables are missing
                        or invalid.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Check the loaded settings and return a status report.

    Called during startup; nothing here is fatal, the report only carries
    warnings worth surfacing in the logs.

    Example:
        >>> report = validate_configuration(get_settings())
        >>> report["warnings"]
        []
    """
    warnings = []

    upstream = settings.upstream_url_str
    if upstream.startswith("http://"):
        warnings.append("UPSTREAM_URL uses plain http, CSRF tokens will travel unencrypted")

    if "localhost" in upstream or "127.0.0.1" in upstream:
        warnings.append("Upstream URL points to localhost (may cause issues in containers)")

    for origin in settings.allowed_origins_list:
        if origin.startswith("http://"):
            warnings.append(f"Allowed origin '{origin}' is not served over https")

    return {
        "valid": True,
        "warnings": warnings,
        "allowed_origins": settings.allowed_origins_list,
        "max_payload_size": settings.MAX_PAYLOAD_SIZE,
    }


if __name__ == "__main__":
    """
    Validate your .env configuration:
        python -m edge_proxy.app.config
    """
    try:
        config = get_settings()
    except Exception as e:
        print(f"\n✗ Configuration error: {e}")
        print("""
Required variables:
  - UPSTREAM_URL
  - ALLOWED_ORIGINS

Optional variables:
  - MAX_PAYLOAD_SIZE (default: 1048576)
  - UPSTREAM_USER_AGENT (default: FeteVoisinsProxy/1.0)
  - PROXY_HOST (default: 0.0.0.0)
  - PROXY_PORT (default: 8787)
  - LOG_LEVEL (default: INFO)
        """)
    else:
        print("\n✓ Configuration loaded successfully!\n")
        print(f"  Upstream URL:     {config.upstream_url_str}")
        print(f"  Allowed Origins:  {', '.join(config.allowed_origins_list)}")
        print(f"  Max Payload:      {config.MAX_PAYLOAD_SIZE} bytes")
        print(f"  Bind:             {config.PROXY_HOST}:{config.PROXY_PORT}")

        for warning in validate_configuration(config)["warnings"]:
            print(f"  ⚠ {warning}")
