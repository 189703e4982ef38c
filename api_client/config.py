"""
Configuration for the contribution client.

Loaded with Pydantic Settings from ``CONTRIB_``-prefixed environment
variables or a .env file.
"""

from functools import lru_cache

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    API_URL: HttpUrl = Field(
        ...,
        description="Edge proxy or upstream URL the client talks to",
    )

    ORIGIN: str = Field(
        ...,
        description="Origin of the page the client runs on (e.g., https://djamchid.github.io)",
        min_length=1,
    )

    INVALID_TOKEN_MARKER: str = Field(
        default="jeton invalide",
        description="Substring of the upstream error message that signals a rejected CSRF token",
        min_length=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="CONTRIB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def api_url_str(self) -> str:
        return str(self.API_URL).rstrip("/")


@lru_cache()
def get_client_settings() -> ClientSettings:
    return ClientSettings()
